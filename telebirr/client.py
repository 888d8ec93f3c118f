# telebirr/client.py
import json
import logging
from dataclasses import dataclass, field, fields as dc_fields
from decimal import Decimal
from typing import Optional

import requests
from requests import RequestException

from . import signing
from .config import TelebirrConfig, load_config
from .exceptions import PaymentError, PaymentErrorKind
from .utils import amount_str, epoch_millis, gen_nonce

logger = logging.getLogger(__name__)

SUCCESS_CODES = {"00", "0", "SUCCESS"}
TIMEOUT_EXPRESS_MINUTES = "30"


@dataclass(frozen=True)
class PaymentRequest:
    """Signed order-creation request. Immutable once ``sign`` is set."""
    appId: str
    appKey: str
    notifyUrl: str
    returnUrl: str
    shortCode: str
    subject: str
    timeoutExpress: str
    totalAmount: str
    nonce: str
    outTradeNo: str
    receiveName: str
    timestamp: str
    fabricAppId: Optional[str] = None
    sign: str = ""

    def unsigned_fields(self) -> dict:
        return {f.name: getattr(self, f.name) for f in dc_fields(self)
                if f.name != "sign" and getattr(self, f.name) is not None}

    def to_wire(self) -> dict:
        body = self.unsigned_fields()
        body["sign"] = self.sign
        return body


@dataclass(frozen=True)
class PaymentResponse:
    result_code: str
    message: str
    payment_id: str
    order_id: str
    amount: Optional[Decimal]
    timestamp: str
    sign: str
    raw: dict = field(default_factory=dict, repr=False, compare=False)


def _raw_snippet(resp) -> str:
    return (resp.text or "")[:800]


def _code_and_message(data: dict):
    code = data.get("code", data.get("resultCode", data.get("result_code")))
    message = data.get("message") or data.get("msg") or data.get("error") or ""
    return ("" if code is None else str(code)), str(message)


class TelebirrClient:
    def __init__(self, config: Optional[TelebirrConfig] = None, session=None):
        self.config = config or load_config()
        self.session = session or requests.Session()

    @property
    def headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self.config.user_agent,
        }

    # ---------- request construction ----------
    def build_request(self, order_id: str, amount, description: str) -> PaymentRequest:
        if not order_id or not str(order_id).strip():
            raise ValueError("order_id is required")
        if not description or not str(description).strip():
            raise ValueError("description is required")
        cfg = self.config
        unsigned = PaymentRequest(
            appId=cfg.app_id,
            appKey=cfg.app_secret,
            notifyUrl=cfg.notify_url,
            returnUrl=cfg.return_url,
            shortCode=cfg.short_code,
            subject=f"Payment for {description}",
            timeoutExpress=TIMEOUT_EXPRESS_MINUTES,
            totalAmount=amount_str(amount),
            nonce=gen_nonce(),
            outTradeNo=str(order_id),
            receiveName=cfg.receive_name,
            timestamp=epoch_millis(),
            fabricAppId=cfg.fabric_app_id or None,
        )
        signature = signing.sign(unsigned.unsigned_fields(), cfg.private_key)
        return PaymentRequest(**{**unsigned.unsigned_fields(), "sign": signature})

    # ---------- transport ----------
    def _post(self, url: str, body: dict, order_id: str):
        try:
            resp = self.session.post(url, json=body, headers=self.headers, timeout=self.config.timeout_seconds)
        except requests.Timeout as e:
            logger.error("Telebirr request timed out for order_id=%s: %s", order_id, e)
            raise PaymentError(PaymentErrorKind.TIMEOUT,
                               f"Gateway did not answer within {self.config.timeout_seconds}s") from e
        except RequestException as e:
            logger.error("Telebirr gateway unreachable for order_id=%s: %s", order_id, e)
            raise PaymentError(PaymentErrorKind.NETWORK_UNREACHABLE, f"Gateway request failed: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = None

        if not 200 <= resp.status_code < 300:
            code, message = _code_and_message(data) if isinstance(data, dict) else ("", "")
            if not message:
                text = resp.text or ""
                message = "Gateway returned an HTML error page" if "<html" in text.lower() else (text[:200] or f"HTTP {resp.status_code}")
            logger.error("Telebirr rejected order_id=%s: status=%s text=%s",
                         order_id, resp.status_code, _raw_snippet(resp))
            raise PaymentError(PaymentErrorKind.GATEWAY_REJECTED, message,
                               http_status=resp.status_code, raw_body=_raw_snippet(resp), code=code or None)

        if not isinstance(data, dict):
            logger.error("Telebirr returned a non-JSON body for order_id=%s: %s", order_id, _raw_snippet(resp))
            raise PaymentError(PaymentErrorKind.MALFORMED_RESPONSE, "Response body is not a JSON object",
                               http_status=resp.status_code, raw_body=_raw_snippet(resp))
        return resp, data

    # ---------- API calls ----------
    def create_payment(self, order_id: str, amount, description: str) -> PaymentResponse:
        return self.submit(self.build_request(order_id, amount, description))

    def submit(self, request: PaymentRequest) -> PaymentResponse:
        """POST a signed order-creation request. Exactly one network call, no retry."""
        logger.info("Creating Telebirr payment order_id=%s amount=%s", request.outTradeNo, request.totalAmount)
        resp, data = self._post(self.config.create_order_url, request.to_wire(), request.outTradeNo)

        code, message = _code_and_message(data)
        if code.upper() not in SUCCESS_CODES:
            logger.error("Telebirr create failed for order_id=%s: code=%s message=%s",
                         request.outTradeNo, code, message)
            raise PaymentError(PaymentErrorKind.GATEWAY_REJECTED, message or "Order creation rejected",
                               http_status=resp.status_code, raw_body=_raw_snippet(resp), code=code or None)

        inner = data.get("data") if isinstance(data.get("data"), dict) else data
        payment_id = inner.get("payId") or inner.get("paymentId") or inner.get("prepay_id") or ""
        if not payment_id:
            raise PaymentError(PaymentErrorKind.MALFORMED_RESPONSE, "Success response without payId",
                               http_status=resp.status_code, raw_body=_raw_snippet(resp), code=code)

        raw_amount = inner.get("total_amount") or inner.get("totalAmount")
        return PaymentResponse(
            result_code=code,
            message=message,
            payment_id=str(payment_id),
            order_id=str(inner.get("out_trade_no") or inner.get("outTradeNo") or request.outTradeNo),
            amount=Decimal(str(raw_amount)) if raw_amount not in (None, "") else Decimal(request.totalAmount),
            timestamp=str(inner.get("timestamp") or ""),
            sign=str(inner.get("sign") or ""),
            raw=data,
        )

    def query_order(self, order_id: str) -> dict:
        """Ask the gateway for the current state of ``order_id``; returns its ``data`` object."""
        body = {"appid": self.config.app_id, "merch_order_id": order_id}
        resp, data = self._post(self.config.query_order_url, body, order_id)
        code, message = _code_and_message(data)
        if code.upper() not in SUCCESS_CODES:
            raise PaymentError(PaymentErrorKind.GATEWAY_REJECTED, message or "Order query rejected",
                               http_status=resp.status_code, raw_body=json.dumps(data)[:800], code=code or None)
        inner = data.get("data")
        if not isinstance(inner, dict):
            raise PaymentError(PaymentErrorKind.MALFORMED_RESPONSE, "Query response without data",
                               http_status=resp.status_code, raw_body=json.dumps(data)[:800], code=code)
        return inner
