import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Optional

from . import signing
from .exceptions import VerificationError, VerificationErrorKind

logger = logging.getLogger(__name__)

STATUS_COMPLETED = "Completed"
STATUS_FAILURE = "Failure"

REQUIRED_FIELDS = ("merch_order_id", "trade_status", "sign")


@dataclass(frozen=True)
class CallbackNotification:
    merchant_app_id: str
    notify_time: str
    short_code: str
    order_id: str
    payment_id: str
    amount: str
    transaction_id: str
    currency: str
    trade_status: str
    transaction_end_time: str
    signature: str
    signature_type: str
    fields: dict = field(default_factory=dict, repr=False, compare=False)

    @property
    def signed_fields(self) -> dict:
        return {k: v for k, v in self.fields.items() if k not in (signing.SIGN_FIELD, signing.SIGN_TYPE_FIELD)}


class SettlementOutcome:
    status = ""


@dataclass(frozen=True)
class Paid(SettlementOutcome):
    payment_id: str
    transaction_id: str
    amount: Optional[Decimal]
    end_time: str
    status = "PAID"


@dataclass(frozen=True)
class Failed(SettlementOutcome):
    payment_id: str
    reason: str
    status = "FAILED"


@dataclass(frozen=True)
class Unknown(SettlementOutcome):
    raw_status: str
    status = "UNKNOWN"


def _s(data: dict, *keys) -> str:
    for k in keys:
        v = data.get(k)
        if v not in (None, ""):
            return str(v)
    return ""


def parse_notification(data, *, require_signature: bool = True) -> CallbackNotification:
    """Map gateway field names onto a :class:`CallbackNotification`.

    Order-query results share the callback's field names but carry no
    signature, hence ``require_signature=False`` for them.
    """
    if not isinstance(data, dict):
        raise VerificationError(VerificationErrorKind.MALFORMED, "Notification body must be a JSON object")
    required = REQUIRED_FIELDS if require_signature else REQUIRED_FIELDS[:-1]
    missing = [k for k in required if not data.get(k)]
    if missing:
        raise VerificationError(VerificationErrorKind.MALFORMED, f"Missing fields: {', '.join(missing)}")
    return CallbackNotification(
        merchant_app_id=_s(data, "appid"),
        notify_time=_s(data, "notify_time"),
        short_code=_s(data, "short_code", "merch_code"),
        order_id=_s(data, "merch_order_id"),
        payment_id=_s(data, "payment_order_id"),
        amount=_s(data, "total_amount"),
        transaction_id=_s(data, "trans_id"),
        currency=_s(data, "trans_currency"),
        trade_status=_s(data, "trade_status"),
        transaction_end_time=_s(data, "trans_end_time"),
        signature=_s(data, "sign"),
        signature_type=_s(data, "sign_type"),
        fields=dict(data),
    )


def _amount(raw: str) -> Optional[Decimal]:
    try:
        return Decimal(raw) if raw else None
    except InvalidOperation:
        return None


def outcome_for(notification: CallbackNotification) -> SettlementOutcome:
    status = notification.trade_status
    if status == STATUS_COMPLETED:
        return Paid(
            payment_id=notification.payment_id,
            transaction_id=notification.transaction_id,
            amount=_amount(notification.amount),
            end_time=notification.transaction_end_time,
        )
    if status == STATUS_FAILURE:
        reason = _s(notification.fields, "error_msg", "message", "callback_info") or status
        return Failed(payment_id=notification.payment_id, reason=reason)
    return Unknown(raw_status=status)


def verify(notification: CallbackNotification, public_key, *, expected_app_id: str = "") -> SettlementOutcome:
    """Check the gateway's signature, then map ``trade_status`` to an outcome.

    A notification that fails here must not touch any order state.
    """
    if notification.signature_type and notification.signature_type != signing.SIGN_TYPE:
        logger.warning("Rejected Telebirr callback with sign_type=%r: order_id=%s",
                       notification.signature_type, notification.order_id)
        raise VerificationError(VerificationErrorKind.BAD_SIGNATURE,
                                f"Unsupported sign_type {notification.signature_type!r}")
    if not signing.verify(notification.signed_fields, notification.signature, public_key):
        logger.warning("Rejected Telebirr callback with bad signature: order_id=%s payment_id=%s",
                       notification.order_id, notification.payment_id)
        raise VerificationError(VerificationErrorKind.BAD_SIGNATURE, "Signature does not match notification")
    if expected_app_id and notification.merchant_app_id and notification.merchant_app_id != expected_app_id:
        logger.warning("Rejected Telebirr callback for foreign appid=%s order_id=%s",
                       notification.merchant_app_id, notification.order_id)
        raise VerificationError(VerificationErrorKind.BAD_SIGNATURE, "Notification addressed to another merchant")
    return outcome_for(notification)
