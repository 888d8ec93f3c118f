import json

from jwcrypto import jwk

from telebirr import signing
from telebirr.config import TelebirrConfig

_KEY = jwk.JWK.generate(kty="RSA", size=2048)
PRIVATE_PEM = _KEY.export_to_pem(private_key=True, password=None).decode("utf-8")
PUBLIC_PEM = _KEY.export_to_pem().decode("utf-8")

_OTHER = jwk.JWK.generate(kty="RSA", size=2048)
OTHER_PRIVATE_PEM = _OTHER.export_to_pem(private_key=True, password=None).decode("utf-8")

KEY_SETTINGS = {"TELEBIRR_PRIVATE_KEY": PRIVATE_PEM, "TELEBIRR_PUBLIC_KEY": PUBLIC_PEM}


def make_config(**overrides) -> TelebirrConfig:
    values = dict(
        app_id="test-app-id",
        fabric_app_id="test-fabric-app-id",
        short_code="192321",
        app_secret="test-app-secret",
        base_url="https://gateway.test",
        notify_url="https://pharmaflow.test/telebirr/callback",
        return_url="https://pharmaflow.test/payment/return",
        private_key=PRIVATE_PEM,
        public_key=PUBLIC_PEM,
        h5_url="https://h5.gateway.test",
    )
    values.update(overrides)
    return TelebirrConfig(**values)


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else (json.dumps(body) if body is not None else "")

    def json(self):
        if self._body is None:
            raise ValueError("No JSON object could be decoded")
        return self._body


def created_body(pay_id="PAY-9", order_id="SALE-1", amount="25.50"):
    return {
        "code": "00",
        "message": "success",
        "data": {
            "payId": pay_id,
            "out_trade_no": order_id,
            "total_amount": amount,
            "timestamp": "1670575472482",
            "sign": "gateway-signature",
        },
    }


def signed_callback(private_key=PRIVATE_PEM, **overrides) -> dict:
    data = {
        "notify_url": "https://pharmaflow.test/telebirr/callback",
        "appid": "test-app-id",
        "notify_time": "1670575472482",
        "merch_code": "192321",
        "merch_order_id": "SALE-1",
        "payment_order_id": "PAY-9",
        "total_amount": "25.50",
        "trans_id": "49485948475845",
        "trans_currency": "ETB",
        "trade_status": "Completed",
        "trans_end_time": "1670575472000",
    }
    data.update(overrides)
    data["sign"] = signing.sign(data, private_key)
    data["sign_type"] = signing.SIGN_TYPE
    return data
