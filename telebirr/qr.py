import base64
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from io import BytesIO
from typing import Optional

import qrcode
from django.conf import settings
from django.utils import timezone

from .config import PAYMENT_PAGE_PATH, PAYMENT_WINDOW_SECONDS
from .exceptions import EncodingError
from .utils import to_amount


@dataclass(frozen=True)
class QRPayload:
    display_value: str
    amount: Decimal
    reference: str
    created_at: datetime
    expires_at: datetime

    def as_dict(self) -> dict:
        return {
            "display_value": self.display_value,
            "amount": format(self.amount, "f"),
            "reference": self.reference,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }


def _h5_url() -> str:
    return (getattr(settings, "TELEBIRR_H5_URL", "") or "https://196.188.120.3:38443").rstrip("/")


def encode(payment_id: str, amount, short_code: str) -> str:
    """Payment page URL the customer's Telebirr app opens when scanning the code."""
    if not payment_id or not str(payment_id).strip():
        raise EncodingError("payment_id is empty; refusing to build a QR code that cannot settle")
    try:
        to_amount(amount)
    except ValueError as e:
        raise EncodingError(str(e)) from e
    if not short_code:
        raise EncodingError("short_code is required")
    return f"{_h5_url()}{PAYMENT_PAGE_PATH}/{str(payment_id).strip()}"


def build_payload(payment_id: str, amount, short_code: str, *,
                  created_at: Optional[datetime] = None, order_id: str = "") -> QRPayload:
    display_value = encode(payment_id, amount, short_code)
    created_at = created_at or timezone.now()
    return QRPayload(
        display_value=display_value,
        amount=to_amount(amount),
        reference=payment_id or order_id,
        created_at=created_at,
        expires_at=created_at + timedelta(seconds=PAYMENT_WINDOW_SECONDS),
    )


def render_png_data_uri(display_value: str) -> str:
    if not display_value:
        raise EncodingError("Nothing to render")
    img = qrcode.make(display_value)
    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("utf-8")
