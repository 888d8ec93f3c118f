import secrets
import string
import time
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.utils import timezone

ALNUM = string.ascii_uppercase + string.digits


def generate_order_id(prefix="PF"):
    ts = timezone.now().strftime("%y%m%d%H%M%S")  # 12 chars
    rand = "".join(secrets.choice(ALNUM) for _ in range(6))
    return f"{prefix}{ts}{rand}"


def gen_nonce():
    return secrets.token_hex(16)


def epoch_millis() -> str:
    return str(int(time.time() * 1000))


def to_amount(value) -> Decimal:
    """Parse into a 2dp Decimal; raises ``ValueError`` for junk or non-positive amounts."""
    try:
        q = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"Invalid amount value: {value!r}")
    if not q.is_finite() or q <= 0:
        raise ValueError(f"Amount must be greater than zero, got {value!r}")
    return q


def amount_str(value) -> str:
    return format(to_amount(value), "f")
