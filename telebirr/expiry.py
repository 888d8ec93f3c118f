from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from django.utils import timezone

from .config import PAYMENT_WINDOW_SECONDS
from .exceptions import PaymentExpired

WARNING_WINDOW = timedelta(seconds=60)


class ExpiryState(str, Enum):
    ACTIVE = "ACTIVE"
    EXPIRING_SOON = "EXPIRING_SOON"
    EXPIRED = "EXPIRED"


class PaymentAction(str, Enum):
    SHARE = "share"
    DOWNLOAD = "download"
    COPY = "copy"
    REGENERATE = "regenerate"


class ExpiryTracker:
    """Countdown for one QR payload, from ``created_at`` to ``created_at + timeout``.

    Pure wall-clock comparisons; callers pass ``now`` (defaults to
    ``timezone.now()``). ``EXPIRED`` is terminal, a new tracker comes with a
    new payload.
    """

    def __init__(self, created_at: datetime, timeout: timedelta = timedelta(seconds=PAYMENT_WINDOW_SECONDS),
                 warning: timedelta = WARNING_WINDOW):
        self.created_at = created_at
        self.timeout = timeout
        self.warning = warning

    @classmethod
    def for_payload(cls, payload) -> "ExpiryTracker":
        return cls(payload.created_at, payload.expires_at - payload.created_at)

    @property
    def expires_at(self) -> datetime:
        return self.created_at + self.timeout

    def remaining(self, now: Optional[datetime] = None) -> timedelta:
        now = now or timezone.now()
        left = self.expires_at - max(now, self.created_at)
        return max(left, timedelta(0))

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.remaining(now) <= timedelta(0)

    def state(self, now: Optional[datetime] = None) -> ExpiryState:
        left = self.remaining(now)
        if left <= timedelta(0):
            return ExpiryState.EXPIRED
        if left < self.warning:
            return ExpiryState.EXPIRING_SOON
        return ExpiryState.ACTIVE

    def ensure_action_allowed(self, action, now: Optional[datetime] = None) -> None:
        action = PaymentAction(action)
        if action is PaymentAction.REGENERATE:
            return
        if self.is_expired(now):
            raise PaymentExpired(action.value)

    def snapshot(self, now: Optional[datetime] = None) -> dict:
        now = now or timezone.now()
        return {
            "state": self.state(now).value,
            "remaining_seconds": int(self.remaining(now).total_seconds()),
            "expires_at": self.expires_at.isoformat(),
        }
