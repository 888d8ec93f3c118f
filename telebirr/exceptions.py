from enum import Enum

from django.core.exceptions import ImproperlyConfigured


class TelebirrError(Exception): pass


class ConfigError(TelebirrError, ImproperlyConfigured):
    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(
            "Missing required Telebirr settings: " + ", ".join(self.missing)
        )


class SigningError(TelebirrError): pass


class EncodingError(TelebirrError): pass


class PaymentErrorKind(str, Enum):
    TIMEOUT = "TIMEOUT"
    NETWORK_UNREACHABLE = "NETWORK_UNREACHABLE"
    GATEWAY_REJECTED = "GATEWAY_REJECTED"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"


class PaymentError(TelebirrError):
    """A payment-creation or query call that did not yield a usable response.

    Only ``TIMEOUT`` and ``NETWORK_UNREACHABLE`` are retryable, and a retry
    must go out with a fresh order id and nonce since the gateway may already
    have accepted the first attempt.
    """

    def __init__(self, kind, message="", *, http_status=None, raw_body=None, code=None):
        self.kind = PaymentErrorKind(kind)
        self.http_status = http_status
        self.raw_body = raw_body
        self.code = code
        self.message = message
        super().__init__(f"{self.kind.value}: {message}" if message else self.kind.value)

    @property
    def retryable(self) -> bool:
        return self.kind in (PaymentErrorKind.TIMEOUT, PaymentErrorKind.NETWORK_UNREACHABLE)

    def as_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "http_status": self.http_status,
            "code": self.code,
            "retryable": self.retryable,
        }


class VerificationErrorKind(str, Enum):
    BAD_SIGNATURE = "BAD_SIGNATURE"
    MALFORMED = "MALFORMED"


class VerificationError(TelebirrError):
    def __init__(self, kind, message=""):
        self.kind = VerificationErrorKind(kind)
        super().__init__(f"{self.kind.value}: {message}" if message else self.kind.value)


class PaymentExpired(TelebirrError):
    def __init__(self, action):
        self.action = action
        super().__init__(f"Payment window expired; '{action}' is not allowed, regenerate the QR code")
