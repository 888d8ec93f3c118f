from dataclasses import dataclass

from django.conf import settings

from .exceptions import ConfigError

REQUIRED_SETTINGS = (
    "TELEBIRR_APP_ID",
    "TELEBIRR_FABRIC_APP_ID",
    "TELEBIRR_SHORT_CODE",
    "TELEBIRR_APP_SECRET",
    "TELEBIRR_BASE_URL",
    "TELEBIRR_NOTIFY_URL",
    "TELEBIRR_RETURN_URL",
    "TELEBIRR_PRIVATE_KEY",
    "TELEBIRR_PUBLIC_KEY",
)

CREATE_ORDER_PATH = "/apiaccess/payment/gateway/create"
QUERY_ORDER_PATH = "/apiaccess/payment/gateway/query"
PAYMENT_PAGE_PATH = "/apiaccess/payment/gateway"

CURRENCY = "ETB"
PAYMENT_WINDOW_SECONDS = 15 * 60
APP_NAME = "PharmaFlow"
APP_VERSION = "1.0.0"


@dataclass(frozen=True)
class TelebirrConfig:
    app_id: str
    fabric_app_id: str
    short_code: str
    app_secret: str
    base_url: str
    notify_url: str
    return_url: str
    private_key: str
    public_key: str
    h5_url: str = "https://196.188.120.3:38443"
    receive_name: str = "PharmaFlow Pharmacy"
    timeout_seconds: int = 30

    @property
    def create_order_url(self) -> str:
        return self.base_url.rstrip("/") + CREATE_ORDER_PATH

    @property
    def query_order_url(self) -> str:
        return self.base_url.rstrip("/") + QUERY_ORDER_PATH

    @property
    def user_agent(self) -> str:
        return f"{APP_NAME}/{APP_VERSION}"


def load_config() -> TelebirrConfig:
    """Build the merchant configuration from Django settings.

    Raises :class:`ConfigError` naming every missing value; there is no
    degraded mode.
    """
    missing = [name for name in REQUIRED_SETTINGS if not str(getattr(settings, name, "") or "").strip()]
    if missing:
        raise ConfigError(missing)

    return TelebirrConfig(
        app_id=settings.TELEBIRR_APP_ID,
        fabric_app_id=settings.TELEBIRR_FABRIC_APP_ID,
        short_code=settings.TELEBIRR_SHORT_CODE,
        app_secret=settings.TELEBIRR_APP_SECRET,
        base_url=settings.TELEBIRR_BASE_URL,
        notify_url=settings.TELEBIRR_NOTIFY_URL,
        return_url=settings.TELEBIRR_RETURN_URL,
        private_key=settings.TELEBIRR_PRIVATE_KEY,
        public_key=settings.TELEBIRR_PUBLIC_KEY,
        h5_url=getattr(settings, "TELEBIRR_H5_URL", None) or TelebirrConfig.h5_url,
        receive_name=getattr(settings, "TELEBIRR_RECEIVE_NAME", None) or TelebirrConfig.receive_name,
        timeout_seconds=int(getattr(settings, "TELEBIRR_TIMEOUT_SECONDS", 30) or 30),
    )
