from dotenv import load_dotenv
load_dotenv()

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent.parent

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "")
DEBUG = os.getenv("DJANGO_DEBUG", "false").lower() in ("1", "true", "yes")
ALLOWED_HOSTS = [h.strip() for h in os.getenv("DJANGO_ALLOWED_HOSTS", "localhost").split(",") if h.strip()]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "pharmacy",
    "telebirr",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "pharmaflow.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "pharmaflow.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.getenv("DJANGO_DB_PATH", str(BASE_DIR / "db.sqlite3")),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = "Africa/Addis_Ababa"
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"

# ---------- Telebirr ----------
# Required values are validated by telebirr.config.load_config() at startup.
TELEBIRR_APP_ID         = os.getenv("TELEBIRR_APP_ID", "")
TELEBIRR_FABRIC_APP_ID  = os.getenv("TELEBIRR_FABRIC_APP_ID", "")
TELEBIRR_SHORT_CODE     = os.getenv("TELEBIRR_SHORT_CODE", "")
TELEBIRR_APP_SECRET     = os.getenv("TELEBIRR_APP_SECRET", "")
TELEBIRR_BASE_URL       = os.getenv("TELEBIRR_BASE_URL", "")
TELEBIRR_NOTIFY_URL     = os.getenv("TELEBIRR_NOTIFY_URL", "")
TELEBIRR_RETURN_URL     = os.getenv("TELEBIRR_RETURN_URL", "")
TELEBIRR_PRIVATE_KEY    = os.getenv("TELEBIRR_PRIVATE_KEY", "")
TELEBIRR_PUBLIC_KEY     = os.getenv("TELEBIRR_PUBLIC_KEY", "")
# Optional
TELEBIRR_H5_URL         = os.getenv("TELEBIRR_H5_URL", "https://196.188.120.3:38443")
TELEBIRR_RECEIVE_NAME   = os.getenv("TELEBIRR_RECEIVE_NAME", "PharmaFlow Pharmacy")
TELEBIRR_TIMEOUT_SECONDS = int(os.getenv("TELEBIRR_TIMEOUT_SECONDS", "30"))

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "root": {"handlers": ["console"], "level": os.getenv("DJANGO_LOG_LEVEL", "INFO")},
    "loggers": {
        "telebirr": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "pharmacy": {"handlers": ["console"], "level": "INFO", "propagate": False},
    },
}
