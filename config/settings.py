"""
Shopfront - Django Settings (Infrastructure Only)
==================================================
Django serves as the framework container for the storefront offer engine.
Engine logic lives in engines/ and does not import Django.

Offer engine behavior is configured through OFFER_ENGINE below.
"""

import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get("SHOPFRONT_SECRET_KEY", "shopfront-dev-key-replace-before-deployment")

DEBUG = os.environ.get("SHOPFRONT_DEBUG", "1") == "1"

ALLOWED_HOSTS = [
    host for host in os.environ.get("SHOPFRONT_ALLOWED_HOSTS", "").split(",") if host
]

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    # ── Shopfront Modules ─────────────────────────────────
    "core.offer_store",
]

# ── Middleware ────────────────────────────────────────────────
MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

# ── URL & WSGI ────────────────────────────────────────────────
ROOT_URLCONF = "config.urls"
WSGI_APPLICATION = "config.wsgi.application"

# ── Database ──────────────────────────────────────────────────
# SQLite for development. Production DB configured separately.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── Offer Engine ──────────────────────────────────────────────
# Caps left as None are unbounded.
OFFER_ENGINE = {
    "CURRENCY_SYMBOL": "₹",
    "POTENTIAL_MAX_MISSING": 2,
    "CATALOG_REFRESH_SECONDS": 0,
    "TELEMETRY_QUEUE_SIZE": 1000,
    "MAX_OFFERS": None,
    "MAX_TOTAL_DISCOUNT": None,
    "MAX_DISCOUNT_PERCENT": None,
}

# Per-channel caps overriding the defaults above.
OFFER_ENGINE_CHANNEL_OPTIONS = {}

# ── Logging ───────────────────────────────────────────────────
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "loggers": {
        "shopfront": {
            "handlers": ["console"],
            "level": os.environ.get("SHOPFRONT_LOG_LEVEL", "INFO"),
            "propagate": True,
        },
    },
}
