"""
Deal Desk – Django Settings (Infrastructure Only)
==================================================
Django provides the ORM, transactions and settings container for the
tax & fee engine. Engine logic never imports from here directly; it
reads engine knobs through core.config.FeeEngineSettings.from_django().
"""

import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get("DEALDESK_SECRET_KEY", "dealdesk-dev-key-replace-before-deployment")

DEBUG = os.environ.get("DEALDESK_DEBUG", "1") == "1"

ALLOWED_HOSTS = []

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.contenttypes",
    # ── Deal Desk Modules ──────────────────────────────────
    "engines.tax_fees.persistence.apps.TaxFeesPersistenceConfig",
]

# ── Database ──────────────────────────────────────────────────
# SQLite for development. Production DB configured separately.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("DEALDESK_DB_PATH", BASE_DIR / "db.sqlite3"),
    }
}

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# ── Default Primary Key ──────────────────────────────────────
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── Tax & Fee Engine ─────────────────────────────────────────
# Read by core.config.FeeEngineSettings.from_django().
TAX_FEES = {
    "TAX_NAME_KEYWORDS": ("tax", "sales"),
    "CURRENCY_DECIMALS": 2,
    "ROUNDING": "ROUND_HALF_UP",
}

# ── Logging ──────────────────────────────────────────────────
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "loggers": {
        "dealdesk": {
            "handlers": ["console"],
            "level": os.environ.get("DEALDESK_LOG_LEVEL", "INFO"),
        },
    },
}
