"""
Conversion relay settings
"""

from pathlib import Path
import environ, os

LOG_LEVEL = os.getenv("DJANGO_LOG_LEVEL", "INFO")

BASE_DIR = Path(__file__).resolve().parent.parent
env = environ.Env(
    DEBUG=(bool, False),
)
# loads .env next to manage.py when running locally
env_file = BASE_DIR / ".env"
if env_file.exists():
    environ.Env.read_env(env_file)

# Ensure local dev has a sensible default release environment identifier.
# setdefault means staging/prod, which explicitly pass this variable, will not
# be overridden.
os.environ.setdefault("TRACKING_RELEASE_ENV", "local")
RELEASE_ENV = os.getenv("TRACKING_RELEASE_ENV", "local")

if RELEASE_ENV == "local":
    os.environ.setdefault("DEBUG", "1")
    os.environ.setdefault("DJANGO_SECRET_KEY", "dev-insecure")

DEBUG = env.bool("DEBUG", default=False)
SECRET_KEY = env("DJANGO_SECRET_KEY")
ALLOWED_HOSTS = env.list("ALLOWED_HOSTS", default=["*"] if DEBUG else [])

# Listen port for `manage.py runserver` (see conversion_events runserver override).
PORT = env.int("PORT", default=3001)

INSTALLED_APPS = [
    # first-party
    "config",
    "conversion_events",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "config.urls"
ASGI_APPLICATION = "config.asgi.application"

# Events are forwarded, never stored.
DATABASES = {}

USE_TZ = True
TIME_ZONE = "UTC"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ────────── Destinations ──────────
# A destination is only called when both halves of its credential pair are
# present; otherwise its result is reported as skipped.

# Google Analytics 4 Measurement Protocol
GA_MEASUREMENT_ID = env("GA_MEASUREMENT_ID", default="")  # e.g. G-XXXXXXXXXX
GA_API_SECRET = env("GA_API_SECRET", default="")

# Meta Conversions API
META_PIXEL_ID = env("META_PIXEL_ID", default="")
FACEBOOK_ACCESS_TOKEN = env("FACEBOOK_ACCESS_TOKEN", default="")
FACEBOOK_TEST_EVENT_CODE = env("FACEBOOK_TEST_EVENT_CODE", default="")
FACEBOOK_CAPI_TEST_MODE = env.bool("FACEBOOK_CAPI_TEST_MODE", default=False)

# TikTok Events API
TIKTOK_PIXEL_ID = env("TIKTOK_PIXEL_ID", default="")
TIKTOK_ACCESS_TOKEN = env("TIKTOK_ACCESS_TOKEN", default="")
TIKTOK_TEST_EVENT_CODE = env("TIKTOK_TEST_EVENT_CODE", default="")
TIKTOK_CAPI_TEST_MODE = env.bool("TIKTOK_CAPI_TEST_MODE", default=False)

# Per-call transport timeout for outbound collector requests
TRACKING_HTTP_TIMEOUT_SECONDS = env.float("TRACKING_HTTP_TIMEOUT_SECONDS", default=6.0)
# Event names the browser endpoint (/api/track/) will accept
TRACKING_BROWSER_ALLOWED_EVENTS = env.list("TRACKING_BROWSER_ALLOWED_EVENTS", default=["add_to_cart"])
# Currency used by the checkout/purchase routes when building events server-side
TRACKING_DEFAULT_CURRENCY = env("TRACKING_DEFAULT_CURRENCY", default="PHP")

# ────────── Observability ──────────
OTEL_EXPORTER_OTLP_ENDPOINT = env("OTEL_EXPORTER_OTLP_ENDPOINT", default="http://localhost:4317")
OTEL_EXPORTER_OTLP_INSECURE = env.bool("OTEL_EXPORTER_OTLP_INSECURE", default=True)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,

    # ---------------- Handlers ----------------
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
            "stream": "ext://sys.stdout",
        },
    },

    # --------------- Formatters ---------------
    "formatters": {
        "verbose": {
            "format": "{asctime} [{levelname}] {name}: {message}",
            "style": "{",
        },
    },

    # --------------- Root logger --------------
    "root": {
        "handlers": ["console"],
        "level": LOG_LEVEL,
    },

    # --------------- Other loggers -----------
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,         # prevent double-logging
        },
        # Outbound collector calls are logged by httpx at INFO; keep them quiet.
        "httpx": {
            "handlers": ["console"],
            "level": "WARNING",
            "propagate": False,
        },
    },
}
