import secrets
from pathlib import Path
from urllib.parse import parse_qsl, unquote, urlparse

from decouple import Csv, config

BASE_DIR = Path(__file__).resolve().parent.parent


def get_csv(name: str, default: str = "") -> list[str]:
    return [item for item in config(name, cast=Csv(), default=default) if item]


DEBUG = config("DJANGO_DEBUG", cast=bool, default=False)
SECRET_KEY = config("DJANGO_SECRET_KEY", default="")
if not SECRET_KEY:
    if DEBUG:
        SECRET_KEY = secrets.token_urlsafe(64)
    else:
        raise ValueError("DJANGO_SECRET_KEY must be configured when DJANGO_DEBUG is False.")
ALLOWED_HOSTS = get_csv("DJANGO_ALLOWED_HOSTS", default="localhost,127.0.0.1")

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "corsheaders",
    "rest_framework",
    "storefront",
]

MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "project_settings.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "project_settings.wsgi.application"


def _database_from_url(database_url: str) -> dict:
    if not database_url:
        return {"ENGINE": "django.db.backends.sqlite3", "NAME": BASE_DIR / "db.sqlite3"}

    parsed = urlparse(database_url)
    scheme = parsed.scheme.lower()
    if scheme == "sqlite":
        # sqlite:////abs/path.db is absolute, sqlite:///gallery.db is relative to BASE_DIR.
        if database_url.startswith("sqlite:////"):
            name = parsed.path
        else:
            name = BASE_DIR / (parsed.path.lstrip("/") or "db.sqlite3")
        return {"ENGINE": "django.db.backends.sqlite3", "NAME": name}

    if scheme not in {"postgres", "postgresql"}:
        raise ValueError(f"Unsupported DATABASE_URL scheme: {parsed.scheme}")

    database = {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": parsed.path.lstrip("/"),
        "USER": unquote(parsed.username or ""),
        "PASSWORD": unquote(parsed.password or ""),
        "HOST": parsed.hostname or "",
        "PORT": str(parsed.port or ""),
        "CONN_MAX_AGE": config("DB_CONN_MAX_AGE", cast=int, default=60),
    }
    options = dict(parse_qsl(parsed.query))
    if options:
        database["OPTIONS"] = options
    return database


DATABASES = {"default": _database_from_url(config("DATABASE_URL", default=""))}

LANGUAGE_CODE = "en-us"

TIME_ZONE = "UTC"

USE_I18N = True

USE_TZ = True

STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

CORS_ALLOWED_ORIGINS = get_csv("CORS_ALLOWED_ORIGINS")
CORS_ALLOW_CREDENTIALS = config("CORS_ALLOW_CREDENTIALS", cast=bool, default=True)
if DEBUG and not CORS_ALLOWED_ORIGINS:
    CORS_ALLOW_ALL_ORIGINS = True

CSRF_TRUSTED_ORIGINS = get_csv("CSRF_TRUSTED_ORIGINS")

# The storefront is a guest checkout; customer login lives outside this service.
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (),
    "DEFAULT_PERMISSION_CLASSES": ("rest_framework.permissions.AllowAny",),
    "DEFAULT_THROTTLE_CLASSES": (
        "rest_framework.throttling.AnonRateThrottle",
        "rest_framework.throttling.ScopedRateThrottle",
    ),
    "DEFAULT_THROTTLE_RATES": {
        "anon": config("DRF_THROTTLE_ANON", default="120/min"),
        "checkout_create": config("DRF_THROTTLE_CHECKOUT_CREATE", default="60/hour"),
        "discount_validate": config("DRF_THROTTLE_DISCOUNT_VALIDATE", default="120/hour"),
        "download_access": config("DRF_THROTTLE_DOWNLOAD_ACCESS", default="180/hour"),
    },
}

# Public base URL of this API (used for download links) and of the storefront UI
# (used for Stripe success/cancel redirects).
APP_URL = config("APP_URL", default="http://localhost:8000").strip()
FRONTEND_APP_URL = config("FRONTEND_APP_URL", default="http://127.0.0.1:5173").strip()

# Stripe Checkout. Keys are read at call time so the server can boot without them.
STRIPE_SECRET_KEY = config("STRIPE_SECRET_KEY", default="")
STRIPE_PUBLISHABLE_KEY = config("STRIPE_PUBLISHABLE_KEY", default="")
STRIPE_WEBHOOK_SECRET = config("STRIPE_WEBHOOK_SECRET", default="")
STRIPE_WEBHOOK_TOLERANCE_SECONDS = config("STRIPE_WEBHOOK_TOLERANCE_SECONDS", cast=int, default=300)
STRIPE_TIMEOUT_SECONDS = config("STRIPE_TIMEOUT_SECONDS", cast=int, default=10)

# Shipping (US only, integer cents).
SHIPPING_FLAT_RATE_CENTS = config("SHIPPING_FLAT_RATE_CENTS", cast=int, default=1500)
FREE_SHIPPING_THRESHOLD_CENTS = config("FREE_SHIPPING_THRESHOLD_CENTS", cast=int, default=15000)
SHIPPING_ESTIMATED_DAYS = config("SHIPPING_ESTIMATED_DAYS", default="5-7 business days")
SHIPPING_ALLOWED_COUNTRIES = get_csv("SHIPPING_ALLOWED_COUNTRIES", default="US")

# Digital delivery.
DOWNLOAD_TOKEN_TTL_DAYS = config("DOWNLOAD_TOKEN_TTL_DAYS", cast=int, default=7)
DOWNLOAD_MAX_PER_TOKEN = config("DOWNLOAD_MAX_PER_TOKEN", cast=int, default=5)

ASSET_STORAGE_BACKEND = config("ASSET_STORAGE_BACKEND", default="local").strip().lower()
DIGITAL_ASSETS_DIR = config("DIGITAL_ASSETS_DIR", default=str(BASE_DIR / "digital-assets"))
ASSET_STORAGE_BUCKET = config("ASSET_STORAGE_BUCKET", default="")
ASSET_STORAGE_CHUNK_SIZE = config("ASSET_STORAGE_CHUNK_SIZE", cast=int, default=64 * 1024)

# S3 compatible storage (Cloudflare R2, MinIO, DigitalOcean Spaces, etc).
ASSET_STORAGE_S3_ENDPOINT_URL = config("ASSET_STORAGE_S3_ENDPOINT_URL", default="")
ASSET_STORAGE_S3_REGION = config("ASSET_STORAGE_S3_REGION", default="us-east-1")
ASSET_STORAGE_S3_ACCESS_KEY_ID = config("ASSET_STORAGE_S3_ACCESS_KEY_ID", default="")
ASSET_STORAGE_S3_SECRET_ACCESS_KEY = config("ASSET_STORAGE_S3_SECRET_ACCESS_KEY", default="")

# Production security defaults.
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
SECURE_HSTS_SECONDS = config("DJANGO_SECURE_HSTS_SECONDS", cast=int, default=0 if DEBUG else 31536000)
SECURE_HSTS_INCLUDE_SUBDOMAINS = config("DJANGO_SECURE_HSTS_INCLUDE_SUBDOMAINS", cast=bool, default=not DEBUG)
SECURE_SSL_REDIRECT = config("DJANGO_SECURE_SSL_REDIRECT", cast=bool, default=not DEBUG)
SESSION_COOKIE_SECURE = config("DJANGO_SESSION_COOKIE_SECURE", cast=bool, default=not DEBUG)
CSRF_COOKIE_SECURE = config("DJANGO_CSRF_COOKIE_SECURE", cast=bool, default=not DEBUG)
SECURE_CONTENT_TYPE_NOSNIFF = True
SECURE_REFERRER_POLICY = config("DJANGO_SECURE_REFERRER_POLICY", default="same-origin")
X_FRAME_OPTIONS = "DENY"

# Logging
DJANGO_LOG_LEVEL = config("DJANGO_LOG_LEVEL", default="DEBUG" if DEBUG else "INFO").upper()
API_LOG_LEVEL = config("API_LOG_LEVEL", default=DJANGO_LOG_LEVEL).upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": DJANGO_LOG_LEVEL,
    },
    "loggers": {
        "storefront": {
            "handlers": ["console"],
            "level": API_LOG_LEVEL,
            "propagate": False,
        },
    },
}
