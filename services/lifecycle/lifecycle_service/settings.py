"""Settings for the lifecycle microservice."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict
from urllib.parse import urlparse

from celery.schedules import crontab

BASE_DIR = Path(__file__).resolve().parent.parent


def _flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).lower() in {"1", "true", "yes"}


SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "lifecycle-service-secret-key")
DEBUG = _flag("DJANGO_DEBUG")
ALLOWED_HOSTS = os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",")

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "django_celery_results",
    "rest_framework",
    "corsheaders",
    "audit",
    "notifications",
    "tickets",
    "subscriptions",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "lifecycle_service.urls"

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
    }
]

WSGI_APPLICATION = "lifecycle_service.wsgi.application"
ASGI_APPLICATION = "lifecycle_service.asgi.application"


def _database_settings() -> Dict[str, Dict[str, str]]:
    url = (
        os.environ.get("LIFECYCLE_DATABASE_URL")
        or os.environ.get("DATABASE_URL")
        or "sqlite:///db.sqlite3"
    )
    parsed = urlparse(url)
    if parsed.scheme in {"postgres", "postgresql"}:
        return {
            "default": {
                "ENGINE": "django.db.backends.postgresql",
                "NAME": parsed.path.lstrip("/"),
                "USER": parsed.username or "",
                "PASSWORD": parsed.password or "",
                "HOST": parsed.hostname or "localhost",
                "PORT": str(parsed.port or 5432),
            }
        }

    if parsed.scheme == "sqlite":
        db_path = parsed.path.lstrip("/") or ":memory:"
        if url.startswith("sqlite:////"):
            name = "/" + db_path
        elif db_path == ":memory:":
            name = db_path
        else:
            name = str(BASE_DIR / db_path)
        return {
            "default": {
                "ENGINE": "django.db.backends.sqlite3",
                "NAME": name,
            }
        }

    raise ValueError("Supported database URLs: postgresql:// or sqlite:///")


DATABASES = _database_settings()


def _cache_settings() -> Dict[str, Dict[str, Any]]:
    # The scan lock lives in this cache; LocMem is per process, so deployments
    # with several workers need LIFECYCLE_CACHE_URL or a Redis broker URL.
    broker = os.environ.get("LIFECYCLE_BROKER_URL") or os.environ.get("CELERY_BROKER_URL") or ""
    url = os.environ.get("LIFECYCLE_CACHE_URL") or (broker if broker.startswith("redis") else "")
    if url:
        return {
            "default": {
                "BACKEND": "django.core.cache.backends.redis.RedisCache",
                "LOCATION": url,
            }
        }
    return {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "lifecycle-service",
        }
    }


CACHES = _cache_settings()

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.environ.get("TZ", "Asia/Jakarta")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = str(BASE_DIR / "staticfiles")

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

CORS_ALLOW_ALL_ORIGINS = True

REST_FRAMEWORK = {
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "DEFAULT_PARSER_CLASSES": ["rest_framework.parsers.JSONParser"],
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "lifecycle_service.authentication.ActorHeaderAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.IsAuthenticated"],
    "UNAUTHENTICATED_USER": None,
    "EXCEPTION_HANDLER": "lifecycle_service.errors.exception_handler",
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": os.environ.get("LOG_LEVEL", "INFO"),
    },
}

# Outbound mail and collaborators.
EMAIL_BACKEND = os.environ.get(
    "EMAIL_BACKEND", "django.core.mail.backends.smtp.EmailBackend"
)
EMAIL_HOST = os.environ.get("EMAIL_HOST", "localhost")
EMAIL_PORT = int(os.environ.get("EMAIL_PORT", "25"))
EMAIL_HOST_USER = os.environ.get("EMAIL_HOST_USER", "")
EMAIL_HOST_PASSWORD = os.environ.get("EMAIL_HOST_PASSWORD", "")
EMAIL_USE_TLS = _flag("EMAIL_USE_TLS")
DEFAULT_FROM_EMAIL = os.environ.get("DEFAULT_FROM_EMAIL", "noreply@localhost")
OPERATIONS_EMAIL = os.environ.get("OPERATIONS_EMAIL", "it-support@localhost")
MAIL_MAX_ATTEMPTS = int(os.environ.get("MAIL_MAX_ATTEMPTS", "5"))

IDENTITY_SERVICE_URL = os.environ.get("IDENTITY_SERVICE_URL", "")
SERVICE_TIMEOUT = float(os.environ.get("SERVICE_TIMEOUT", "5"))

# Lifecycle schedule.
SUBSCRIPTION_SCAN_HOUR = int(os.environ.get("SUBSCRIPTION_SCAN_HOUR", "8"))
SUBSCRIPTION_SCAN_MINUTE = int(os.environ.get("SUBSCRIPTION_SCAN_MINUTE", "0"))
SUBSCRIPTION_SCAN_LOCK_SECONDS = int(os.environ.get("SUBSCRIPTION_SCAN_LOCK_SECONDS", "3600"))
TICKET_ESCALATION_THRESHOLD = float(os.environ.get("TICKET_ESCALATION_THRESHOLD", "0.25"))
TICKET_ESCALATION_INTERVAL_MINUTES = int(
    os.environ.get("TICKET_ESCALATION_INTERVAL_MINUTES", "15")
)
TICKET_AUTOCLOSE_DAYS = int(os.environ.get("TICKET_AUTOCLOSE_DAYS", "3"))


def _broker_url() -> str:
    return (
        os.environ.get("LIFECYCLE_BROKER_URL")
        or os.environ.get("CELERY_BROKER_URL")
        or "redis://localhost:6379/0"
    )


CELERY_BROKER_URL = _broker_url()
CELERY_RESULT_BACKEND = (
    os.environ.get("LIFECYCLE_RESULT_BACKEND")
    or os.environ.get("CELERY_RESULT_BACKEND")
    or "django-db"
)
CELERY_TASK_DEFAULT_QUEUE = os.environ.get("LIFECYCLE_QUEUE_NAME", "lifecycle")
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TASK_ACKS_LATE = True
CELERY_TASK_TRACK_STARTED = True
CELERY_RESULT_EXTENDED = True
CELERY_TIMEZONE = TIME_ZONE
CELERY_BEAT_SCHEDULE = {
    "subscription-expiry-scan": {
        "task": "subscriptions.tasks.scan_subscription_expiry",
        "schedule": crontab(hour=SUBSCRIPTION_SCAN_HOUR, minute=SUBSCRIPTION_SCAN_MINUTE),
    },
    "ticket-sla-escalation": {
        "task": "tickets.tasks.escalate_tickets",
        "schedule": TICKET_ESCALATION_INTERVAL_MINUTES * 60,
    },
    "ticket-auto-close": {
        "task": "tickets.tasks.auto_close_tickets",
        "schedule": crontab(hour=SUBSCRIPTION_SCAN_HOUR, minute=30),
    },
}

if _flag("CELERY_ALWAYS_EAGER"):
    CELERY_TASK_ALWAYS_EAGER = True
    CELERY_TASK_EAGER_PROPAGATES = True
