"""
Django settings for the request-dispatch backend.

Secrets and deployment switches come from the environment (a .env file is
honoured), the same way the dispatch core reads its policy.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-only-insecure-key")
DEBUG = os.getenv("DJANGO_DEBUG", "false").lower() in ("1", "true", "yes")
ALLOWED_HOSTS = [h for h in os.getenv("DJANGO_ALLOWED_HOSTS", "*").split(",") if h]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "rest_framework",
    "dispatch_api",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "helparo_backend.urls"
WSGI_APPLICATION = "helparo_backend.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.getenv("DISPATCH_DB_NAME") or str(BASE_DIR / "db.sqlite3"),
    }
}

# The dispatch core works with naive UTC datetimes.
USE_TZ = False
TIME_ZONE = "UTC"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

REST_FRAMEWORK = {
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "DEFAULT_PARSER_CLASSES": ["rest_framework.parsers.JSONParser"],
    "UNAUTHENTICATED_USER": None,
}

PUSH_GATEWAY_URL = os.getenv("PUSH_GATEWAY_URL")
PUSH_GATEWAY_TIMEOUT = float(os.getenv("PUSH_GATEWAY_TIMEOUT", "5"))

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "loggers": {
        "dispatch": {"handlers": ["console"], "level": os.getenv("DISPATCH_LOG_LEVEL", "INFO")},
        "notifications": {"handlers": ["console"], "level": os.getenv("DISPATCH_LOG_LEVEL", "INFO")},
    },
}
