"""
Django settings for the hackhub prize distribution service.

For more information on this file, see
https://docs.djangoproject.com/en/4.2/topics/settings/
"""

import os
import sys

import sentry_sdk
from sentry_sdk.integrations.celery import CeleryIntegration
from sentry_sdk.integrations.django import DjangoIntegration

from config import keys

APP_ENV = os.environ.get("APP_ENV") or "development"
PRODUCTION = "production" in APP_ENV
STAGING = "staging" in APP_ENV
DEVELOPMENT = not (PRODUCTION or STAGING)
TESTING = ("test" in APP_ENV) or ("test" in sys.argv) or ("pytest" in sys.modules)
CELERY_WORKER = os.environ.get("CELERY_WORKER", False)

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

SECRET_KEY = keys.SECRET_KEY

DEBUG = DEVELOPMENT and not TESTING

ALLOWED_HOSTS = os.environ.get("ALLOWED_HOSTS", "*").split(",")


# Application definition

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Installed
    "rest_framework",
    "rest_framework.authtoken",
    "django_filters",
    "health_check",
    "health_check.db",
    "health_check.cache",
    # Custom apps
    "hackhub",
    "ethereum",
    "hackathon",
    "prize_pool",
    "user",
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

ROOT_URLCONF = "hackhub.urls"

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

WSGI_APPLICATION = "hackhub.wsgi.application"

AUTH_USER_MODEL = "user.User"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# Database

if TESTING or not keys.DB_HOST:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.path.join(BASE_DIR, "db.sqlite3"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": keys.DB_NAME,
            "USER": keys.DB_USER,
            "PASSWORD": keys.DB_PASS,
            "HOST": keys.DB_HOST,
            "PORT": keys.DB_PORT,
        }
    }


# Cache
# Distribution locks live in the cache, so every worker must share it.

if TESTING or not keys.REDIS_HOST:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "hackhub",
        }
    }
else:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.redis.RedisCache",
            "LOCATION": f"redis://{keys.REDIS_HOST}:{keys.REDIS_PORT}/1",
            "KEY_PREFIX": "hackhub",
        }
    }


# Rest Framework

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.TokenAuthentication",
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_FILTER_BACKENDS": [
        "django_filters.rest_framework.DjangoFilterBackend",
    ],
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 50,
}


# Internationalization

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = os.path.join(BASE_DIR, "static")


# Logging

LOG_LEVEL = os.environ.get("LOG_LEVEL", "WARNING" if TESTING else "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
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
        "level": LOG_LEVEL,
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": os.environ.get("DJANGO_LOG_LEVEL", "WARNING"),
            "propagate": False,
        },
    },
}


# Celery

CELERY_BROKER_URL = (
    f"redis://{keys.REDIS_HOST}:{keys.REDIS_PORT}/0"
    if keys.REDIS_HOST
    else "memory://"
)
CELERY_RESULT_BACKEND = None
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_ALWAYS_EAGER = TESTING
CELERY_TASK_EAGER_PROPAGATES = TESTING


# Web3

WEB3_PROVIDER_URL = keys.WEB3_PROVIDER_URL
WEB3_CHAIN_ID = int(keys.WEB3_CHAIN_ID)
WEB3_PRIVATE_KEY = keys.WEB3_PRIVATE_KEY
WEB3_PRIZE_POOL_ADDRESS = keys.WEB3_PRIZE_POOL_ADDRESS
WEB3_HACKATHON_REGISTRY_ADDRESS = keys.WEB3_HACKATHON_REGISTRY_ADDRESS
WEB3_REQUEST_TIMEOUT = int(os.environ.get("WEB3_REQUEST_TIMEOUT", 10))


# Prize distribution

DISTRIBUTION_MAX_RETRY_ATTEMPTS = int(
    os.environ.get("DISTRIBUTION_MAX_RETRY_ATTEMPTS", 3)
)
DISTRIBUTION_RETRY_BASE_DELAY_SECONDS = int(
    os.environ.get("DISTRIBUTION_RETRY_BASE_DELAY_SECONDS", 30)
)
DISTRIBUTION_CONFIRMATION_BLOCKS = int(
    os.environ.get("DISTRIBUTION_CONFIRMATION_BLOCKS", 12)
)
DISTRIBUTION_TRANSACTION_TIMEOUT_SECONDS = int(
    os.environ.get("DISTRIBUTION_TRANSACTION_TIMEOUT_SECONDS", 30 * 60)
)
DISTRIBUTION_GAS_LIMIT_MULTIPLIER = float(
    os.environ.get("DISTRIBUTION_GAS_LIMIT_MULTIPLIER", 1.2)
)
DISTRIBUTION_GAS_PRICE_BUFFER_PERCENT = int(
    os.environ.get("DISTRIBUTION_GAS_PRICE_BUFFER_PERCENT", 10)
)
DISTRIBUTION_SCHEDULER_INTERVAL_SECONDS = int(
    os.environ.get("DISTRIBUTION_SCHEDULER_INTERVAL_SECONDS", 60)
)
DISTRIBUTION_MONITOR_INTERVAL_SECONDS = int(
    os.environ.get("DISTRIBUTION_MONITOR_INTERVAL_SECONDS", 60)
)
DISTRIBUTION_SCAN_INTERVAL_SECONDS = int(
    os.environ.get("DISTRIBUTION_SCAN_INTERVAL_SECONDS", 5 * 60)
)


# Sentry

if not TESTING and keys.SENTRY_DSN:
    sentry_sdk.init(
        dsn=keys.SENTRY_DSN,
        environment=APP_ENV,
        integrations=[DjangoIntegration(), CeleryIntegration()],
        send_default_pii=False,
    )
