"""Django settings for the delivery engine project."""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "insecure-dev-key-change-me")

DEBUG = os.getenv("DEBUG", "false").lower() == "true"

ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "rest_framework",
    "delivery.apps.DeliveryConfig",
]

MIDDLEWARE = [
    "delivery.middleware.RequestContextMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "delivery_service.urls"

WSGI_APPLICATION = "delivery_service.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.getenv("POSTGRES_DB", "delivery"),
        "USER": os.getenv("POSTGRES_USER", "delivery"),
        "PASSWORD": os.getenv("POSTGRES_PASSWORD", ""),
        "HOST": os.getenv("POSTGRES_HOST", "localhost"),
        "PORT": os.getenv("POSTGRES_PORT", "5432"),
        "CONN_MAX_AGE": 60,
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = False
USE_TZ = True

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.AllowAny"],
    "EXCEPTION_HANDLER": "delivery.exceptions.handlers.custom_exception_handler",
    "UNAUTHENTICATED_USER": None,
}

# SMTP settings used by the EMAIL channel adapter
EMAIL_HOST = os.getenv("EMAIL_HOST", "localhost")
EMAIL_PORT = int(os.getenv("EMAIL_PORT", "587"))
EMAIL_HOST_USER = os.getenv("EMAIL_HOST_USER", "")
EMAIL_HOST_PASSWORD = os.getenv("EMAIL_HOST_PASSWORD", "")
EMAIL_USE_TLS = os.getenv("EMAIL_USE_TLS", "true").lower() == "true"
DEFAULT_FROM_EMAIL = os.getenv("DEFAULT_FROM_EMAIL", "noreply@example.com")
EMAIL_TIMEOUT = int(os.getenv("EMAIL_TIMEOUT", "10"))

# Delivery engine configuration, validated by delivery.config.EngineSettings
DELIVERY_ENGINE = {
    "WORKER_COUNT": int(os.getenv("DELIVERY_WORKER_COUNT", "4")),
    "SEND_TIMEOUT_SECONDS": float(os.getenv("DELIVERY_SEND_TIMEOUT_SECONDS", "30")),
    "MAX_LANE_SKIPS": int(os.getenv("DELIVERY_MAX_LANE_SKIPS", "8")),
    "JOB_STORE": os.getenv("DELIVERY_JOB_STORE", "django"),
    "RETRY": {
        "MAX_ATTEMPTS": int(os.getenv("DELIVERY_RETRY_MAX_ATTEMPTS", "3")),
        "INITIAL_DELAY_MS": int(os.getenv("DELIVERY_RETRY_INITIAL_DELAY_MS", "1000")),
        "MAX_DELAY_MS": int(os.getenv("DELIVERY_RETRY_MAX_DELAY_MS", "300000")),
        "BACKOFF_FACTOR": float(os.getenv("DELIVERY_RETRY_BACKOFF_FACTOR", "2")),
        "TICK_SECONDS": float(os.getenv("DELIVERY_RETRY_TICK_SECONDS", "1")),
    },
    "ALERTS": {
        "INTERVAL_SECONDS": float(os.getenv("DELIVERY_ALERT_INTERVAL_SECONDS", "0")),
        "FAILURE_RATE_THRESHOLD": float(
            os.getenv("DELIVERY_ALERT_FAILURE_RATE_THRESHOLD", "0.10")
        ),
        "RETRY_ATTEMPTS_THRESHOLD": float(
            os.getenv("DELIVERY_ALERT_RETRY_ATTEMPTS_THRESHOLD", "3")
        ),
        "CONSECUTIVE_FAILURES_THRESHOLD": int(
            os.getenv("DELIVERY_ALERT_CONSECUTIVE_FAILURES_THRESHOLD", "5")
        ),
        "HOURLY_FAILURE_RATE_THRESHOLD": float(
            os.getenv("DELIVERY_ALERT_HOURLY_FAILURE_RATE_THRESHOLD", "0.15")
        ),
    },
    "GATEWAYS": {
        "SMS_URL": os.getenv("DELIVERY_SMS_GATEWAY_URL", ""),
        "PUSH_URL": os.getenv("DELIVERY_PUSH_GATEWAY_URL", ""),
        "API_KEY": os.getenv("DELIVERY_GATEWAY_API_KEY", ""),
    },
}

TEST_MODE = False
