"""
Base Django settings for the heartbeat project.
"""
import os
from pathlib import Path

import environ

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Initialize environ
env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, []),
)

# Read .env file if it exists
environ.Env.read_env(os.path.join(BASE_DIR, ".env"))

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = env("SECRET_KEY", default="django-insecure-dev-key-change-in-production")

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = env("DEBUG")

ALLOWED_HOSTS = env("ALLOWED_HOSTS")

# Application definition
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Local apps
    "heartbeat",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

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

WSGI_APPLICATION = "config.wsgi.application"

# Database - configured per environment
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

# Internationalization
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# Static files (CSS, JavaScript, Images)
STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
STORAGES = {
    "default": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
    },
    "staticfiles": {
        "BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage",
    },
}

# Default primary key field type
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# =============================================================================
# Heartbeat Monitoring Configuration
# =============================================================================

# Overdue detector tick interval in seconds
OVERDUE_DETECTOR_INTERVAL = env.int("OVERDUE_DETECTOR_INTERVAL", default=5)

# Require the grace period to elapse before a check goes DOWN.
# When False, a check goes DOWN as soon as its ping period lapses.
OVERDUE_ENFORCE_GRACE = env.bool("OVERDUE_ENFORCE_GRACE", default=True)

# Alert delivery worker
ALERT_DELIVERY_INTERVAL = env.int("ALERT_DELIVERY_INTERVAL", default=5)
ALERT_BATCH_SIZE = env.int("ALERT_BATCH_SIZE", default=10)
# Seconds a claimed alert stays leased to a worker; keep it above
# ALERT_BATCH_SIZE * ALERT_DISPATCH_TIMEOUT
ALERT_CLAIM_LEASE = env.int("ALERT_CLAIM_LEASE", default=300)
ALERT_DISPATCH_TIMEOUT = env.float("ALERT_DISPATCH_TIMEOUT", default=10.0)

# Bounded wait for a running tick when jobs are stopped
JOB_SHUTDOWN_TIMEOUT = env.float("JOB_SHUTDOWN_TIMEOUT", default=30.0)

# Email alerts (Postmark)
POSTMARK_API_TOKEN = env("POSTMARK_API_TOKEN", default="")
POSTMARK_API_BASE_URL = env("POSTMARK_API_BASE_URL", default="https://api.postmarkapp.com")
ALERT_EMAIL_FROM = env("ALERT_EMAIL_FROM", default="Heartbeat <no-reply@example.com>")

# Data retention for finished alerts (days)
ALERT_RETENTION_DAYS = env.int("ALERT_RETENTION_DAYS", default=90)

# Logging
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {message}",
            "style": "{",
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
        "level": "INFO",
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
        "heartbeat": {
            "handlers": ["console"],
            "level": env("HEARTBEAT_LOG_LEVEL", default="INFO"),
            "propagate": False,
        },
        "apscheduler": {
            "handlers": ["console"],
            "level": "WARNING",
            "propagate": False,
        },
    },
}
