"""
Development settings: local SQLite, verbose heartbeat logging, no real email.
"""
from .base import *  # noqa: F401, F403

DEBUG = True

ALLOWED_HOSTS = ["localhost", "127.0.0.1"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",  # noqa: F405
    }
}

# Plain static storage, no collectstatic manifest needed
STORAGES = {
    "default": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
    },
    "staticfiles": {
        "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage",
    },
}

# Postmark accepts the test token without sending anything
POSTMARK_API_TOKEN = env("POSTMARK_API_TOKEN", default="POSTMARK_API_TEST")  # noqa: F405

# SQLite has no row locks, so keep leases short while iterating locally
ALERT_CLAIM_LEASE = env.int("ALERT_CLAIM_LEASE", default=120)  # noqa: F405

LOGGING["loggers"]["heartbeat"]["level"] = "DEBUG"  # noqa: F405
