"""
Test settings for pytest.
"""
from .base import *  # noqa: F401, F403

DEBUG = False

# Use in-memory SQLite for fast tests
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# Speed up password hashing in tests
PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

# Never talk to Postmark in tests
POSTMARK_API_TOKEN = "POSTMARK_API_TEST"
POSTMARK_API_BASE_URL = "https://postmark.test"

# Shorter intervals for tests
OVERDUE_DETECTOR_INTERVAL = 1
ALERT_DELIVERY_INTERVAL = 1
ALERT_DISPATCH_TIMEOUT = 1.0
JOB_SHUTDOWN_TIMEOUT = 2.0
OVERDUE_ENFORCE_GRACE = True

# No collectstatic manifest in tests
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"},
}
