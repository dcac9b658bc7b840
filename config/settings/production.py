"""
Production settings.

PostgreSQL comes from DATABASE_URL; several delivery workers may run
against it at once, relying on its row locks for batch claims.
"""
import dj_database_url

from .base import *  # noqa: F401, F403

DEBUG = False

ALLOWED_HOSTS = env.list("ALLOWED_HOSTS", default=["heartbeat.example.com"])  # noqa: F405

DATABASES = {
    "default": dj_database_url.config(
        default="postgres://localhost:5432/heartbeat",
        conn_max_age=600,
        conn_health_checks=True,
    )
}

# Alerts cannot go out without a real Postmark server token
POSTMARK_API_TOKEN = env("POSTMARK_API_TOKEN")  # noqa: F405
ALERT_EMAIL_FROM = env("ALERT_EMAIL_FROM")  # noqa: F405

# Behind a TLS-terminating proxy
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
SECURE_CONTENT_TYPE_NOSNIFF = True
SECURE_HSTS_SECONDS = 31536000
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
X_FRAME_OPTIONS = "DENY"
CSRF_COOKIE_SECURE = True
SESSION_COOKIE_SECURE = True

# Only the admin needs CSRF; the ping endpoint is exempt
CSRF_TRUSTED_ORIGINS = env.list(
    "CSRF_TRUSTED_ORIGINS",
    default=[f"https://{host}" for host in ALLOWED_HOSTS],
)
