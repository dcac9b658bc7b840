"""
Retention of finished alert history.
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

from heartbeat.models import NotificationAlert

logger = logging.getLogger(__name__)


def old_finished_alerts(retention_days: int | None = None):
    """Terminal alerts that finished before the retention cutoff."""
    if retention_days is None:
        retention_days = getattr(settings, "ALERT_RETENTION_DAYS", 90)
    cutoff_date = timezone.now() - timedelta(days=retention_days)
    return NotificationAlert.objects.terminal().filter(finished_at__lt=cutoff_date)


def delete_old_alerts(retention_days: int | None = None) -> int:
    """Delete finished alerts older than the retention period."""
    deleted_count, _ = old_finished_alerts(retention_days).delete()
    if deleted_count:
        logger.info(f"Cleanup complete: deleted {deleted_count} finished alerts")
    else:
        logger.info("Cleanup complete: no old alerts to delete")
    return deleted_count
