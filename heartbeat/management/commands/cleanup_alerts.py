"""
Management command to clean up finished alert records.

Usage:
    python manage.py cleanup_alerts
    python manage.py cleanup_alerts --dry-run
    python manage.py cleanup_alerts --days 14

This removes delivered and exhausted alerts that finished before the
retention period. Outstanding alerts are never touched.
"""
from django.conf import settings
from django.core.management.base import BaseCommand

from heartbeat.services.retention import delete_old_alerts, old_finished_alerts


class Command(BaseCommand):
    help = "Delete finished alerts older than the retention period"

    def add_arguments(self, parser):
        parser.add_argument(
            "--days",
            type=int,
            default=None,
            help="Retention period in days (overrides settings)",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be deleted without actually deleting",
        )

    def handle(self, *args, **options):
        retention_days = options["days"]
        if retention_days is None:
            retention_days = getattr(settings, "ALERT_RETENTION_DAYS", 90)

        if options["dry_run"]:
            count = old_finished_alerts(retention_days).count()
            self.stdout.write(
                f"[DRY RUN] Would delete {count} finished alerts "
                f"older than {retention_days} days"
            )
            return

        deleted_count = delete_old_alerts(retention_days)
        self.stdout.write(
            self.style.SUCCESS(
                f"Deleted {deleted_count} finished alerts "
                f"older than {retention_days} days"
            )
        )
