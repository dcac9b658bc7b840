"""
Overdue detector.

Scans checks whose schedule has lapsed, flips them DOWN and enqueues one
alert per notification channel. Each check is processed in its own
transaction so one failure never blocks the rest of the scan; a check
that failed is simply picked up again on the next tick.
"""
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from heartbeat.exceptions import CheckNotFound, CorruptRecordError, InvalidScheduleError
from heartbeat.models import Check, CheckStatus, DeliveryStatus, NotificationAlert
from heartbeat.services.state import evaluate, transition

logger = logging.getLogger(__name__)


@dataclass
class DetectorReport:
    """Summary of a single detector tick."""

    scanned: int = 0
    marked_down: int = 0
    alerts_enqueued: int = 0
    errors: int = 0


def _enforce_grace() -> bool:
    return getattr(settings, "OVERDUE_ENFORCE_GRACE", True)


def mark_down_and_enqueue(
    check_id: int, now: datetime, enforce_grace: bool = True
) -> int | None:
    """
    Flip a check DOWN and enqueue its alerts in one transaction.

    The check row is re-read under a row lock and re-evaluated, so a ping
    that landed after the scan wins. Returns the number of alerts
    enqueued, or None if the check did not transition.

    Raises:
        CheckNotFound: the check was deleted since the scan
    """
    with transaction.atomic():
        check = Check.objects.active().select_for_update().filter(pk=check_id).first()
        if check is None:
            raise CheckNotFound(f"Check {check_id} no longer exists")

        if not evaluate(check, now).should_go_down(enforce_grace):
            logger.debug(f"Check {check.uuid} pinged before it could be marked down")
            return None

        result = transition(check.status, "overdue")
        if not result.went_down:
            return None

        check.status = result.current
        check.save(update_fields=["status", "updated_at"])

        enqueued = 0
        for channel in check.channels.filter(deleted=False):
            already_outstanding = (
                NotificationAlert.objects.outstanding()
                .filter(monitored_check=check, channel=channel)
                .exists()
            )
            if already_outstanding:
                logger.debug(
                    f"Alert already outstanding for check {check.uuid}, "
                    f"channel {channel.uuid}"
                )
                continue

            NotificationAlert.objects.create(
                monitored_check=check,
                channel=channel,
                check_status=result.current,
                delivery_status=DeliveryStatus.QUEUED,
                retries_remaining=channel.max_retries,
                created_at=now,
            )
            enqueued += 1
            logger.debug(
                f"Enqueued {channel.channel_type} alert for check {check.uuid} "
                f"(last ping {check.last_ping_at:%Y-%m-%d %H:%M:%S})"
            )

    logger.warning(
        f"Check {check.uuid} ({check.name}) went DOWN, {enqueued} alerts enqueued"
    )
    return enqueued


def detect_overdue_checks(
    now: datetime | None = None,
    should_stop: Callable[[], bool] | None = None,
) -> DetectorReport:
    """
    Run one detector tick.

    Args:
        now: Evaluation instant (defaults to the current time)
        should_stop: Polled between checks; a true result abandons the
            rest of the scan

    Returns:
        DetectorReport with counts for the tick
    """
    now = now or timezone.now()
    enforce_grace = _enforce_grace()
    report = DetectorReport()

    # DOWN checks have already raised this outage's alerts. Rows are loaded
    # one at a time so a corrupt row only costs that check.
    candidate_ids = list(
        Check.objects.pinged()
        .filter(status=CheckStatus.UP)
        .order_by("id")
        .values_list("id", flat=True)
    )

    for check_id in candidate_ids:
        if should_stop is not None and should_stop():
            logger.info("Overdue scan interrupted by shutdown")
            break

        report.scanned += 1

        try:
            check = Check.objects.active().filter(pk=check_id).first()
            if check is None:
                continue
            evaluation = evaluate(check, now)
        except InvalidScheduleError as e:
            report.errors += 1
            logger.error(f"Skipping check {check_id}: {e}")
            continue
        except (CorruptRecordError, DatabaseError):
            report.errors += 1
            logger.exception(f"Skipping check {check_id}, could not load it")
            continue

        if not evaluation.should_go_down(enforce_grace):
            continue

        try:
            enqueued = mark_down_and_enqueue(check.pk, now, enforce_grace=enforce_grace)
        except CheckNotFound:
            logger.info(f"Check {check.uuid} was deleted during the scan")
            continue
        except (DatabaseError, InvalidScheduleError, CorruptRecordError):
            report.errors += 1
            logger.exception(
                f"Failed to mark check {check.uuid} down, will retry next tick"
            )
            continue

        if enqueued is not None:
            report.marked_down += 1
            report.alerts_enqueued += enqueued

    if report.marked_down or report.errors:
        logger.info(
            f"Overdue scan complete: {report.scanned} scanned, "
            f"{report.marked_down} down, {report.alerts_enqueued} alerts enqueued, "
            f"{report.errors} errors"
        )
    else:
        logger.debug(f"Overdue scan complete: {report.scanned} scanned, none overdue")

    return report
