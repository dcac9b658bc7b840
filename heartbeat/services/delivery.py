"""
Alert delivery worker.

Several workers, in one process or many, may drain the alert queue at
the same time. A worker claims a batch in a short transaction: rows are
selected with SELECT ... FOR UPDATE SKIP LOCKED (where the database
supports it) and leased to the worker through claimed_by/claimed_until.
Dispatch happens outside that transaction, so no row lock is held across
network I/O, and every outcome is written back conditionally on the
worker still holding the lease.

Delivery is at-least-once: if an outcome cannot be recorded the alert is
picked up again once its lease expires.
"""
import logging
import os
import socket
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from django.conf import settings
from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from heartbeat.exceptions import NotifierError
from heartbeat.models import DeliveryStatus, NotificationAlert
from heartbeat.services.notifier import AlertMessage, Notifier

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 2000


@dataclass
class DeliveryReport:
    """Outcome of a single delivery tick, by alert id."""

    claimed: int = 0
    delivered: list[int] = field(default_factory=list)
    retrying: list[int] = field(default_factory=list)
    exhausted: list[int] = field(default_factory=list)
    released: list[int] = field(default_factory=list)
    unrecorded: list[int] = field(default_factory=list)


def default_worker_id() -> str:
    """Identifier unique to this process, used as the lease owner."""
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


def _lease_is_free(now: datetime) -> Q:
    return Q(claimed_until__isnull=True) | Q(claimed_until__lt=now)


def claim_alert_batch(
    worker_id: str,
    batch_size: int | None = None,
    now: datetime | None = None,
) -> list[NotificationAlert]:
    """
    Lease up to `batch_size` ready alerts to `worker_id`, oldest first.

    Rows locked or leased by another worker are skipped rather than
    waited on, so concurrent claims always return disjoint batches.
    """
    now = now or timezone.now()
    if batch_size is None:
        batch_size = getattr(settings, "ALERT_BATCH_SIZE", 10)
    lease_seconds = getattr(settings, "ALERT_CLAIM_LEASE", 300)

    with transaction.atomic():
        candidates = list(
            NotificationAlert.objects.claimable(now)
            .select_for_update(skip_locked=True, of=("self",))
            .order_by("created_at", "id")[:batch_size]
        )
        if not candidates:
            return []

        candidate_ids = [alert.pk for alert in candidates]
        NotificationAlert.objects.filter(pk__in=candidate_ids).filter(
            _lease_is_free(now)
        ).update(
            claimed_by=worker_id,
            claimed_until=now + timedelta(seconds=lease_seconds),
        )

        claimed = list(
            NotificationAlert.objects.filter(pk__in=candidate_ids, claimed_by=worker_id)
            .select_related("channel__monitored_check", "monitored_check")
            .order_by("created_at", "id")
        )

    logger.debug(f"Worker {worker_id} claimed {len(claimed)} alerts")
    return claimed


def _owned(alert: NotificationAlert, worker_id: str):
    return NotificationAlert.objects.filter(
        pk=alert.pk, claimed_by=worker_id, finished_at__isnull=True
    )


def record_delivered(alert: NotificationAlert, worker_id: str, now: datetime) -> bool:
    """Mark an alert DELIVERED. Returns False if the lease was lost."""
    updated = _owned(alert, worker_id).update(
        delivery_status=DeliveryStatus.DELIVERED,
        finished_at=now,
        attempts=F("attempts") + 1,
        claimed_by="",
        claimed_until=None,
    )
    return updated == 1


def record_failed(
    alert: NotificationAlert, worker_id: str, now: datetime, error: str
) -> bool | None:
    """
    Account for a failed attempt against the alert's retry budget.

    Returns True if the budget is exhausted (the alert is now terminal),
    False if it will be retried, and None if the lease was lost.
    """
    changes = {
        "delivery_status": DeliveryStatus.FAILED,
        "attempts": F("attempts") + 1,
        "last_error": error[:MAX_ERROR_LENGTH],
        "claimed_by": "",
        "claimed_until": None,
    }
    exhausted = alert.retries_remaining <= 0
    if exhausted:
        changes.update(retries_remaining=0, finished_at=now)
    else:
        changes.update(retries_remaining=F("retries_remaining") - 1)

    if _owned(alert, worker_id).update(**changes) != 1:
        return None
    return exhausted


def release_alerts(alerts: list[NotificationAlert], worker_id: str) -> int:
    """Give back leases on alerts this worker will not process."""
    return NotificationAlert.objects.filter(
        pk__in=[alert.pk for alert in alerts], claimed_by=worker_id
    ).update(claimed_by="", claimed_until=None)


def deliver_alert_batch(
    notifier: Notifier,
    worker_id: str | None = None,
    batch_size: int | None = None,
    now: datetime | None = None,
    should_stop: Callable[[], bool] | None = None,
) -> DeliveryReport:
    """
    Run one delivery tick: claim a batch, dispatch it, record outcomes.

    Args:
        notifier: Notifier port used to send each alert
        worker_id: Lease owner (defaults to a per-process id)
        batch_size: Maximum alerts to claim (default from settings)
        now: Timestamp for claims and outcomes (defaults to current time)
        should_stop: Polled between dispatches; a true result releases the
            rest of the batch and ends the tick

    Returns:
        DeliveryReport listing what happened to each claimed alert
    """
    worker_id = worker_id or default_worker_id()
    report = DeliveryReport()

    alerts = claim_alert_batch(worker_id, batch_size=batch_size, now=now)
    report.claimed = len(alerts)

    for index, alert in enumerate(alerts):
        if should_stop is not None and should_stop():
            remaining = alerts[index:]
            release_alerts(remaining, worker_id)
            report.released = [a.pk for a in remaining]
            logger.info(f"Delivery interrupted, released {len(remaining)} alerts")
            break

        message = AlertMessage.from_alert(alert)
        try:
            notifier.send(message)
        except NotifierError as e:
            error = str(e)
            logger.warning(f"Failed to send alert {alert.pk}: {error}")
        except Exception as e:
            error = f"Unexpected error: {e}"
            logger.exception(f"Unexpected error sending alert {alert.pk}")
        else:
            if record_delivered(alert, worker_id, now or timezone.now()):
                report.delivered.append(alert.pk)
                logger.debug(f"Alert {alert.pk} delivered for check {message.check_uuid}")
            else:
                report.unrecorded.append(alert.pk)
                logger.warning(
                    f"Alert {alert.pk} delivered but its status could not be "
                    f"updated, a duplicate may be sent later"
                )
            continue

        exhausted = record_failed(alert, worker_id, now or timezone.now(), error)
        if exhausted is None:
            report.unrecorded.append(alert.pk)
            logger.warning(f"Alert {alert.pk} failure could not be recorded, lease lost")
        elif exhausted:
            report.exhausted.append(alert.pk)
            logger.error(
                f"Alert {alert.pk} for check {message.check_uuid} exceeded its "
                f"retries, giving up"
            )
        else:
            report.retrying.append(alert.pk)
            logger.info(
                f"Will retry alert {alert.pk}, "
                f"{alert.retries_remaining - 1} retries remaining"
            )

    if report.claimed:
        logger.info(
            f"Delivery tick complete: {len(report.delivered)} delivered, "
            f"{len(report.retrying)} retrying, {len(report.exhausted)} exhausted"
        )

    return report
