"""
Ping ingestion.

Pings arrive from untrusted callers at high frequency, so this path is a
single short transaction with no retries and no other side effects.
"""
import logging
import uuid
from datetime import datetime

from django.db import transaction
from django.utils import timezone

from heartbeat.models import Check
from heartbeat.services.state import transition

logger = logging.getLogger(__name__)


def mask_ping_key(key: str) -> str:
    """Mask a ping key for use in logs."""
    return f"{key[:4]}************"


def ingest_ping(key: str, now: datetime | None = None) -> uuid.UUID | None:
    """
    Record a ping for the check owning `key`.

    Sets the check UP and stamps last_ping_at. Returns the check's uuid,
    or None when no non-deleted check has this key. Callers exposed to
    the outside world must not reveal which of the two happened.
    """
    if not key:
        return None

    now = now or timezone.now()

    with transaction.atomic():
        check = (
            Check.objects.active()
            .select_for_update()
            .filter(ping_key=key)
            .only("id", "uuid", "status")
            .first()
        )
        if check is None:
            return None

        result = transition(check.status, "ping")
        Check.objects.filter(pk=check.pk).update(
            status=result.current,
            last_ping_at=now,
            updated_at=now,
        )

    if result.changed:
        logger.info(
            f"Check {check.uuid} {result.previous} -> {result.current} "
            f"(key {mask_ping_key(key)})"
        )
    else:
        logger.debug(f"Ping received for check {check.uuid}")

    return check.uuid
