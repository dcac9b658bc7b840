"""
Check state machine and schedule evaluation.

Pure functions only: nothing here touches the database. The ping
ingestor and the overdue detector use these to decide what a check's
next status is and whether its schedule has lapsed.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal

from apscheduler.triggers.cron import CronTrigger

from heartbeat.exceptions import CorruptRecordError, InvalidScheduleError
from heartbeat.models import Check, CheckStatus, PeriodUnits, ScheduleType


Event = Literal["ping", "overdue"]

_UNIT_DELTAS = {
    PeriodUnits.MINUTES: timedelta(minutes=1),
    PeriodUnits.HOURS: timedelta(hours=1),
    PeriodUnits.DAYS: timedelta(days=1),
}


@dataclass(frozen=True)
class Transition:
    """Result of applying an event to a check status."""

    previous: str
    current: str

    @property
    def changed(self) -> bool:
        return self.previous != self.current

    @property
    def went_down(self) -> bool:
        return self.changed and self.current == CheckStatus.DOWN


@dataclass(frozen=True)
class OverdueEvaluation:
    """Where a check stands against its schedule at a given instant."""

    next_expected_at: datetime | None
    ping_overdue: bool
    late_ping_overdue: bool

    def should_go_down(self, enforce_grace: bool = True) -> bool:
        """
        Whether the lapse is enough to flip the check DOWN.

        With enforce_grace the grace period must also have elapsed;
        without it either predicate triggers the transition.
        """
        if enforce_grace:
            return self.late_ping_overdue
        return self.ping_overdue or self.late_ping_overdue


NOT_OVERDUE = OverdueEvaluation(
    next_expected_at=None, ping_overdue=False, late_ping_overdue=False
)


def transition(current: str, event: Event) -> Transition:
    """
    Apply an event to a check status.

    A ping always leads to UP. An overdue evaluation moves UP to DOWN,
    keeps DOWN as DOWN and leaves a never-pinged CREATED check alone.
    """
    try:
        status = CheckStatus(current)
    except ValueError:
        raise CorruptRecordError(f"Unknown check status {current!r}") from None

    if event == "ping":
        return Transition(previous=status, current=CheckStatus.UP)

    if event == "overdue":
        if status == CheckStatus.CREATED:
            return Transition(previous=status, current=status)
        return Transition(previous=status, current=CheckStatus.DOWN)

    raise ValueError(f"Unknown check event {event!r}")


def period_to_timedelta(value: int, units: str) -> timedelta:
    """Convert a (value, units) pair from a check's schedule."""
    try:
        unit = _UNIT_DELTAS[PeriodUnits(units)]
    except ValueError:
        raise InvalidScheduleError(f"Unknown period units {units!r}") from None
    return unit * value


def _uses_cron(check: Check) -> bool:
    if check.ping_cron_expression and check.ping_cron_expression.strip():
        return True
    if check.schedule_type == ScheduleType.CRON:
        raise InvalidScheduleError(
            f"Check {check.uuid} has a CRON schedule but no cron expression"
        )
    return False


def next_cron_fire(expression: str, after: datetime) -> datetime | None:
    """First fire time of a crontab expression strictly after `after`."""
    try:
        trigger = CronTrigger.from_crontab(expression.strip(), timezone="UTC")
    except ValueError as e:
        raise InvalidScheduleError(f"Invalid cron expression {expression!r}: {e}") from e
    return trigger.get_next_fire_time(None, after + timedelta(microseconds=1))


def next_expected_ping(check: Check) -> datetime | None:
    """
    When the next ping is due, or None for a check that was never pinged.

    A cron expression, if present, supersedes the simple period.
    """
    if check.last_ping_at is None:
        return None
    if _uses_cron(check):
        return next_cron_fire(check.ping_cron_expression, check.last_ping_at)
    return check.last_ping_at + period_to_timedelta(
        check.ping_period, check.ping_period_units
    )


def evaluate(check: Check, now: datetime) -> OverdueEvaluation:
    """Compute ping_overdue and late_ping_overdue for a check at `now`."""
    if check.status == CheckStatus.CREATED:
        return NOT_OVERDUE

    expected_at = next_expected_ping(check)
    if expected_at is None:
        return NOT_OVERDUE

    grace = period_to_timedelta(check.grace_period, check.grace_period_units)
    return OverdueEvaluation(
        next_expected_at=expected_at,
        ping_overdue=now > expected_at,
        late_ping_overdue=now > expected_at + grace,
    )
