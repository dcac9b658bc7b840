"""
Exceptions raised by the heartbeat monitoring core.
"""


class HeartbeatError(Exception):
    """Base class for heartbeat errors."""


class CheckNotFound(HeartbeatError):
    """A check vanished (or was soft-deleted) between read and write."""


class InvalidScheduleError(HeartbeatError):
    """A check's schedule cannot be evaluated."""


class CorruptRecordError(HeartbeatError):
    """A stored enum value is outside its closed set of choices."""


class NotifierError(HeartbeatError):
    """An alert could not be delivered through its transport."""
