"""
Models for the heartbeat monitoring service.
"""
import secrets
import uuid

from django.db import models
from django.db.models import Q
from django.utils import timezone

from heartbeat.exceptions import CorruptRecordError


class CheckStatus(models.TextChoices):
    CREATED = "CREATED", "Created"
    UP = "UP", "Up"
    DOWN = "DOWN", "Down"


class ScheduleType(models.TextChoices):
    SIMPLE = "SIMPLE", "Simple"
    CRON = "CRON", "Cron"


class PeriodUnits(models.TextChoices):
    MINUTES = "MINUTES", "Minutes"
    HOURS = "HOURS", "Hours"
    DAYS = "DAYS", "Days"


class ChannelType(models.TextChoices):
    EMAIL = "EMAIL", "Email"
    WEBHOOK = "WEBHOOK", "Webhook"


class DeliveryStatus(models.TextChoices):
    QUEUED = "QUEUED", "Queued"
    DELIVERED = "DELIVERED", "Delivered"
    FAILED = "FAILED", "Failed"


class ChoicesField(models.CharField):
    """
    CharField that refuses to load a stored value outside its choices.

    A value the application does not know about is a data-integrity
    problem and is raised as CorruptRecordError.
    """

    def from_db_value(self, value, expression, connection):
        if value is None:
            return value
        if value not in {key for key, _ in self.flatchoices}:
            raise CorruptRecordError(
                f"{self.model.__name__}.{self.name} holds unknown value {value!r}"
            )
        return value


def generate_ping_key() -> str:
    """Random capability token, independent of the check's uuid."""
    return secrets.token_urlsafe(24)


class CheckQuerySet(models.QuerySet):
    def active(self):
        return self.filter(deleted=False)

    def pinged(self):
        """Checks eligible for overdue evaluation."""
        return (
            self.active()
            .filter(last_ping_at__isnull=False)
            .exclude(status=CheckStatus.CREATED)
        )


class Check(models.Model):
    """
    A liveness contract: the monitored system must ping before its
    schedule (plus grace) lapses or the check goes DOWN.
    """

    uuid = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    ping_key = models.CharField(
        max_length=64, unique=True, default=generate_ping_key, editable=False
    )
    name = models.CharField(max_length=200, blank=True, default="")
    description = models.TextField(blank=True, default="")

    schedule_type = ChoicesField(
        max_length=10, choices=ScheduleType.choices, default=ScheduleType.SIMPLE
    )
    ping_period = models.PositiveIntegerField(default=1)
    ping_period_units = ChoicesField(
        max_length=10, choices=PeriodUnits.choices, default=PeriodUnits.DAYS
    )
    ping_cron_expression = models.CharField(max_length=100, blank=True, null=True)
    grace_period = models.PositiveIntegerField(default=1)
    grace_period_units = ChoicesField(
        max_length=10, choices=PeriodUnits.choices, default=PeriodUnits.HOURS
    )

    status = ChoicesField(
        max_length=10,
        choices=CheckStatus.choices,
        default=CheckStatus.CREATED,
        db_index=True,
    )
    last_ping_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted = models.BooleanField(default=False, db_index=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = CheckQuerySet.as_manager()

    class Meta:
        ordering = ["name", "id"]
        verbose_name = "Check"
        verbose_name_plural = "Checks"

    def __str__(self):
        return f"{self.name or self.uuid} [{self.status}]"

    def soft_delete(self) -> None:
        """Hide the check from pings and overdue scans, keeping its history."""
        self.deleted = True
        self.deleted_at = timezone.now()
        self.save(update_fields=["deleted", "deleted_at", "updated_at"])


class NotificationChannel(models.Model):
    """An alert destination (email address or webhook URL) owned by a check."""

    uuid = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    monitored_check = models.ForeignKey(
        Check,
        on_delete=models.PROTECT,
        related_name="channels",
        db_column="check_id",
    )
    name = models.CharField(max_length=200, blank=True, default="")
    channel_type = ChoicesField(max_length=10, choices=ChannelType.choices)
    email = models.EmailField(blank=True, null=True)
    url = models.URLField(max_length=500, blank=True, null=True)
    max_retries = models.PositiveIntegerField(default=5)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted = models.BooleanField(default=False, db_index=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["id"]
        verbose_name = "Notification Channel"
        verbose_name_plural = "Notification Channels"

    def __str__(self):
        return f"{self.channel_type} -> {self.destination}"

    @property
    def destination(self) -> str:
        if self.channel_type == ChannelType.EMAIL:
            return self.email or ""
        return self.url or ""

    @property
    def display_name(self) -> str:
        """Channel name if set, otherwise the check's name."""
        return self.name.strip() or self.monitored_check.name

    def soft_delete(self) -> None:
        self.deleted = True
        self.deleted_at = timezone.now()
        self.save(update_fields=["deleted", "deleted_at", "updated_at"])


class NotificationAlertQuerySet(models.QuerySet):
    def outstanding(self):
        return self.filter(finished_at__isnull=True)

    def terminal(self):
        return self.filter(finished_at__isnull=False)

    def claimable(self, now):
        """Outstanding alerts whose lease is free or expired."""
        return (
            self.outstanding()
            .filter(
                delivery_status__in=[DeliveryStatus.QUEUED, DeliveryStatus.FAILED],
                monitored_check__deleted=False,
                channel__deleted=False,
            )
            .filter(Q(claimed_until__isnull=True) | Q(claimed_until__lt=now))
        )


class NotificationAlert(models.Model):
    """
    One queued, attempted or finished alert delivery.

    An alert is outstanding until finished_at is set, either on delivery
    or when its retry budget is exhausted.
    """

    monitored_check = models.ForeignKey(
        Check,
        on_delete=models.PROTECT,
        related_name="alerts",
        db_column="check_id",
    )
    channel = models.ForeignKey(
        NotificationChannel,
        on_delete=models.PROTECT,
        related_name="alerts",
    )
    check_status = ChoicesField(max_length=10, choices=CheckStatus.choices)
    delivery_status = ChoicesField(
        max_length=10,
        choices=DeliveryStatus.choices,
        default=DeliveryStatus.QUEUED,
        db_index=True,
    )
    retries_remaining = models.IntegerField()
    attempts = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True, default="")

    # Delivery lease
    claimed_by = models.CharField(max_length=100, blank=True, default="")
    claimed_until = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    finished_at = models.DateTimeField(null=True, blank=True)

    objects = NotificationAlertQuerySet.as_manager()

    class Meta:
        ordering = ["created_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["monitored_check", "channel"],
                condition=Q(finished_at__isnull=True),
                name="unique_outstanding_alert",
            ),
        ]
        indexes = [
            models.Index(
                fields=["delivery_status", "created_at"],
                name="alert_status_created_idx",
            ),
        ]
        verbose_name = "Notification Alert"
        verbose_name_plural = "Notification Alerts"

    def __str__(self):
        return (
            f"Alert #{self.pk} {self.check_status} via {self.channel_id} "
            f"[{self.delivery_status}]"
        )

    @property
    def is_terminal(self) -> bool:
        return self.finished_at is not None
