"""
Pytest configuration and shared fixtures.
"""
import uuid
from unittest.mock import MagicMock

import pytest
from django.utils import timezone

from heartbeat.models import ChannelType
from heartbeat.services.notifier import AlertMessage, Notifier


@pytest.fixture
def now():
    return timezone.now()


@pytest.fixture
def notifier():
    """Notifier double that accepts every alert."""
    return MagicMock(spec=Notifier)


@pytest.fixture
def email_message(now):
    return AlertMessage(
        channel_type=ChannelType.EMAIL,
        destination="ops@example.com",
        check_name="nightly-backup",
        check_uuid=uuid.UUID("4f7c2a0e-3b1d-4c8e-9a5f-2d6b8e1c0a97"),
        last_ping_at=now,
    )


@pytest.fixture
def webhook_message(now):
    return AlertMessage(
        channel_type=ChannelType.WEBHOOK,
        destination="https://hooks.example.com/heartbeat",
        check_name="nightly-backup",
        check_uuid=uuid.UUID("4f7c2a0e-3b1d-4c8e-9a5f-2d6b8e1c0a97"),
        last_ping_at=now,
    )
