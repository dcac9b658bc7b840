"""
Notifier port and its email/webhook transports.

The delivery worker hands an AlertMessage to Notifier.send(). Transports
fail fast: every problem is raised as NotifierError so the worker can
account for the failed attempt. Nothing here retries.

Email goes through the Postmark HTTP API, webhooks are plain JSON POSTs,
and Slack incoming webhooks get a Block Kit message through slack_sdk.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from urllib.parse import urlparse

import httpx
from django.conf import settings
from slack_sdk.webhook import WebhookClient

from heartbeat.exceptions import NotifierError
from heartbeat.models import ChannelType, CheckStatus, NotificationAlert

logger = logging.getLogger(__name__)

POSTMARK_TEST_TOKEN = "POSTMARK_API_TEST"
POSTMARK_TOKEN_HEADER = "X-Postmark-Server-Token"
SLACK_WEBHOOK_HOST = "hooks.slack.com"


@dataclass(frozen=True)
class AlertMessage:
    """Everything a transport needs to deliver one alert."""

    channel_type: str
    destination: str
    check_name: str
    check_uuid: uuid.UUID
    last_ping_at: datetime | None
    check_status: str = CheckStatus.DOWN

    @classmethod
    def from_alert(cls, alert: NotificationAlert) -> "AlertMessage":
        channel = alert.channel
        check = alert.monitored_check
        return cls(
            channel_type=channel.channel_type,
            destination=channel.destination,
            check_name=channel.display_name,
            check_uuid=check.uuid,
            last_ping_at=check.last_ping_at,
            check_status=alert.check_status,
        )

    @property
    def last_ping_display(self) -> str:
        if self.last_ping_at is None:
            return "never"
        return f"{self.last_ping_at:%Y-%m-%d %H:%M:%S} UTC"

    @property
    def subject(self) -> str:
        return f"[{self.check_status}] {self.check_name}"


class EmailTransport:
    """Sends alert emails with the Postmark API."""

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.postmarkapp.com",
        sender: str = "Heartbeat <no-reply@example.com>",
        timeout: float = 10,
    ):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.sender = sender
        self.timeout = timeout

        if token == POSTMARK_TEST_TOKEN:
            logger.warning(
                "Postmark token is the API test token, emails will not actually be sent"
            )

    def send(self, message: AlertMessage) -> None:
        if not self.token:
            raise NotifierError("POSTMARK_API_TOKEN not configured")
        if not message.destination:
            raise NotifierError(f"No email address for check {message.check_uuid}")

        payload = {
            "From": self.sender,
            "To": message.destination,
            "Subject": message.subject,
            "TextBody": (
                f"{message.check_name} is {message.check_status}.\n"
                f"Last ping: {message.last_ping_display}\n\n"
                f"Sent by Heartbeat"
            ),
        }
        headers = {
            POSTMARK_TOKEN_HEADER: self.token,
            "Accept": "application/json",
        }

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    f"{self.base_url}/email", json=payload, headers=headers
                )
        except httpx.HTTPError as e:
            raise NotifierError(f"Postmark request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise NotifierError(
                f"Postmark returned HTTP {response.status_code}: {response.text[:200]}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise NotifierError(f"Unparsable Postmark response: {e}") from e

        error_code = body.get("ErrorCode", 0)
        if error_code != 0:
            raise NotifierError(
                f"Postmark rejected email ({error_code}): {body.get('Message', '')}"
            )

        logger.info(f"Alert email sent for check {message.check_uuid}")


class WebhookTransport:
    """POSTs a JSON alert to a webhook URL."""

    def __init__(self, timeout: float = 10):
        self.timeout = timeout

    def send(self, message: AlertMessage) -> None:
        url = message.destination
        if not url:
            raise NotifierError(f"No webhook URL for check {message.check_uuid}")

        if urlparse(url).hostname == SLACK_WEBHOOK_HOST:
            self._send_slack(url, message)
            return

        payload = {
            "check_uuid": str(message.check_uuid),
            "check_name": message.check_name,
            "status": message.check_status,
            "last_ping_at": (
                message.last_ping_at.isoformat() if message.last_ping_at else None
            ),
        }

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(url, json=payload)
        except httpx.HTTPError as e:
            raise NotifierError(f"Webhook request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise NotifierError(f"Webhook returned HTTP {response.status_code}")

        logger.info(f"Alert webhook called for check {message.check_uuid}")

    def _send_slack(self, url: str, message: AlertMessage) -> None:
        client = WebhookClient(url, timeout=int(self.timeout))
        try:
            response = client.send(
                text=f"🔴 Check {message.check_status}: {message.check_name}",
                blocks=_build_slack_blocks(message),
            )
        except Exception as e:
            raise NotifierError(f"Slack webhook request failed: {e}") from e

        if response.status_code != 200:
            raise NotifierError(
                f"Slack webhook failed: {response.status_code} - {response.body}"
            )

        logger.info(f"Slack alert sent for check {message.check_uuid}")


def _build_slack_blocks(message: AlertMessage) -> list[dict]:
    """Build Block Kit blocks for a check alert."""
    return [
        {
            "type": "header",
            "text": {
                "type": "plain_text",
                "text": f"🔴 Check {message.check_status}: {message.check_name}",
                "emoji": True,
            },
        },
        {
            "type": "section",
            "fields": [
                {
                    "type": "mrkdwn",
                    "text": f"*Status:*\n{message.check_status}",
                },
                {
                    "type": "mrkdwn",
                    "text": f"*Last ping:*\n{message.last_ping_display}",
                },
            ],
        },
        {
            "type": "context",
            "elements": [
                {
                    "type": "mrkdwn",
                    "text": f"Check `{message.check_uuid}`",
                },
            ],
        },
    ]


class Notifier:
    """Routes an alert to the transport for its channel type."""

    def __init__(self, email: EmailTransport, webhook: WebhookTransport):
        self.email = email
        self.webhook = webhook

    @classmethod
    def from_settings(cls) -> "Notifier":
        timeout = getattr(settings, "ALERT_DISPATCH_TIMEOUT", 10)
        return cls(
            email=EmailTransport(
                token=getattr(settings, "POSTMARK_API_TOKEN", ""),
                base_url=getattr(
                    settings, "POSTMARK_API_BASE_URL", "https://api.postmarkapp.com"
                ),
                sender=getattr(
                    settings, "ALERT_EMAIL_FROM", "Heartbeat <no-reply@example.com>"
                ),
                timeout=timeout,
            ),
            webhook=WebhookTransport(timeout=timeout),
        )

    def send(self, message: AlertMessage) -> None:
        """
        Deliver one alert.

        Raises:
            NotifierError: the alert was not delivered
        """
        if message.channel_type == ChannelType.EMAIL:
            self.email.send(message)
        elif message.channel_type == ChannelType.WEBHOOK:
            self.webhook.send(message)
        else:
            raise NotifierError(f"Unsupported channel type {message.channel_type!r}")
