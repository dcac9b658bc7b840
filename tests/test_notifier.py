"""
Tests for the notifier and its transports.
"""
import dataclasses
from unittest.mock import MagicMock, patch

import httpx
import pytest

from heartbeat.exceptions import NotifierError
from heartbeat.models import ChannelType, CheckStatus
from heartbeat.services.notifier import (
    AlertMessage,
    EmailTransport,
    Notifier,
    WebhookTransport,
)
from tests.factories import NotificationAlertFactory


def mock_http_client(mock_client_class, status_code=200, json_body=None):
    mock_response = MagicMock()
    mock_response.status_code = status_code
    mock_response.text = ""
    mock_response.json.return_value = json_body if json_body is not None else {}

    mock_client = MagicMock()
    mock_client.__enter__ = MagicMock(return_value=mock_client)
    mock_client.__exit__ = MagicMock(return_value=False)
    mock_client.post.return_value = mock_response
    mock_client_class.return_value = mock_client
    return mock_client


class TestAlertMessage:
    """Tests for building messages from alerts."""

    @pytest.mark.django_db
    def test_from_alert(self):
        alert = NotificationAlertFactory(
            channel__name="on-call", channel__email="ops@example.com"
        )

        message = AlertMessage.from_alert(alert)

        assert message.channel_type == ChannelType.EMAIL
        assert message.destination == "ops@example.com"
        assert message.check_name == "on-call"
        assert message.check_uuid == alert.monitored_check.uuid
        assert message.check_status == CheckStatus.DOWN

    def test_subject(self, email_message):
        assert email_message.subject == "[DOWN] nightly-backup"

    def test_never_pinged(self, email_message):
        message = dataclasses.replace(email_message, last_ping_at=None)

        assert message.last_ping_display == "never"


class TestEmailTransport:
    """Tests for Postmark email delivery."""

    @patch("heartbeat.services.notifier.httpx.Client")
    def test_send_success(self, mock_client_class, email_message):
        mock_client = mock_http_client(
            mock_client_class, json_body={"ErrorCode": 0, "Message": "OK"}
        )
        transport = EmailTransport(token="server-token", base_url="https://postmark.test")

        transport.send(email_message)

        mock_client.post.assert_called_once()
        call = mock_client.post.call_args
        assert call.args[0] == "https://postmark.test/email"
        assert call.kwargs["headers"]["X-Postmark-Server-Token"] == "server-token"
        assert call.kwargs["json"]["To"] == "ops@example.com"
        assert call.kwargs["json"]["Subject"] == "[DOWN] nightly-backup"

    @patch("heartbeat.services.notifier.httpx.Client")
    def test_http_error_status(self, mock_client_class, email_message):
        mock_http_client(mock_client_class, status_code=500)
        transport = EmailTransport(token="server-token")

        with pytest.raises(NotifierError, match="HTTP 500"):
            transport.send(email_message)

    @patch("heartbeat.services.notifier.httpx.Client")
    def test_postmark_error_code(self, mock_client_class, email_message):
        mock_http_client(
            mock_client_class,
            json_body={"ErrorCode": 300, "Message": "Invalid email request"},
        )
        transport = EmailTransport(token="server-token")

        with pytest.raises(NotifierError, match="300"):
            transport.send(email_message)

    @patch("heartbeat.services.notifier.httpx.Client")
    def test_timeout(self, mock_client_class, email_message):
        mock_client = mock_http_client(mock_client_class)
        mock_client.post.side_effect = httpx.TimeoutException("Connection timed out")
        transport = EmailTransport(token="server-token")

        with pytest.raises(NotifierError):
            transport.send(email_message)

    @patch("heartbeat.services.notifier.httpx.Client")
    def test_missing_token(self, mock_client_class, email_message):
        transport = EmailTransport(token="")

        with pytest.raises(NotifierError, match="POSTMARK_API_TOKEN"):
            transport.send(email_message)

        mock_client_class.assert_not_called()

    def test_missing_address(self, email_message):
        transport = EmailTransport(token="server-token")
        message = dataclasses.replace(email_message, destination="")

        with pytest.raises(NotifierError):
            transport.send(message)


class TestWebhookTransport:
    """Tests for webhook delivery."""

    @patch("heartbeat.services.notifier.httpx.Client")
    def test_posts_json_payload(self, mock_client_class, webhook_message):
        mock_client = mock_http_client(mock_client_class, status_code=204)

        WebhookTransport(timeout=5).send(webhook_message)

        call = mock_client.post.call_args
        assert call.args[0] == "https://hooks.example.com/heartbeat"
        assert call.kwargs["json"]["check_uuid"] == str(webhook_message.check_uuid)
        assert call.kwargs["json"]["status"] == "DOWN"
        assert call.kwargs["json"]["last_ping_at"] == webhook_message.last_ping_at.isoformat()
        mock_client_class.assert_called_once_with(timeout=5)

    @patch("heartbeat.services.notifier.httpx.Client")
    def test_non_2xx_is_failure(self, mock_client_class, webhook_message):
        mock_http_client(mock_client_class, status_code=502)

        with pytest.raises(NotifierError, match="502"):
            WebhookTransport().send(webhook_message)

    @patch("heartbeat.services.notifier.httpx.Client")
    def test_connection_error(self, mock_client_class, webhook_message):
        mock_client = mock_http_client(mock_client_class)
        mock_client.post.side_effect = httpx.ConnectError("Connection refused")

        with pytest.raises(NotifierError):
            WebhookTransport().send(webhook_message)

    @patch("heartbeat.services.notifier.httpx.Client")
    @patch("heartbeat.services.notifier.WebhookClient")
    def test_slack_url_uses_block_kit(
        self, mock_webhook_class, mock_client_class, webhook_message
    ):
        mock_slack = MagicMock()
        mock_slack.send.return_value = MagicMock(status_code=200)
        mock_webhook_class.return_value = mock_slack
        message = dataclasses.replace(
            webhook_message, destination="https://hooks.slack.com/services/T0/B0/x"
        )

        WebhookTransport().send(message)

        mock_slack.send.assert_called_once()
        blocks = mock_slack.send.call_args.kwargs["blocks"]
        assert blocks[0]["type"] == "header"
        assert "nightly-backup" in blocks[0]["text"]["text"]
        mock_client_class.assert_not_called()

    @patch("heartbeat.services.notifier.WebhookClient")
    def test_slack_failure(self, mock_webhook_class, webhook_message):
        mock_slack = MagicMock()
        mock_slack.send.return_value = MagicMock(status_code=404, body="no_service")
        mock_webhook_class.return_value = mock_slack
        message = dataclasses.replace(
            webhook_message, destination="https://hooks.slack.com/services/T0/B0/x"
        )

        with pytest.raises(NotifierError, match="404"):
            WebhookTransport().send(message)


class TestNotifier:
    """Tests for routing alerts to transports."""

    def test_routes_by_channel_type(self, email_message, webhook_message):
        email = MagicMock(spec=EmailTransport)
        webhook = MagicMock(spec=WebhookTransport)
        notifier = Notifier(email=email, webhook=webhook)

        notifier.send(email_message)
        notifier.send(webhook_message)

        email.send.assert_called_once_with(email_message)
        webhook.send.assert_called_once_with(webhook_message)

    def test_unknown_channel_type(self, email_message):
        notifier = Notifier(email=MagicMock(), webhook=MagicMock())
        message = dataclasses.replace(email_message, channel_type="SMS")

        with pytest.raises(NotifierError, match="SMS"):
            notifier.send(message)

    def test_from_settings(self, settings):
        settings.POSTMARK_API_TOKEN = "server-token"
        settings.ALERT_DISPATCH_TIMEOUT = 3.0

        notifier = Notifier.from_settings()

        assert notifier.email.token == "server-token"
        assert notifier.email.timeout == 3.0
        assert notifier.webhook.timeout == 3.0
