"""
Tests for the ping endpoint.
"""
from unittest.mock import patch

import pytest
from django.db import DatabaseError
from django.urls import reverse

from heartbeat.models import CheckStatus
from tests.factories import CheckFactory

pytestmark = pytest.mark.django_db


class TestPingView:
    """Tests for /ping/<key>."""

    def test_ping_known_key(self, client):
        check = CheckFactory(status=CheckStatus.DOWN)

        response = client.post(reverse("heartbeat:ping", args=[check.ping_key]))

        check.refresh_from_db()
        assert response.status_code == 200
        assert response.content == b"OK"
        assert check.status == CheckStatus.UP

    def test_get_is_accepted(self, client):
        check = CheckFactory(status=CheckStatus.CREATED, last_ping_at=None)

        response = client.get(f"/ping/{check.ping_key}")

        check.refresh_from_db()
        assert response.status_code == 200
        assert check.status == CheckStatus.UP

    def test_unknown_key_looks_like_success(self, client):
        check = CheckFactory()

        known = client.post(f"/ping/{check.ping_key}")
        unknown = client.post("/ping/definitely-not-a-key")

        assert unknown.status_code == known.status_code
        assert unknown.content == known.content
        assert unknown["Content-Type"] == known["Content-Type"]

    @patch("heartbeat.views.ingest_ping")
    def test_database_error_still_answers_ok(self, mock_ingest, client):
        mock_ingest.side_effect = DatabaseError("database is locked")

        response = client.post("/ping/some-key")

        assert response.status_code == 200
        assert response.content == b"OK"

    def test_other_methods_rejected(self, client):
        check = CheckFactory()

        response = client.put(f"/ping/{check.ping_key}")

        assert response.status_code == 405

    def test_no_csrf_token_needed(self):
        from django.test import Client

        check = CheckFactory(status=CheckStatus.DOWN)
        csrf_client = Client(enforce_csrf_checks=True)

        response = csrf_client.post(f"/ping/{check.ping_key}")

        assert response.status_code == 200
