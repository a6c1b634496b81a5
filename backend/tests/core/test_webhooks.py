"""Tests for webhook idempotency utilities."""

import pytest
from django.db import IntegrityError

from apps.core.models import ProcessedWebhook
from apps.core.webhooks import mark_webhook_processed


@pytest.mark.django_db
class TestProcessedWebhookModel:
    """Tests for ProcessedWebhook model."""

    def test_str_representation(self) -> None:
        webhook = ProcessedWebhook.objects.create(source="stytch", event_id="msg_456")

        assert str(webhook) == "stytch:msg_456"

    def test_unique_constraint(self) -> None:
        ProcessedWebhook.objects.create(source="stytch", event_id="msg_123")

        with pytest.raises(IntegrityError):
            ProcessedWebhook.objects.create(source="stytch", event_id="msg_123")


@pytest.mark.django_db
class TestMarkWebhookProcessed:
    """Tests for mark_webhook_processed function."""

    def test_first_delivery(self) -> None:
        assert mark_webhook_processed("stytch", "msg_new") is True
        assert ProcessedWebhook.objects.filter(source="stytch", event_id="msg_new").exists()

    def test_redelivery(self) -> None:
        mark_webhook_processed("stytch", "msg_dup")

        assert mark_webhook_processed("stytch", "msg_dup") is False
        assert ProcessedWebhook.objects.filter(event_id="msg_dup").count() == 1

    def test_sources_are_independent(self) -> None:
        mark_webhook_processed("stytch", "msg_1")

        assert mark_webhook_processed("other", "msg_1") is True
