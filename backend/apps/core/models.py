"""
Core models - shared base classes and webhook bookkeeping.
"""

from django.db import models


class TimestampedModel(models.Model):
    """Abstract base model with created_at/updated_at timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class ProcessedWebhook(models.Model):
    """
    Idempotency marker for provider webhooks.

    Providers deliver at-least-once; a row per (source, event_id) lets a
    redelivered event be acknowledged without being applied twice.
    """

    source = models.CharField(max_length=50, help_text="Provider name, e.g. 'stytch'")
    event_id = models.CharField(max_length=255, help_text="Provider delivery ID, e.g. Svix msg_xxx")
    processed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["source", "event_id"], name="unique_webhook_event"),
        ]

    def __str__(self) -> str:
        return f"{self.source}:{self.event_id}"
