"""
Webhook utilities for idempotent processing.
"""

from django.db import IntegrityError, transaction

from apps.core.logging import get_logger
from apps.core.models import ProcessedWebhook

logger = get_logger(__name__)


def mark_webhook_processed(source: str, event_id: str) -> bool:
    """
    Record a webhook delivery, returning False if it was already recorded.

    Relies on the unique constraint instead of a read-then-write, so two
    concurrent deliveries of the same event cannot both return True.
    Call inside the transaction that applies the event so a failed handler
    rolls the marker back and the provider's retry is processed.
    """
    try:
        with transaction.atomic():
            ProcessedWebhook.objects.create(source=source, event_id=event_id)
    except IntegrityError:
        logger.debug("webhook_already_processed", source=source, event_id=event_id)
        return False
    return True
