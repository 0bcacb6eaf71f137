"""Celery tasks draining the order event outbox."""

import logging

from celery_app import celery
from src.config import settings
from src.modules.events.outbox_processor import OutboxProcessor
from src.modules.order.notifications import register_order_event_handlers

logger = logging.getLogger(__name__)

register_order_event_handlers()


@celery.task(name="src.modules.events.tasks.process_outbox")
def process_outbox() -> dict:
    counts = OutboxProcessor().process_batch(batch_size=settings.event_outbox_batch_size)
    if counts["failed"]:
        logger.warning(
            "Outbox drain: %d processed, %d failed", counts["processed"], counts["failed"]
        )
    elif counts["processed"]:
        logger.info("Outbox drain: %d processed", counts["processed"])
    return counts


@celery.task(name="src.modules.events.tasks.cleanup_processed_events")
def cleanup_processed_events() -> int:
    """Prune expired idempotency rows and month-old completed outbox events."""
    return OutboxProcessor().cleanup_expired()
