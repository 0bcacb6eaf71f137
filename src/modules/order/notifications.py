"""Default outbox handlers for order events.

Notification delivery (email, push) belongs to other services subscribed to
the same events; the handlers here record that each event was delivered.
"""

import logging

from src.modules.events.handlers import EventHandlerRegistry
from src.modules.order.constants import (
    EVENT_CHANGE_REQUEST_CREATED,
    EVENT_CHANGE_REQUEST_RESOLVED,
    EVENT_CHANGE_REVIEW_DECIDED,
    EVENT_ORDER_CREATED,
    EVENT_ORDER_MISSING_LOCATION,
    EVENT_ORDER_PARTICIPANTS_CHANGED,
    EVENT_ORDER_RESET,
    EVENT_ORDER_STATUS_CHANGED,
)

logger = logging.getLogger(__name__)


def log_order_event(payload: dict) -> None:
    logger.info(
        "Order event for order %s: %s",
        payload.get("order_id"),
        {k: v for k, v in payload.items() if k != "order_id"},
    )


def notify_missing_location(payload: dict) -> None:
    contacts = payload.get("contact_user_ids") or []
    if not contacts:
        logger.warning(
            "Order %s has no destination and no location contacts to notify",
            payload.get("order_id"),
        )
        return
    logger.info(
        "Order %s is missing a destination; notifying %d contact(s)",
        payload.get("order_id"),
        len(contacts),
    )


_HANDLERS = (
    (EVENT_ORDER_CREATED, log_order_event),
    (EVENT_ORDER_STATUS_CHANGED, log_order_event),
    (EVENT_ORDER_RESET, log_order_event),
    (EVENT_ORDER_PARTICIPANTS_CHANGED, log_order_event),
    (EVENT_CHANGE_REQUEST_CREATED, log_order_event),
    (EVENT_CHANGE_REVIEW_DECIDED, log_order_event),
    (EVENT_CHANGE_REQUEST_RESOLVED, log_order_event),
    (EVENT_ORDER_MISSING_LOCATION, notify_missing_location),
)


def register_order_event_handlers() -> None:
    """Register the default handlers; safe to call more than once."""
    for event_type, handler in _HANDLERS:
        EventHandlerRegistry.register(event_type, handler)
