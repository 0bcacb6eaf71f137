# Import all models so SQLAlchemy metadata is populated for Alembic autogenerate
from src.models.booking_confirmation import BookingConfirmation
from src.models.booking_request import BookingRequest
from src.models.document_line_item import DocumentLineItem
from src.models.enums import (
    ChangeRequestLineItemAction,
    EventStatus,
    MessageAttachmentType,
    OrganizationType,
)
from src.models.event_outbox import EventOutbox
from src.models.fulfillment_rollup import FulfillmentRollup
from src.models.location import Location
from src.models.message import Message
from src.models.message_thread import MessageThread
from src.models.order import Order
from src.models.order_change_request import OrderChangeRequest
from src.models.order_change_request_line_item import OrderChangeRequestLineItem
from src.models.order_change_review import OrderChangeReview
from src.models.order_line_item import OrderLineItem
from src.models.order_line_item_note import OrderLineItemNote
from src.models.order_participant import OrderParticipant
from src.models.organization import Organization
from src.models.processed_event import ProcessedEvent
from src.models.shipment import Shipment
from src.models.status_lookup import StatusLookup
from src.models.user import User

__all__ = [
    "BookingConfirmation",
    "BookingRequest",
    "ChangeRequestLineItemAction",
    "DocumentLineItem",
    "EventOutbox",
    "EventStatus",
    "FulfillmentRollup",
    "Location",
    "Message",
    "MessageAttachmentType",
    "MessageThread",
    "Order",
    "OrderChangeRequest",
    "OrderChangeRequestLineItem",
    "OrderChangeReview",
    "OrderLineItem",
    "OrderLineItemNote",
    "OrderParticipant",
    "Organization",
    "OrganizationType",
    "ProcessedEvent",
    "Shipment",
    "StatusLookup",
    "User",
]
