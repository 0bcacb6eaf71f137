"""Order edit constants: change-control defaults, field sets, event types."""

from __future__ import annotations

from src.modules.lookups.constants import ORDER_ACCEPTED, ORDER_CANCELED, ORDER_CLOSED, ORDER_RECEIVED

# ---------------------------------------------------------------------------
# Change control
# ---------------------------------------------------------------------------

# Order statuses in which change control can apply
CHANGE_CONTROLLED_STATUSES: tuple[str, ...] = (ORDER_RECEIVED, ORDER_ACCEPTED)

# Shipping fields that never go through change control unless configured otherwise
DEFAULT_EXCLUDED_FROM_CHANGE_CONTROL: tuple[str, ...] = (
    "cargo_ready_date",
    "hot_flag",
    "special_instructions",
)

CHANGE_REQUEST_TITLE = "Change Request #{number}"

# ---------------------------------------------------------------------------
# Field sets
# ---------------------------------------------------------------------------

# Order header fields whose editability is configured per buyer
EDITABLE_ORDER_KEYS: frozenset[str] = frozenset({
    "purchase_order_number",
    "destination_id",
    "origin_id",
    "incoterms",
    "cargo_ready_date",
    "requested_delivery_date",
    "special_instructions",
    "hot_flag",
    "terms_and_conditions",
    "supplier_id",
    "forwarder_id",
    "consignee_id",
    "agent_id",
    "broker_id",
    "trucker_id",
    "line_items",
})

# Editing any of these changes who is on the order's message thread
PARTICIPANT_ORG_FIELDS: tuple[str, ...] = (
    "agent_id",
    "broker_id",
    "consignee_id",
    "forwarder_id",
    "supplier_id",
    "trucker_id",
)

# Order statuses in which no edit is possible
NON_EDITABLE_STATUSES: tuple[str, ...] = (ORDER_CANCELED, ORDER_CLOSED)

LOCATION_TYPE_DESTINATION = "Destination"

# ---------------------------------------------------------------------------
# Event type strings for the outbox
# ---------------------------------------------------------------------------

EVENT_ORDER_CREATED = "order.created"
EVENT_ORDER_STATUS_CHANGED = "order.status_changed"
EVENT_ORDER_RESET = "order.reset"
EVENT_ORDER_MISSING_LOCATION = "order.missing_location"
EVENT_ORDER_PARTICIPANTS_CHANGED = "order.participants_changed"
EVENT_CHANGE_REQUEST_CREATED = "order.change_request.created"
EVENT_CHANGE_REVIEW_DECIDED = "order.change_review.decided"
EVENT_CHANGE_REQUEST_RESOLVED = "order.change_request.resolved"
