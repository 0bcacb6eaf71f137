"""Status vocabularies and lookup-cache configuration."""

# Status domains
ORDER_STATUS = "OrderStatus"
BOOKING_STATUS = "BookingStatus"
SHIPMENT_STATUS = "ShipmentStatus"
CHANGE_STATUS = "ChangeStatus"

# Order status names
ORDER_ISSUED = "Issued"
ORDER_RECEIVED = "Received"
ORDER_ACCEPTED = "Accepted"
ORDER_REJECTED = "Rejected"
ORDER_CANCELED = "Canceled"
ORDER_CLOSED = "Closed"

# Booking / shipment status names
BOOKING_CANCELED = "Canceled"
SHIPMENT_CANCELED = "Canceled"

# Change-control status names
CHANGE_PROPOSED = "Proposed"
CHANGE_APPROVED = "Approved"
CHANGE_REJECTED = "Rejected"

CACHE_PREFIX = "lookup"
