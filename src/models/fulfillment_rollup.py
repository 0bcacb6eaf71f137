"""FulfillmentRollup: read-only view linking order lines to booking requests."""

import uuid

from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base


class FulfillmentRollup(Base):
    """Mapped onto the ``fulfillment_rollup`` view; never written.

    One row per (order line item, booking request) pair.
    """

    __tablename__ = "fulfillment_rollup"
    __table_args__ = {"info": {"is_view": True}}

    order_line_item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True
    )
    booking_request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True
    )
    order_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
