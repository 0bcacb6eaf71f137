"""BookingRequest model: a request to book transport for order lines."""

import uuid

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class BookingRequest(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "booking_requests"

    booking_request_number: Mapped[str] = mapped_column(String(50), nullable=False)
    booking_status_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("status_lookups.id"),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_booking_requests_status", "booking_status_id"),
    )
