"""OrderChangeReview model: one approver's verdict on a change request."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from src.models.order_change_request import OrderChangeRequest


class OrderChangeReview(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "order_change_reviews"

    order_change_request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("order_change_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    reviewer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
    )
    change_status_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("status_lookups.id"),
        nullable=False,
    )
    review_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    comment: Mapped[str | None] = mapped_column(Text)

    change_request: Mapped[OrderChangeRequest] = relationship(
        "OrderChangeRequest", back_populates="reviews", lazy="noload"
    )

    __table_args__ = (
        UniqueConstraint(
            "order_change_request_id", "reviewer_id", name="uq_order_change_reviews_request_reviewer"
        ),
        Index("ix_order_change_reviews_request_id", "order_change_request_id"),
    )
