"""OrderChangeRequest model: a proposed set of order edits pending approval."""

from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import Date, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from src.models.order import Order
    from src.models.order_change_request_line_item import OrderChangeRequestLineItem
    from src.models.order_change_review import OrderChangeReview


class OrderChangeRequest(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "order_change_requests"

    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    author_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
    )
    change_status_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("status_lookups.id"),
        nullable=False,
    )
    change_request_number: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    note: Mapped[str | None] = mapped_column(Text)
    # Day granularity only
    created_on: Mapped[date] = mapped_column(Date, nullable=False)

    # Relationships
    order: Mapped[Order] = relationship(
        "Order", back_populates="change_requests", lazy="noload"
    )
    reviews: Mapped[list[OrderChangeReview]] = relationship(
        "OrderChangeReview", back_populates="change_request", lazy="noload"
    )
    line_items: Mapped[list[OrderChangeRequestLineItem]] = relationship(
        "OrderChangeRequestLineItem", back_populates="change_request", lazy="noload"
    )

    __table_args__ = (
        UniqueConstraint(
            "order_id", "change_request_number", name="uq_order_change_requests_order_number"
        ),
        Index("ix_order_change_requests_order_id", "order_id"),
    )
