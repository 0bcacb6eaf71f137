"""OrderLineItem model: product lines of a purchase order."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from src.models.order import Order
    from src.models.order_line_item_note import OrderLineItemNote


class OrderLineItem(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "order_line_items"

    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    item_number: Mapped[str | None] = mapped_column(String(100))
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(15, 3), nullable=False)
    unit_of_measure: Mapped[str | None] = mapped_column(String(20))
    unit_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    supplier_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    last_updated_by_org_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))

    # Relationships
    order: Mapped[Order] = relationship(
        "Order", back_populates="line_items", lazy="noload"
    )
    notes: Mapped[list[OrderLineItemNote]] = relationship(
        "OrderLineItemNote", back_populates="line_item", lazy="noload", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_order_line_items_order_id", "order_id"),
    )
