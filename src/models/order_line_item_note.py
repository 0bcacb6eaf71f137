"""OrderLineItemNote model: free-text notes attached to a line item."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from src.models.order_line_item import OrderLineItem


class OrderLineItemNote(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "order_line_item_notes"

    order_line_item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("order_line_items.id", ondelete="CASCADE"),
        nullable=False,
    )
    author_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL")
    )
    note: Mapped[str] = mapped_column(Text, nullable=False)

    line_item: Mapped[OrderLineItem] = relationship(
        "OrderLineItem", back_populates="notes", lazy="noload"
    )

    __table_args__ = (
        Index("ix_order_line_item_notes_line_item_id", "order_line_item_id"),
    )
