"""OrderParticipant model: users entitled to act on an order."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Index, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from src.models.order import Order


class OrderParticipant(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "order_participants"

    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    # Change controller: their review gates approval of change requests
    approval_is_required: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default="false"
    )

    order: Mapped[Order] = relationship(
        "Order", back_populates="participants", lazy="noload"
    )

    __table_args__ = (
        UniqueConstraint("order_id", "user_id", name="uq_order_participants_order_user"),
        Index("ix_order_participants_order_id", "order_id"),
    )
