"""OrderChangeRequestLineItem model: one delta captured by a change request."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.models.enums import ChangeRequestLineItemAction

if TYPE_CHECKING:
    from src.models.order_change_request import OrderChangeRequest


class OrderChangeRequestLineItem(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "order_change_request_line_items"

    order_change_request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("order_change_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    action: Mapped[ChangeRequestLineItemAction] = mapped_column(
        SQLAlchemyEnum(
            ChangeRequestLineItemAction, name="changerequestlineitemaction", create_type=False
        ),
        nullable=False,
    )
    # Null for ADD/REPLACE lines and shipping-information deltas
    order_line_item_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    # Set for SHIPPING_INFO deltas only
    field_name: Mapped[str | None] = mapped_column(String(100))
    previous_value: Mapped[Any] = mapped_column(JSONB)
    proposed_value: Mapped[Any] = mapped_column(JSONB)

    change_request: Mapped[OrderChangeRequest] = relationship(
        "OrderChangeRequest", back_populates="line_items", lazy="noload"
    )

    __table_args__ = (
        Index("ix_order_change_request_line_items_request_id", "order_change_request_id"),
    )
