"""Generic line-item linkage between documents and purchase-order lines.

``target_id`` points at a booking confirmation or shipment; ``fields`` carries
``orderId``, ``orderLineItemId`` and, for shipments, ``shipmentStatusId``.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import DocumentBase, TimestampMixin, UUIDPrimaryKeyMixin


class DocumentLineItem(UUIDPrimaryKeyMixin, TimestampMixin, DocumentBase):
    __tablename__ = "line_items"

    target_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    fields: Mapped[dict] = mapped_column(JSONB, nullable=False, server_default="{}")
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("ix_line_items_target_id", "target_id"),
        Index("ix_line_items_order_id", text("(fields->>'orderId')")),
    )
