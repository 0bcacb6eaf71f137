"""Order model: purchase order shared between a buyer and its counterparties."""

from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from src.models.order_change_request import OrderChangeRequest
    from src.models.order_line_item import OrderLineItem
    from src.models.order_participant import OrderParticipant


def _org_fk(nullable: bool = True):
    return mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="SET NULL" if nullable else "CASCADE"),
        nullable=nullable,
    )


class Order(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "orders"

    # Owning (buyer) organization
    org_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Counterparties
    buyer_id: Mapped[uuid.UUID] = _org_fk(nullable=False)
    supplier_id: Mapped[uuid.UUID] = _org_fk(nullable=False)
    forwarder_id: Mapped[uuid.UUID | None] = _org_fk()
    consignee_id: Mapped[uuid.UUID | None] = _org_fk()
    agent_id: Mapped[uuid.UUID | None] = _org_fk()
    broker_id: Mapped[uuid.UUID | None] = _org_fk()
    trucker_id: Mapped[uuid.UUID | None] = _org_fk()

    order_status_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("status_lookups.id"),
        nullable=False,
    )
    is_ready_for_booking: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default="false"
    )

    # Shipping information
    purchase_order_number: Mapped[str | None] = mapped_column(String(50))
    destination_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("locations.id", ondelete="SET NULL")
    )
    origin_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("locations.id", ondelete="SET NULL")
    )
    incoterms: Mapped[str | None] = mapped_column(String(10))
    cargo_ready_date: Mapped[date | None] = mapped_column(Date)
    requested_delivery_date: Mapped[date | None] = mapped_column(Date)
    special_instructions: Mapped[str | None] = mapped_column(Text)
    hot_flag: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    terms_and_conditions: Mapped[str | None] = mapped_column(Text)

    last_updated_by_org_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    extra_data: Mapped[dict] = mapped_column(
        JSONB, nullable=False, server_default="{}"
    )

    # Relationships
    line_items: Mapped[list[OrderLineItem]] = relationship(
        "OrderLineItem", back_populates="order", lazy="noload", cascade="all, delete-orphan"
    )
    participants: Mapped[list[OrderParticipant]] = relationship(
        "OrderParticipant", back_populates="order", lazy="noload", cascade="all, delete-orphan"
    )
    change_requests: Mapped[list[OrderChangeRequest]] = relationship(
        "OrderChangeRequest", back_populates="order", lazy="noload"
    )

    __table_args__ = (
        Index("ix_orders_org_id", "org_id"),
        Index("ix_orders_buyer_id", "buyer_id"),
        Index("ix_orders_supplier_id", "supplier_id"),
        Index("ix_orders_order_status_id", "order_status_id"),
        Index("ix_orders_purchase_order_number", "purchase_order_number"),
    )

    @property
    def associated_org_ids(self) -> set[uuid.UUID]:
        """Every organization referenced by the order."""
        return {
            org_id
            for org_id in (
                self.buyer_id,
                self.supplier_id,
                self.forwarder_id,
                self.consignee_id,
                self.agent_id,
                self.broker_id,
                self.trucker_id,
            )
            if org_id is not None
        }
