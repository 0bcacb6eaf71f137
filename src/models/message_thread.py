"""MessageThread: one conversation per order, in the messaging store."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Index, String
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import MessagingBase, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from src.models.message import Message


class MessageThread(UUIDPrimaryKeyMixin, TimestampMixin, MessagingBase):
    __tablename__ = "message_threads"

    order_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, unique=True)
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    participant_ids: Mapped[list[uuid.UUID]] = mapped_column(
        ARRAY(UUID(as_uuid=True)), nullable=False, server_default="{}"
    )

    messages: Mapped[list[Message]] = relationship(
        "Message", back_populates="thread", lazy="noload"
    )

    __table_args__ = (
        Index("ix_message_threads_order_id", "order_id"),
    )
