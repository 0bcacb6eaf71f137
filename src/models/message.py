"""Message: a single post in an order's message thread."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, Text
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import MessagingBase, TimestampMixin, UUIDPrimaryKeyMixin
from src.models.enums import MessageAttachmentType

if TYPE_CHECKING:
    from src.models.message_thread import MessageThread


class Message(UUIDPrimaryKeyMixin, TimestampMixin, MessagingBase):
    __tablename__ = "messages"

    thread_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("message_threads.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    recipient_ids: Mapped[list[uuid.UUID]] = mapped_column(
        ARRAY(UUID(as_uuid=True)), nullable=False, server_default="{}"
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)
    attachment_type: Mapped[MessageAttachmentType | None] = mapped_column(
        SQLAlchemyEnum(MessageAttachmentType, name="messageattachmenttype", create_type=False)
    )
    attachment_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))

    thread: Mapped[MessageThread] = relationship(
        "MessageThread", back_populates="messages", lazy="noload"
    )

    __table_args__ = (
        Index("ix_messages_thread_id", "thread_id"),
    )
