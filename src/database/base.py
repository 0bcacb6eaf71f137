"""Declarative bases and shared column mixins.

Each store has its own metadata: the relational order store, the document
store holding bookings and shipments, and the messaging store. Models of
different stores never share a transaction.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, func, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Relational order store."""


class DocumentBase(DeclarativeBase):
    """Document store (booking confirmations, shipments, line-item linkages)."""


class MessagingBase(DeclarativeBase):
    """Messaging store (order message threads)."""


class UUIDPrimaryKeyMixin:
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
