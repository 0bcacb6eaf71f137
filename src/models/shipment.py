"""Shipment document: lives in the document store."""

from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import DocumentBase, TimestampMixin, UUIDPrimaryKeyMixin


class Shipment(UUIDPrimaryKeyMixin, TimestampMixin, DocumentBase):
    __tablename__ = "shipments"

    fields: Mapped[dict] = mapped_column(JSONB, nullable=False, server_default="{}")
