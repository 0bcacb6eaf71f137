"""Organization model: buyers and every counterparty that can sit on an order."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Index, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from src.models.enums import OrganizationType

if TYPE_CHECKING:
    from src.models.user import User


class Organization(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    organization_type: Mapped[OrganizationType] = mapped_column(
        nullable=False, server_default="BUYER"
    )
    # Buyer-level configuration (purchase order change control, field editability,
    # location auto-create). Parsed by PreferencesService.
    preferences: Mapped[dict] = mapped_column(
        JSONB, nullable=False, server_default="{}"
    )

    users: Mapped[list[User]] = relationship(
        "User", back_populates="organization", lazy="noload"
    )

    __table_args__ = (
        Index("ix_organizations_name", "name"),
    )
