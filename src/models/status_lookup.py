"""StatusLookup model: name/domain to id table for every status vocabulary."""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base, UUIDPrimaryKeyMixin


class StatusLookup(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "status_lookups"

    domain: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    __table_args__ = (
        UniqueConstraint("domain", "name", name="uq_status_lookups_domain_name"),
    )

    def __repr__(self) -> str:
        return f"<StatusLookup {self.domain},{self.name} id={self.id}>"
