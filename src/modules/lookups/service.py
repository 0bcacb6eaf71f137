"""StatusResolver: status name to id resolution through the lookup cache."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.exceptions import NotFoundException
from src.models.status_lookup import StatusLookup
from src.modules.lookups.cache import LookupCache, lookup_cache
from src.modules.lookups.constants import CHANGE_STATUS

logger = logging.getLogger(__name__)


class StatusResolver:
    def __init__(self, db: AsyncSession, cache: LookupCache | None = None):
        self.db = db
        self.cache = cache or lookup_cache

    async def get_status_id(self, name: str, domain: str) -> uuid.UUID:
        """Resolve ``name`` within ``domain`` (e.g. ``Accepted`` / ``OrderStatus``)."""

        async def _load() -> str | None:
            result = await self.db.execute(
                select(StatusLookup.id).where(
                    StatusLookup.domain == domain,
                    StatusLookup.name == name,
                )
            )
            status_id = result.scalar_one_or_none()
            return str(status_id) if status_id is not None else None

        cached = await self.cache.get_or_set(domain, name, _load)
        if cached is None:
            raise NotFoundException(f"Status '{name}' not found in domain '{domain}'")
        return uuid.UUID(cached)

    async def get_change_status_id(self, name: str) -> uuid.UUID:
        return await self.get_status_id(name, CHANGE_STATUS)
