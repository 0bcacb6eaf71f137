"""Location lookup-or-create used when integrations send unknown ship-to locations."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.location import Location
from src.modules.order.schemas import LocationInput

logger = logging.getLogger(__name__)


class LocationService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_or_get_location(
        self,
        location_type: str,
        candidate: LocationInput,
        org_id: uuid.UUID,
    ) -> Location:
        """Match on organization, type and name (and code when given), otherwise create."""
        stmt = select(Location).where(
            Location.organization_id == org_id,
            Location.location_type == location_type,
            func.lower(Location.name) == candidate.name.lower(),
        )
        if candidate.code:
            stmt = stmt.where(Location.code == candidate.code)
        result = await self.db.execute(stmt.limit(1))
        location = result.scalar_one_or_none()
        if location is not None:
            return location

        location = Location(
            organization_id=org_id,
            location_type=location_type,
            **candidate.model_dump(),
        )
        self.db.add(location)
        await self.db.flush()
        logger.info(
            "Auto-created %s location '%s' for organization %s",
            location_type,
            candidate.name,
            org_id,
        )
        return location
