"""OrderEditSaga: ordered, independently committed phases across stores.

The relational, document and messaging stores never share a transaction. A
logical request runs as a sequence of phases; each phase commits its own
session. When a phase fails its session is rolled back and the phases that
already committed stay committed. Later reads go back to the store of record,
so a retry observes the real state rather than a stale projection.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession

from src.exceptions import AppException

logger = logging.getLogger(__name__)


class OrderEditSaga:
    def __init__(self, name: str, order_id: uuid.UUID):
        self.name = name
        self.order_id = order_id
        self.committed: list[str] = []

    @asynccontextmanager
    async def phase(self, name: str, session: AsyncSession) -> AsyncIterator[AsyncSession]:
        try:
            yield session
            await session.commit()
        except Exception as exc:
            await session.rollback()
            logger.error(
                "%s for order %s failed in phase '%s'; committed phases: %s",
                self.name,
                self.order_id,
                name,
                self.committed or "none",
            )
            if isinstance(exc, AppException):
                exc.details.append({
                    "operation": self.name,
                    "failedPhase": name,
                    "committedPhases": list(self.committed),
                })
            raise
        self.committed.append(name)
        logger.info("%s for order %s committed phase '%s'", self.name, self.order_id, name)
