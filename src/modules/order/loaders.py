"""Request-scoped entity loaders.

Each loader memoizes rows by primary key for the lifetime of one service
instance. ``invalidate`` returns the loader so that a fresh read reads as
``await loader.invalidate(order_id).get(order_id)``.
"""

from __future__ import annotations

import uuid
from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.models.booking_request import BookingRequest
from src.models.order import Order
from src.models.order_line_item import OrderLineItem

T = TypeVar("T")


class EntityLoader(Generic[T]):
    def __init__(self, db: AsyncSession, model: type[T], options: tuple[Any, ...] = ()):
        self.db = db
        self.model = model
        self.options = options
        self._cache: dict[uuid.UUID, T | None] = {}

    async def get(self, entity_id: uuid.UUID) -> T | None:
        if entity_id in self._cache:
            return self._cache[entity_id]
        result = await self.db.execute(
            select(self.model)
            .where(self.model.id == entity_id)  # type: ignore[attr-defined]
            .options(*self.options)
            .execution_options(populate_existing=True)
        )
        entity = result.scalar_one_or_none()
        self._cache[entity_id] = entity
        return entity

    async def get_many(self, entity_ids: list[uuid.UUID]) -> list[T]:
        """Load several rows, issuing one query for the ones not yet cached."""
        missing = [eid for eid in entity_ids if eid not in self._cache]
        if missing:
            result = await self.db.execute(
                select(self.model)
                .where(self.model.id.in_(missing))  # type: ignore[attr-defined]
                .execution_options(populate_existing=True)
            )
            found = {row.id: row for row in result.scalars().all()}
            for eid in missing:
                self._cache[eid] = found.get(eid)
        return [self._cache[eid] for eid in entity_ids if self._cache[eid] is not None]

    def prime(self, entity_id: uuid.UUID, entity: T) -> EntityLoader[T]:
        self._cache[entity_id] = entity
        return self

    def invalidate(self, entity_id: uuid.UUID) -> EntityLoader[T]:
        self._cache.pop(entity_id, None)
        return self


class OrderLoaders:
    """Loaders for the entities an order edit touches."""

    def __init__(self, db: AsyncSession):
        self.orders: EntityLoader[Order] = EntityLoader(
            db,
            Order,
            options=(selectinload(Order.line_items), selectinload(Order.participants)),
        )
        self.line_items: EntityLoader[OrderLineItem] = EntityLoader(db, OrderLineItem)
        self.booking_requests: EntityLoader[BookingRequest] = EntityLoader(db, BookingRequest)
