"""OrderLifecycle: editability, reset, direct updates and booking readiness."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.exceptions import PersistenceException
from src.models.booking_request import BookingRequest
from src.models.fulfillment_rollup import FulfillmentRollup
from src.models.order import Order
from src.models.order_change_request import OrderChangeRequest
from src.modules.events.outbox_service import OutboxService
from src.modules.identity.auth import AuthenticatedUser
from src.modules.lookups.constants import (
    BOOKING_CANCELED,
    BOOKING_STATUS,
    CHANGE_PROPOSED,
    ORDER_ACCEPTED,
    ORDER_STATUS,
)
from src.modules.lookups.service import StatusResolver
from src.modules.order.constants import EVENT_ORDER_RESET, NON_EDITABLE_STATUSES
from src.modules.order.loaders import OrderLoaders
from src.modules.order.schemas import ExtraDataInput

logger = logging.getLogger(__name__)


@dataclass
class EditableCheck:
    is_editable: bool
    message: str = ""


class OrderLifecycle:
    def __init__(self, db: AsyncSession, statuses: StatusResolver, loaders: OrderLoaders):
        self.db = db
        self.statuses = statuses
        self.loaders = loaders
        self.outbox = OutboxService(db)

    async def get_fulfillments(self, order_id: uuid.UUID) -> list[BookingRequest]:
        """Booking requests linked to the order's lines through the fulfillment rollup."""
        result = await self.db.execute(
            select(FulfillmentRollup.booking_request_id)
            .where(FulfillmentRollup.order_id == order_id)
            .distinct()
        )
        booking_request_ids = list(result.scalars().all())
        if not booking_request_ids:
            return []
        return await self.loaders.booking_requests.get_many(booking_request_ids)

    async def is_order_editable(
        self,
        order: Order,
        user: AuthenticatedUser,
        fulfillments: list[BookingRequest],
    ) -> EditableCheck:
        for status_name in NON_EDITABLE_STATUSES:
            if order.order_status_id == await self.statuses.get_status_id(status_name, ORDER_STATUS):
                return EditableCheck(False, f"Order is {status_name} and can no longer be edited.")

        if fulfillments and not user.is_integration and user.organization_id != order.buyer_id:
            canceled_id = await self.statuses.get_status_id(BOOKING_CANCELED, BOOKING_STATUS)
            if any(br.booking_status_id != canceled_id for br in fulfillments):
                return EditableCheck(
                    False,
                    "Order has active bookings; only the buyer can edit it.",
                )
        return EditableCheck(True)

    async def update_order(
        self,
        order: Order,
        org_id: uuid.UUID,
        fields: dict,
        extra_data: list[ExtraDataInput] | None = None,
    ) -> None:
        """Persist direct field mutations; ``extra_data`` entries merge by key."""
        values = dict(fields)
        if extra_data:
            merged = dict(order.extra_data or {})
            merged.update({entry.key: entry.value for entry in extra_data})
            values["extra_data"] = merged
        if not values:
            return

        result = await self.db.execute(
            update(Order)
            .where(Order.id == order.id)
            .values(**values, last_updated_by_org_id=org_id)
            .returning(Order.id)
        )
        if result.scalar_one_or_none() is None:
            raise PersistenceException(f"Failed to update order {order.id}", entity="order")
        self.loaders.orders.invalidate(order.id)
        logger.info("Updated order %s fields %s", order.id, sorted(values))

    async def reset_order(self, order: Order, reason: str) -> None:
        """Revert booking readiness; downstream booking/shipment cleanup reacts to the event."""
        await self.db.execute(
            update(Order).where(Order.id == order.id).values(is_ready_for_booking=False)
        )
        await self.outbox.publish_event(
            event_type=EVENT_ORDER_RESET,
            aggregate_type="order",
            aggregate_id=order.id,
            payload={"order_id": str(order.id), "reason": reason},
        )
        self.loaders.orders.invalidate(order.id)
        logger.info("Reset order %s (%s)", order.id, reason)

    def ready_for_booking_errors(self, order: Order) -> list[str]:
        errors = []
        if not order.line_items:
            errors.append("Order has no line items.")
        if order.destination_id is None:
            errors.append("Order has no destination.")
        if order.cargo_ready_date is None:
            errors.append("Order has no cargo ready date.")
        return errors

    async def _has_open_change_request(self, order_id: uuid.UUID) -> bool:
        proposed_id = await self.statuses.get_change_status_id(CHANGE_PROPOSED)
        result = await self.db.execute(
            select(func.count())
            .select_from(OrderChangeRequest)
            .where(
                OrderChangeRequest.order_id == order_id,
                OrderChangeRequest.change_status_id == proposed_id,
            )
        )
        return (result.scalar() or 0) > 0

    async def check_ready_for_booking(self, order_id: uuid.UUID) -> bool:
        """Recompute the derived ready-for-booking flag and store it if it changed."""
        order = await self.loaders.orders.invalidate(order_id).get(order_id)
        if order is None:
            return False

        accepted_id = await self.statuses.get_status_id(ORDER_ACCEPTED, ORDER_STATUS)
        ready = (
            order.order_status_id == accepted_id
            and not self.ready_for_booking_errors(order)
            and not await self._has_open_change_request(order_id)
        )
        if ready != order.is_ready_for_booking:
            await self.db.execute(
                update(Order).where(Order.id == order_id).values(is_ready_for_booking=ready)
            )
            self.loaders.orders.invalidate(order_id)
            logger.info("Order %s ready for booking: %s", order_id, ready)
        return ready
