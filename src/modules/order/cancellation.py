"""Cancellation Eligibility Checker: cross-store veto on order cancellation.

An order can be cancelled only when nothing linked to it is still active:

* booking requests (relational store, via the fulfillment rollup) must all be
  in the canceled booking status;
* booking confirmations and shipments (document store, via the generic
  line-item linkage) count only once touched after creation, and block unless
  their status is the canceled one. A missing status blocks.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.booking_confirmation import BookingConfirmation
from src.models.document_line_item import DocumentLineItem
from src.models.shipment import Shipment
from src.modules.lookups.constants import (
    BOOKING_CANCELED,
    BOOKING_STATUS,
    SHIPMENT_CANCELED,
    SHIPMENT_STATUS,
)
from src.modules.lookups.service import StatusResolver
from src.modules.order.lifecycle import OrderLifecycle

logger = logging.getLogger(__name__)


class CancellationEligibilityChecker:
    def __init__(
        self,
        docs: AsyncSession,
        statuses: StatusResolver,
        lifecycle: OrderLifecycle,
    ):
        self.docs = docs
        self.statuses = statuses
        self.lifecycle = lifecycle

    async def _has_active_booking_request(self, order_id: uuid.UUID, canceled_id: uuid.UUID) -> bool:
        booking_requests = await self.lifecycle.get_fulfillments(order_id)
        return any(br.booking_status_id != canceled_id for br in booking_requests)

    async def _has_active_booking_confirmation(
        self, order_id: uuid.UUID, canceled_id: uuid.UUID
    ) -> bool:
        status = BookingConfirmation.fields["statusId"].astext
        result = await self.docs.execute(
            select(BookingConfirmation.id)
            .join(DocumentLineItem, DocumentLineItem.target_id == BookingConfirmation.id)
            .where(
                DocumentLineItem.fields["orderId"].astext == str(order_id),
                or_(status != str(canceled_id), status.is_(None)),
                BookingConfirmation.created_at != BookingConfirmation.updated_at,
                DocumentLineItem.deleted_at.is_(None),
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def _has_active_shipment(self, order_id: uuid.UUID, canceled_id: uuid.UUID) -> bool:
        # Shipment status is tracked on the linkage row
        status = DocumentLineItem.fields["shipmentStatusId"].astext
        result = await self.docs.execute(
            select(Shipment.id)
            .join(DocumentLineItem, DocumentLineItem.target_id == Shipment.id)
            .where(
                DocumentLineItem.fields["orderId"].astext == str(order_id),
                or_(status != str(canceled_id), status.is_(None)),
                Shipment.created_at != Shipment.updated_at,
                DocumentLineItem.deleted_at.is_(None),
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def can_order_be_cancelled(self, order_id: uuid.UUID) -> bool:
        booking_canceled_id = await self.statuses.get_status_id(BOOKING_CANCELED, BOOKING_STATUS)
        if await self._has_active_booking_request(order_id, booking_canceled_id):
            logger.info("Order %s has an active booking request", order_id)
            return False

        if await self._has_active_booking_confirmation(order_id, booking_canceled_id):
            logger.info("Order %s has an active booking confirmation", order_id)
            return False

        shipment_canceled_id = await self.statuses.get_status_id(SHIPMENT_CANCELED, SHIPMENT_STATUS)
        if await self._has_active_shipment(order_id, shipment_canceled_id):
            logger.info("Order %s has an active shipment", order_id)
            return False

        return True
