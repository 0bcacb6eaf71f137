"""Order edit service: order creation, the Order Mutation Router and the status sub-operation.

``edit_order`` decides once, per request, whether an edit lands directly on
the order (Path A), only as a change request (Path B), or both (Path C), and
then runs the chosen writes as saga phases. Every public operation returns the
order as re-read from the relational store after its writes committed.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from src.exceptions import (
    BusinessRuleException,
    ForbiddenException,
    NotFoundException,
    PersistenceException,
)
from src.models.order import Order
from src.modules.events.outbox_service import OutboxService
from src.modules.identity.auth import AuthenticatedUser
from src.modules.identity.constants import PERMISSION_ADMIN, PERMISSION_STAFF
from src.modules.lookups.cache import LookupCache
from src.modules.lookups.constants import (
    ORDER_ACCEPTED,
    ORDER_CANCELED,
    ORDER_ISSUED,
    ORDER_REJECTED,
    ORDER_STATUS,
)
from src.modules.lookups.service import StatusResolver
from src.modules.messaging.service import MessagingService
from src.modules.order.cancellation import CancellationEligibilityChecker
from src.modules.order.change_control import ChangeControlService
from src.modules.order.constants import (
    CHANGE_CONTROLLED_STATUSES,
    EVENT_ORDER_CREATED,
    EVENT_ORDER_MISSING_LOCATION,
    EVENT_ORDER_STATUS_CHANGED,
    LOCATION_TYPE_DESTINATION,
    PARTICIPANT_ORG_FIELDS,
)
from src.modules.order.decision import EditDecision, decide_edit_path, has_change_control
from src.modules.order.field_classifier import (
    check_fields_editable,
    classify_shipping_fields,
    drop_unchanged_fields,
    excluded_from_change_control,
)
from src.modules.order.lifecycle import OrderLifecycle
from src.modules.order.line_items import (
    LineItemReconciler,
    drop_unchanged_line_item_edits,
    validate_line_item_instructions,
)
from src.modules.order.loaders import OrderLoaders
from src.modules.order.locations import LocationService
from src.modules.order.participants import ParticipantService
from src.modules.order.preferences import ACTION_CREATE, BuyerPreferences, PreferencesService
from src.modules.order.saga import OrderEditSaga
from src.modules.order.schemas import CreateOrderInput, EditOrderInput, OrderLineItemsInput

logger = logging.getLogger(__name__)


def _line_items_payload(line_items: OrderLineItemsInput | None) -> dict:
    if line_items is None:
        return {}
    return line_items.model_dump(exclude_none=True)


class OrderEditService:
    def __init__(
        self,
        db: AsyncSession,
        docs: AsyncSession,
        messages: AsyncSession,
        cache: LookupCache | None = None,
    ):
        self.db = db
        self.docs = docs
        self.messages = messages
        self.loaders = OrderLoaders(db)
        self.statuses = StatusResolver(db, cache)
        self.preferences = PreferencesService(db)
        self.lifecycle = OrderLifecycle(db, self.statuses, self.loaders)
        self.line_items = LineItemReconciler(db, self.loaders)
        self.change_control = ChangeControlService(db, messages, self.statuses, self.loaders)
        self.participants = ParticipantService(db, messages, self.loaders)
        self.cancellation = CancellationEligibilityChecker(docs, self.statuses, self.lifecycle)
        self.locations = LocationService(db)
        self.messaging = MessagingService(messages)
        self.outbox = OutboxService(db)

    # ------------------------------------------------------------------
    # Reads and guards
    # ------------------------------------------------------------------

    async def _reload(self, order_id: uuid.UUID) -> Order:
        """Drop any cached copy and read the order from the store of record."""
        order = await self.loaders.orders.invalidate(order_id).get(order_id)
        if order is None:
            raise NotFoundException(f"Order {order_id} not found")
        return order

    @staticmethod
    def is_visible(order: Order, user: AuthenticatedUser) -> bool:
        return (
            user.is_integration
            or user.has_any_permission(PERMISSION_ADMIN, PERMISSION_STAFF)
            or user.organization_id in order.associated_org_ids
        )

    async def get_order(self, order_id: uuid.UUID, user: AuthenticatedUser) -> Order:
        order = await self._reload(order_id)
        if not self.is_visible(order, user):
            # Same answer as a missing order; do not leak existence
            raise NotFoundException(f"Order {order_id} not found")
        return order

    async def _require_editable(self, order: Order, user: AuthenticatedUser) -> None:
        if not self.is_visible(order, user):
            raise ForbiddenException("User does not have permission to edit this order.")
        fulfillments = await self.lifecycle.get_fulfillments(order.id)
        check = await self.lifecycle.is_order_editable(order, user, fulfillments)
        if not check.is_editable:
            raise ForbiddenException(check.message)

    async def can_order_be_cancelled(self, order_id: uuid.UUID, user: AuthenticatedUser) -> bool:
        order = await self.get_order(order_id, user)
        return await self.cancellation.can_order_be_cancelled(order.id)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    @staticmethod
    def _check_can_create(
        payload: CreateOrderInput, user: AuthenticatedUser, buyer_prefs: BuyerPreferences
    ) -> None:
        order_orgs = {payload.buyer_id, *payload.header_fields().values()}
        external = user.organization_id != payload.buyer_id
        if user.organization_id not in order_orgs or (
            external and not buyer_prefs.purchase_order.allow_external_creation
        ):
            raise ForbiddenException(
                f"User {user.id} does not have permission to create an order for this org."
            )

    async def create_order(self, payload: CreateOrderInput, user: AuthenticatedUser) -> Order:
        """Issue a new order with default participants and a message thread.

        The order row, its extra data and its participants commit together.
        Line items, the message thread and the missing-location notice follow
        as their own phases.
        """
        header = {k: v for k, v in payload.header_fields().items() if v is not None}
        shipping = {k: v for k, v in payload.shipping_fields().items() if v is not None}

        if user.is_integration:
            buyer_prefs = await self.preferences.get_buyer_preferences(payload.buyer_id)
            org_id = payload.buyer_id
        else:
            prefs = await self.preferences.get_preferences(
                user.id, user.organization_id, payload.buyer_id
            )
            buyer_prefs = prefs.buyer
            org_id = user.organization_id
            self._check_can_create(payload, user, buyer_prefs)
            check_fields_editable({**shipping, **header}, prefs.field_configs, action=ACTION_CREATE)

        location_auto_create = (
            user.is_integration
            and buyer_prefs.enable_location_auto_create
            and not shipping.get("destination_id")
        )
        issued_id = await self.statuses.get_status_id(ORDER_ISSUED, ORDER_STATUS)
        order_id = uuid.uuid4()
        saga = OrderEditSaga("create_order", order_id)

        if not shipping.get("terms_and_conditions") and buyer_prefs.terms_and_conditions:
            shipping["terms_and_conditions"] = buyer_prefs.terms_and_conditions

        async with saga.phase("order", self.db):
            if location_auto_create and payload.ship_to_location is not None:
                location = await self.locations.create_or_get_location(
                    LOCATION_TYPE_DESTINATION, payload.ship_to_location, payload.buyer_id
                )
                shipping["destination_id"] = location.id
            result = await self.db.execute(
                insert(Order)
                .values(
                    id=order_id,
                    org_id=org_id,
                    buyer_id=payload.buyer_id,
                    **header,
                    **shipping,
                    order_status_id=issued_id,
                    is_ready_for_booking=False,
                    last_updated_by_org_id=org_id,
                    extra_data={entry.key: entry.value for entry in payload.extra_data() or []},
                )
                .returning(Order.id)
            )
            if result.scalar_one_or_none() is None:
                raise PersistenceException("Failed to create order", entity="order")

            participants = await self.participants.default_participants(
                order_id,
                (
                    payload.buyer_id,
                    org_id,
                    payload.supplier_id,
                    payload.consignee_id,
                    payload.forwarder_id,
                ),
                (payload.buyer_id, payload.supplier_id),
            )
            await self.participants.add_participants(order_id, participants)
            await self.outbox.publish_event(
                event_type=EVENT_ORDER_CREATED,
                aggregate_type="order",
                aggregate_id=order_id,
                payload={
                    "order_id": str(order_id),
                    "buyer_id": str(payload.buyer_id),
                    "created_by": str(user.id),
                    "participant_ids": [str(p.user_id) for p in participants],
                },
            )

        if payload.line_items:
            async with saga.phase("line_items", self.db):
                order = await self._reload(order_id)
                await self.line_items.apply(
                    order, OrderLineItemsInput(add_line_items=payload.line_items), org_id, user.id
                )

        async with saga.phase("message_thread", self.messages):
            await self.messaging.create_or_edit_message_thread(
                order_id, [p.user_id for p in participants]
            )

        created = await self._reload(order_id)
        if location_auto_create and created.destination_id is None:
            await self._notify_missing_location(saga, created, buyer_prefs)

        logger.info(
            "User %s created order %s for buyer %s with %d participant(s)",
            user.id,
            order_id,
            payload.buyer_id,
            len(participants),
        )
        return created

    async def _notify_missing_location(
        self, saga: OrderEditSaga, order: Order, buyer_prefs: BuyerPreferences
    ) -> None:
        async with saga.phase("missing_location_notice", self.db):
            await self.outbox.publish_event(
                event_type=EVENT_ORDER_MISSING_LOCATION,
                aggregate_type="order",
                aggregate_id=order.id,
                payload={
                    "order_id": str(order.id),
                    "buyer_id": str(order.buyer_id),
                    "contact_user_ids": [
                        str(uid) for uid in buyer_prefs.location_auto_create_contact_list
                    ],
                },
            )
        logger.warning("Order %s from integration still has no destination", order.id)

    # ------------------------------------------------------------------
    # Status sub-operation
    # ------------------------------------------------------------------

    async def edit_order_status(
        self,
        order_id: uuid.UUID,
        order_status_id: uuid.UUID,
        user: AuthenticatedUser,
    ) -> Order:
        """Move the order to ``order_status_id`` with the transition's side effects.

        Cancelling requires the cancellation checker to pass. Cancelling or
        rejecting resets the order. Accepting requires the order to be
        complete enough for booking and marks it ready for booking.
        """
        order = await self._reload(order_id)
        await self._require_editable(order, user)
        if order.order_status_id == order_status_id:
            return order

        canceled_id = await self.statuses.get_status_id(ORDER_CANCELED, ORDER_STATUS)
        rejected_id = await self.statuses.get_status_id(ORDER_REJECTED, ORDER_STATUS)
        accepted_id = await self.statuses.get_status_id(ORDER_ACCEPTED, ORDER_STATUS)

        if order_status_id == canceled_id and not await self.cancellation.can_order_be_cancelled(
            order.id
        ):
            raise BusinessRuleException(
                "Order cannot be cancelled while it has active booking requests, "
                "booking confirmations or shipments."
            )

        values: dict = {"order_status_id": order_status_id}
        if order_status_id == accepted_id:
            errors = self.lifecycle.ready_for_booking_errors(order)
            if errors:
                raise ForbiddenException(" ".join(errors))
            values["is_ready_for_booking"] = True

        saga = OrderEditSaga("edit_order_status", order.id)
        async with saga.phase("order_status", self.db):
            await self.lifecycle.update_order(order, user.organization_id, values)
            if order_status_id in (canceled_id, rejected_id):
                await self.lifecycle.reset_order(order, reason="status change")
            await self.outbox.publish_event(
                event_type=EVENT_ORDER_STATUS_CHANGED,
                aggregate_type="order",
                aggregate_id=order.id,
                payload={
                    "order_id": str(order.id),
                    "from_status_id": str(order.order_status_id),
                    "to_status_id": str(order_status_id),
                    "changed_by": str(user.id),
                },
            )

        logger.info(
            "Order %s status %s -> %s by user %s",
            order.id,
            order.order_status_id,
            order_status_id,
            user.id,
        )
        return await self._reload(order.id)

    # ------------------------------------------------------------------
    # Edit
    # ------------------------------------------------------------------

    async def edit_order(
        self,
        order_id: uuid.UUID,
        payload: EditOrderInput,
        user: AuthenticatedUser,
    ) -> Order:
        # Fresh read so the decision never acts on a stale projection
        order = await self._reload(order_id)
        await self._require_editable(order, user)
        validate_line_item_instructions(payload.line_items)

        if user.is_integration:
            return await self._edit_and_reset(order, payload, user)

        shipping = drop_unchanged_fields(payload.shipping_fields(), order)
        header = drop_unchanged_fields(payload.header_fields(), order)
        line_items = drop_unchanged_line_item_edits(order, payload.line_items)
        if line_items is not None and line_items.is_empty():
            line_items = None

        prefs = await self.preferences.get_preferences(
            user.id, user.organization_id, order.buyer_id
        )
        check_fields_editable(
            {**shipping, **header, "line_items": _line_items_payload(line_items)},
            prefs.field_configs,
        )

        if payload.order_status_id and payload.order_status_id != order.order_status_id:
            order = await self.edit_order_status(order.id, payload.order_status_id, user)

        partition = classify_shipping_fields(
            shipping, excluded_from_change_control(prefs.purchase_order)
        )
        controlled_status_ids = {
            await self.statuses.get_status_id(name, ORDER_STATUS)
            for name in CHANGE_CONTROLLED_STATUSES
        }
        active = has_change_control(
            prefs.purchase_order.enable_change_control,
            order.order_status_id,
            controlled_status_ids,
            partition.change_controlled,
            line_items,
        )
        decision = decide_edit_path(
            active, partition.change_controlled, partition.direct, header, line_items
        )
        logger.info("Order %s edit by user %s takes %s", order.id, user.id, decision.path.value)

        saga = OrderEditSaga("edit_order", order.id)
        await self._apply_decision(saga, order, decision, payload, user)

        async with saga.phase("ready_for_booking", self.db):
            await self.lifecycle.check_ready_for_booking(order.id)

        if any(key in header for key in PARTICIPANT_ORG_FIELDS):
            await self._sync_message_thread(saga, order.id)

        return await self._reload(order.id)

    async def _apply_decision(
        self,
        saga: OrderEditSaga,
        order: Order,
        decision: EditDecision,
        payload: EditOrderInput,
        user: AuthenticatedUser,
    ) -> None:
        if decision.creates_change_request:
            draft = self.line_items.build_change_request_deltas(
                order, decision.line_items, decision.change_request_fields
            )
            await self.change_control.submit_change_request(
                saga, order, user, draft, payload.order_change_request_note
            )

        extra_data = payload.extra_data()
        if decision.direct_fields or extra_data:
            async with saga.phase("order_fields", self.db):
                await self.lifecycle.update_order(
                    order, user.organization_id, decision.direct_fields, extra_data
                )

        if decision.applies_line_items_directly and decision.line_items is not None:
            async with saga.phase("line_items", self.db):
                fresh = await self._reload(order.id)
                await self.line_items.apply(
                    fresh, decision.line_items, user.organization_id, user.id
                )

    async def _sync_message_thread(self, saga: OrderEditSaga, order_id: uuid.UUID) -> None:
        participants = await self.participants.list_participants(order_id)
        async with saga.phase("message_thread", self.messages):
            await self.messaging.create_or_edit_message_thread(
                order_id, [p.user_id for p in participants]
            )

    async def _edit_and_reset(
        self,
        order: Order,
        payload: EditOrderInput,
        user: AuthenticatedUser,
    ) -> Order:
        """Integration edits reset the order and apply everything directly."""
        buyer_prefs = await self.preferences.get_buyer_preferences(order.buyer_id)
        shipping = drop_unchanged_fields(payload.shipping_fields(), order)
        header = drop_unchanged_fields(payload.header_fields(), order)
        location_auto_create = (
            buyer_prefs.enable_location_auto_create
            and not payload.shipping_fields().get("destination_id")
        )

        if payload.order_status_id and payload.order_status_id != order.order_status_id:
            order = await self.edit_order_status(order.id, payload.order_status_id, user)

        saga = OrderEditSaga("edit_order", order.id)
        async with saga.phase("order_fields", self.db):
            if location_auto_create and payload.ship_to_location is not None:
                location = await self.locations.create_or_get_location(
                    LOCATION_TYPE_DESTINATION, payload.ship_to_location, order.buyer_id
                )
                if location.id != order.destination_id:
                    shipping["destination_id"] = location.id
            await self.lifecycle.reset_order(order, reason="integration edit")
            await self.lifecycle.update_order(
                order, order.buyer_id, {**header, **shipping}, payload.extra_data()
            )

        line_items = payload.line_items
        if line_items is not None and not line_items.is_empty():
            async with saga.phase("line_items", self.db):
                fresh = await self._reload(order.id)
                await self.line_items.apply(fresh, line_items, order.buyer_id, user.id)

        async with saga.phase("ready_for_booking", self.db):
            await self.lifecycle.check_ready_for_booking(order.id)

        updated = await self._reload(order.id)
        if location_auto_create and updated.destination_id is None:
            await self._notify_missing_location(saga, updated, buyer_prefs)
        return updated
