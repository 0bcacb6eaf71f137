"""Tests for the order mutation router: path selection, status transitions, integration edits."""

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from src.exceptions import (
    BusinessRuleException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from src.modules.identity.constants import PERMISSION_INTEGRATION
from src.modules.lookups.constants import (
    ORDER_ACCEPTED,
    ORDER_CANCELED,
    ORDER_ISSUED,
    ORDER_REJECTED,
    ORDER_STATUS,
)
from src.modules.order.constants import (
    EDITABLE_ORDER_KEYS,
    EVENT_ORDER_CREATED,
    EVENT_ORDER_MISSING_LOCATION,
)
from src.modules.order.lifecycle import EditableCheck
from src.modules.order.line_items import ChangeRequestDraft
from src.modules.order.preferences import (
    BuyerPreferences,
    EffectivePreferences,
    PurchaseOrderPreferences,
)
from src.modules.order.schemas import (
    CreateOrderInput,
    EditOrderInput,
    ExtraDataInput,
    LocationInput,
    OrderLineItemInput,
    OrderLineItemsInput,
    OrderParticipantInput,
    OrderShippingInformationInput,
)
from src.modules.order.service import OrderEditService
from tests.factories import FakeStatusResolver, make_order, make_result, make_user

ALL_EDITABLE = {key: {"edit": {"editable": True}} for key in EDITABLE_ORDER_KEYS}


def _preferences(change_control: bool, field_configs=None) -> EffectivePreferences:
    po = PurchaseOrderPreferences(enable_change_control=change_control)
    return EffectivePreferences(
        buyer=BuyerPreferences(purchase_order=po),
        purchase_order=po,
        field_configs=ALL_EDITABLE if field_configs is None else field_configs,
    )


@pytest.fixture
def order():
    return make_order()


@pytest.fixture
def service(mock_db, mock_docs, mock_messages, order):
    svc = OrderEditService(mock_db, mock_docs, mock_messages)
    svc.statuses = FakeStatusResolver()
    svc._reload = AsyncMock(return_value=order)

    svc.lifecycle = AsyncMock()
    svc.lifecycle.get_fulfillments.return_value = []
    svc.lifecycle.is_order_editable.return_value = EditableCheck(True)
    svc.lifecycle.ready_for_booking_errors = MagicMock(return_value=[])

    svc.preferences = AsyncMock()
    svc.preferences.get_preferences.return_value = _preferences(change_control=True)

    svc.line_items = MagicMock()
    svc.line_items.apply = AsyncMock(return_value=[])
    svc.line_items.build_change_request_deltas.return_value = ChangeRequestDraft(description="d")

    svc.change_control = AsyncMock()
    svc.participants = AsyncMock()
    svc.participants.list_participants.return_value = []
    svc.cancellation = AsyncMock()
    svc.locations = AsyncMock()
    svc.messaging = AsyncMock()
    svc.outbox = AsyncMock()
    return svc


def _shipping(**fields) -> EditOrderInput:
    return EditOrderInput(shipping_information=OrderShippingInformationInput(**fields))


class TestEditPaths:
    @pytest.mark.asyncio
    async def test_change_control_off_applies_everything_directly(self, service, order) -> None:
        service.preferences.get_preferences.return_value = _preferences(change_control=False)
        user = make_user(org_id=order.buyer_id)

        await service.edit_order(order.id, _shipping(incoterms="CIF", hot_flag=True), user)

        service.change_control.submit_change_request.assert_not_awaited()
        service.lifecycle.update_order.assert_awaited_once_with(
            order, order.buyer_id, {"incoterms": "CIF", "hot_flag": True}, None
        )

    @pytest.mark.asyncio
    async def test_controlled_field_only_creates_change_request(self, service, order) -> None:
        user = make_user(org_id=order.buyer_id)

        await service.edit_order(order.id, _shipping(incoterms="CIF"), user)

        service.line_items.build_change_request_deltas.assert_called_once_with(
            order, None, {"incoterms": "CIF"}
        )
        service.change_control.submit_change_request.assert_awaited_once()
        service.lifecycle.update_order.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_mixed_fields_split_between_request_and_order(self, service, order) -> None:
        user = make_user(org_id=order.buyer_id)

        await service.edit_order(order.id, _shipping(incoterms="CIF", hot_flag=True), user)

        service.line_items.build_change_request_deltas.assert_called_once_with(
            order, None, {"incoterms": "CIF"}
        )
        service.change_control.submit_change_request.assert_awaited_once()
        service.lifecycle.update_order.assert_awaited_once_with(
            order, order.buyer_id, {"hot_flag": True}, None
        )

    @pytest.mark.asyncio
    async def test_line_items_under_change_control_are_proposed(self, service, order) -> None:
        user = make_user(org_id=order.buyer_id)
        line_items = OrderLineItemsInput(
            add_line_items=[OrderLineItemInput(description="Pallet", quantity=2)]
        )

        await service.edit_order(order.id, EditOrderInput(line_items=line_items), user)

        service.change_control.submit_change_request.assert_awaited_once()
        service.line_items.apply.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_line_items_without_change_control_apply_directly(self, service, order) -> None:
        service.preferences.get_preferences.return_value = _preferences(change_control=False)
        user = make_user(org_id=order.buyer_id)
        line_items = OrderLineItemsInput(
            add_line_items=[OrderLineItemInput(description="Pallet", quantity=2)]
        )

        await service.edit_order(order.id, EditOrderInput(line_items=line_items), user)

        service.line_items.apply.assert_awaited_once_with(
            order, line_items, order.buyer_id, user.id
        )

    @pytest.mark.asyncio
    async def test_resubmitting_current_values_changes_nothing(self, service, mock_db, order) -> None:
        user = make_user(org_id=order.buyer_id)

        await service.edit_order(
            order.id, _shipping(incoterms=order.incoterms, hot_flag=order.hot_flag), user
        )

        service.change_control.submit_change_request.assert_not_awaited()
        service.lifecycle.update_order.assert_not_awaited()
        # Only the ready-for-booking recomputation commits
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_non_editable_field_is_forbidden(self, service, mock_db, order) -> None:
        service.preferences.get_preferences.return_value = _preferences(True, field_configs={})

        with pytest.raises(ForbiddenException, match="incoterms"):
            await service.edit_order(
                order.id, _shipping(incoterms="CIF"), make_user(org_id=order.supplier_id)
            )
        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_clearing_fields_without_permission_is_forbidden(self, service, order) -> None:
        service.preferences.get_preferences.return_value = _preferences(True, field_configs={})
        payload = EditOrderInput(
            shipping_information=OrderShippingInformationInput(destination_id=None)
        )

        with pytest.raises(ForbiddenException, match="destination_id"):
            await service.edit_order(order.id, payload, make_user(org_id=order.supplier_id))
        service.lifecycle.update_order.assert_not_awaited()

    def test_supplier_cannot_be_cleared(self) -> None:
        with pytest.raises(ValidationError, match="must keep a supplier"):
            EditOrderInput(supplier_id=None)

    @pytest.mark.asyncio
    async def test_locked_order_is_forbidden(self, service, order) -> None:
        service.lifecycle.is_order_editable.return_value = EditableCheck(False, "Order is Closed")

        with pytest.raises(ForbiddenException, match="Closed"):
            await service.edit_order(
                order.id, _shipping(incoterms="CIF"), make_user(org_id=order.buyer_id)
            )

    @pytest.mark.asyncio
    async def test_counterparty_change_syncs_message_thread(self, service, order) -> None:
        user = make_user(org_id=order.buyer_id)
        forwarder = uuid.uuid4()

        await service.edit_order(order.id, EditOrderInput(forwarder_id=forwarder), user)

        service.change_control.submit_change_request.assert_not_awaited()
        service.lifecycle.update_order.assert_awaited_once_with(
            order, order.buyer_id, {"forwarder_id": forwarder}, None
        )
        service.messaging.create_or_edit_message_thread.assert_awaited_once_with(order.id, [])


class TestEditOrderStatus:
    @pytest.mark.asyncio
    async def test_cancel_vetoed_by_active_fulfillment(self, service, order) -> None:
        service.cancellation.can_order_be_cancelled.return_value = False

        with pytest.raises(BusinessRuleException):
            await service.edit_order_status(
                order.id,
                FakeStatusResolver.id(ORDER_CANCELED, ORDER_STATUS),
                make_user(org_id=order.buyer_id),
            )
        service.lifecycle.update_order.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_accept_requires_booking_prerequisites(self, service, order) -> None:
        service.lifecycle.ready_for_booking_errors.return_value = ["Order has no destination."]

        with pytest.raises(ForbiddenException, match="no destination"):
            await service.edit_order_status(
                order.id,
                FakeStatusResolver.id(ORDER_ACCEPTED, ORDER_STATUS),
                make_user(org_id=order.supplier_id),
            )

    @pytest.mark.asyncio
    async def test_accept_marks_ready_for_booking(self, service, order) -> None:
        accepted = FakeStatusResolver.id(ORDER_ACCEPTED, ORDER_STATUS)
        user = make_user(org_id=order.supplier_id)

        await service.edit_order_status(order.id, accepted, user)

        service.lifecycle.update_order.assert_awaited_once_with(
            order, user.organization_id, {"order_status_id": accepted, "is_ready_for_booking": True}
        )
        service.lifecycle.reset_order.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reject_resets_order(self, service, order) -> None:
        await service.edit_order_status(
            order.id,
            FakeStatusResolver.id(ORDER_REJECTED, ORDER_STATUS),
            make_user(org_id=order.supplier_id),
        )
        service.lifecycle.reset_order.assert_awaited_once()
        service.outbox.publish_event.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_same_status_is_a_no_op(self, service, mock_db, order) -> None:
        await service.edit_order_status(
            order.id, order.order_status_id, make_user(org_id=order.buyer_id)
        )
        mock_db.commit.assert_not_awaited()


class TestIntegrationEdits:
    @pytest.mark.asyncio
    async def test_integration_edit_resets_and_writes_as_buyer(self, service, order) -> None:
        service.preferences.get_buyer_preferences.return_value = BuyerPreferences()
        integration = make_user(permissions=(PERMISSION_INTEGRATION,))

        await service.edit_order(order.id, _shipping(incoterms="DAP"), integration)

        service.lifecycle.reset_order.assert_awaited_once()
        service.lifecycle.update_order.assert_awaited_once_with(
            order, order.buyer_id, {"incoterms": "DAP"}, None
        )
        service.change_control.submit_change_request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ship_to_location_is_auto_created(self, service, order) -> None:
        service.preferences.get_buyer_preferences.return_value = BuyerPreferences(
            enable_location_auto_create=True
        )
        location = SimpleNamespace(id=uuid.uuid4())
        service.locations.create_or_get_location.return_value = location

        await service.edit_order(
            order.id,
            EditOrderInput(ship_to_location=LocationInput(name="Rotterdam DC")),
            make_user(permissions=(PERMISSION_INTEGRATION,)),
        )

        fields = service.lifecycle.update_order.await_args.args[2]
        assert fields == {"destination_id": location.id}
        service.outbox.publish_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_destination_notifies_contacts(self, service) -> None:
        order = make_order(destination_id=None)
        service._reload.return_value = order
        contact = uuid.uuid4()
        service.preferences.get_buyer_preferences.return_value = BuyerPreferences(
            enable_location_auto_create=True, location_auto_create_contact_list=[contact]
        )

        await service.edit_order(
            order.id, _shipping(incoterms="DAP"), make_user(permissions=(PERMISSION_INTEGRATION,))
        )

        event = service.outbox.publish_event.await_args.kwargs
        assert event["event_type"] == EVENT_ORDER_MISSING_LOCATION
        assert event["payload"]["contact_user_ids"] == [str(contact)]


class TestGetOrder:
    @pytest.mark.asyncio
    async def test_unrelated_user_sees_not_found(self, service, order) -> None:
        with pytest.raises(NotFoundException):
            await service.get_order(order.id, make_user())

    @pytest.mark.asyncio
    async def test_counterparty_can_read(self, service, order) -> None:
        assert await service.get_order(order.id, make_user(org_id=order.supplier_id)) is order


CREATABLE = {key: {"editable": True} for key in EDITABLE_ORDER_KEYS}


def _create_payload(order, **overrides) -> CreateOrderInput:
    values = dict(buyer_id=order.buyer_id, supplier_id=order.supplier_id)
    values.update(overrides)
    return CreateOrderInput(**values)


class TestCreateOrder:
    @pytest.fixture(autouse=True)
    def _participants(self, service):
        service.participants.default_participants.return_value = [
            OrderParticipantInput(user_id=uuid.uuid4(), approval_is_required=True)
        ]

    @pytest.mark.asyncio
    async def test_issues_order_with_participants_and_thread(
        self, service, mock_db, mock_messages, order
    ) -> None:
        prefs = _preferences(False, field_configs=CREATABLE)
        prefs.buyer.terms_and_conditions = "Buyer standard terms"
        service.preferences.get_preferences.return_value = prefs
        mock_db.execute.return_value = make_result(value=uuid.uuid4())
        user = make_user(org_id=order.buyer_id)
        payload = _create_payload(
            order,
            shipping_information=OrderShippingInformationInput(
                incoterms="FOB", extra_data=[ExtraDataInput(key="project", value="North")]
            ),
            line_items=[OrderLineItemInput(description="Pallet", quantity=2)],
        )

        created = await service.create_order(payload, user)

        assert created is order
        params = mock_db.execute.await_args_list[0].args[0].compile().params
        assert params["order_status_id"] == FakeStatusResolver.id(ORDER_ISSUED, ORDER_STATUS)
        assert params["org_id"] == order.buyer_id
        assert params["supplier_id"] == order.supplier_id
        assert params["incoterms"] == "FOB"
        assert params["terms_and_conditions"] == "Buyer standard terms"
        assert params["extra_data"] == {"project": "North"}
        assert params["is_ready_for_booking"] is False

        order_id = params["id"]
        default_args = service.participants.default_participants.await_args.args
        assert default_args[0] == order_id
        assert default_args[2] == (order.buyer_id, order.supplier_id)
        participants = service.participants.default_participants.return_value
        service.participants.add_participants.assert_awaited_once_with(order_id, participants)
        added = service.line_items.apply.await_args.args[1]
        assert [item.description for item in added.add_line_items] == ["Pallet"]
        service.messaging.create_or_edit_message_thread.assert_awaited_once_with(
            order_id, [participants[0].user_id]
        )
        assert service.outbox.publish_event.await_args.kwargs["event_type"] == EVENT_ORDER_CREATED
        assert mock_db.commit.await_count == 2
        mock_messages.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_field_without_create_permission_is_forbidden(self, service, mock_db, order) -> None:
        configs = {**CREATABLE, "incoterms": {"edit": {"editable": True}}}
        service.preferences.get_preferences.return_value = _preferences(False, configs)

        with pytest.raises(ForbiddenException, match="create field incoterms"):
            await service.create_order(
                _create_payload(
                    order, shipping_information=OrderShippingInformationInput(incoterms="CIF")
                ),
                make_user(org_id=order.buyer_id),
            )
        mock_db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unrelated_org_cannot_create(self, service, order) -> None:
        service.preferences.get_preferences.return_value = _preferences(False, CREATABLE)

        with pytest.raises(ForbiddenException, match="create an order"):
            await service.create_order(_create_payload(order), make_user())

    @pytest.mark.asyncio
    async def test_external_creation_can_be_disabled(self, service, order) -> None:
        prefs = _preferences(False, CREATABLE)
        prefs.buyer.purchase_order.allow_external_creation = False
        service.preferences.get_preferences.return_value = prefs

        with pytest.raises(ForbiddenException, match="create an order"):
            await service.create_order(
                _create_payload(order), make_user(org_id=order.supplier_id)
            )

    @pytest.mark.asyncio
    async def test_participant_failure_commits_nothing(
        self, service, mock_db, mock_messages, order
    ) -> None:
        service.preferences.get_preferences.return_value = _preferences(False, CREATABLE)
        mock_db.execute.return_value = make_result(value=uuid.uuid4())
        service.participants.default_participants.side_effect = ValidationException(
            "No default participants"
        )

        with pytest.raises(ValidationException) as exc_info:
            await service.create_order(_create_payload(order), make_user(org_id=order.buyer_id))

        mock_db.rollback.assert_awaited_once()
        mock_db.commit.assert_not_awaited()
        mock_messages.commit.assert_not_awaited()
        assert exc_info.value.details[-1]["failedPhase"] == "order"

    @pytest.mark.asyncio
    async def test_integration_auto_creates_ship_to_location(self, service, mock_db, order) -> None:
        service.preferences.get_buyer_preferences.return_value = BuyerPreferences(
            enable_location_auto_create=True
        )
        location = SimpleNamespace(id=uuid.uuid4())
        service.locations.create_or_get_location.return_value = location
        mock_db.execute.return_value = make_result(value=uuid.uuid4())

        await service.create_order(
            _create_payload(order, ship_to_location=LocationInput(name="Rotterdam DC")),
            make_user(permissions=(PERMISSION_INTEGRATION,)),
        )

        params = mock_db.execute.await_args_list[0].args[0].compile().params
        assert params["destination_id"] == location.id
        assert params["org_id"] == order.buyer_id
        service.preferences.get_preferences.assert_not_awaited()
        events = [c.kwargs["event_type"] for c in service.outbox.publish_event.await_args_list]
        assert events == [EVENT_ORDER_CREATED]

    @pytest.mark.asyncio
    async def test_integration_order_without_destination_notifies(self, service, mock_db) -> None:
        order = make_order(destination_id=None)
        service._reload.return_value = order
        service.preferences.get_buyer_preferences.return_value = BuyerPreferences(
            enable_location_auto_create=True
        )
        mock_db.execute.return_value = make_result(value=uuid.uuid4())

        await service.create_order(
            _create_payload(order), make_user(permissions=(PERMISSION_INTEGRATION,))
        )

        events = [c.kwargs["event_type"] for c in service.outbox.publish_event.await_args_list]
        assert events == [EVENT_ORDER_CREATED, EVENT_ORDER_MISSING_LOCATION]
        service.locations.create_or_get_location.assert_not_awaited()
