"""Tests for participant authorization, participant edits and default seeding."""

from __future__ import annotations

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.exceptions import (
    ConflictException,
    ForbiddenException,
    PersistenceException,
    ValidationException,
)
from src.modules.identity.constants import PERMISSION_ADMIN, PERMISSION_INTEGRATION
from src.modules.order.loaders import OrderLoaders
from src.modules.order.participants import ParticipantService, is_allowed_to_edit_participants
from src.modules.order.schemas import OrderParticipantInput
from tests.factories import make_order, make_result, make_user


def _p(user_id: uuid.UUID, approval_is_required: bool) -> SimpleNamespace:
    return SimpleNamespace(user_id=user_id, approval_is_required=approval_is_required)


# ---------------------------------------------------------------------------
# Guard
# ---------------------------------------------------------------------------


class TestIsAllowedToEditParticipants:
    def test_no_controllers_allows_anything(self) -> None:
        me, other = uuid.uuid4(), uuid.uuid4()
        current = [_p(other, False)]
        assert is_allowed_to_edit_participants(current, [_p(me, True)], me)

    def test_approver_changing_own_flag_is_allowed(self) -> None:
        me, other = uuid.uuid4(), uuid.uuid4()
        current = [_p(me, True), _p(other, True)]
        proposed = [_p(me, False), _p(other, True)]
        assert is_allowed_to_edit_participants(current, proposed, me)

    def test_approver_removing_self_is_allowed(self) -> None:
        me, other = uuid.uuid4(), uuid.uuid4()
        current = [_p(me, True), _p(other, True)]
        assert is_allowed_to_edit_participants(current, [_p(other, True)], me)

    def test_removing_other_approver_is_rejected(self) -> None:
        me, other = uuid.uuid4(), uuid.uuid4()
        current = [_p(me, False), _p(other, True)]
        assert not is_allowed_to_edit_participants(current, [_p(me, False)], me)

    def test_demoting_other_approver_is_rejected(self) -> None:
        me, other = uuid.uuid4(), uuid.uuid4()
        current = [_p(other, True)]
        assert not is_allowed_to_edit_participants(current, [_p(other, False)], me)

    def test_approver_cannot_also_change_another_approver(self) -> None:
        me, other = uuid.uuid4(), uuid.uuid4()
        current = [_p(me, True), _p(other, True)]
        proposed = [_p(me, True), _p(other, False)]
        assert not is_allowed_to_edit_participants(current, proposed, me)

    def test_unchanged_controllers_with_new_members_is_allowed(self) -> None:
        me, other, newcomer = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        current = [_p(me, True), _p(other, True)]
        proposed = [_p(me, True), _p(other, True), _p(newcomer, False)]
        assert is_allowed_to_edit_participants(current, proposed, me)


# ---------------------------------------------------------------------------
# ParticipantService
# ---------------------------------------------------------------------------


@pytest.fixture
def service(mock_db, mock_messages):
    svc = ParticipantService(mock_db, mock_messages, OrderLoaders(mock_db))
    svc.messaging = MagicMock()
    svc.messaging.session = mock_messages
    svc.messaging.create_or_edit_message_thread = AsyncMock()
    svc.outbox = AsyncMock()
    return svc


class TestEditOrderParticipants:
    @pytest.mark.asyncio
    async def test_user_outside_order_is_forbidden(self, service) -> None:
        order = make_order()
        service._get_order = AsyncMock(return_value=order)

        with pytest.raises(ForbiddenException, match="Unauthorized participant user"):
            await service.edit_order_participants(order.id, [], make_user())

    @pytest.mark.asyncio
    async def test_participant_from_unrelated_org_is_forbidden(self, service, mock_db) -> None:
        order = make_order()
        service._get_order = AsyncMock(return_value=order)
        outsider = uuid.uuid4()
        mock_db.execute.return_value = make_result(
            values=[SimpleNamespace(id=outsider, organization_id=uuid.uuid4())]
        )

        with pytest.raises(ForbiddenException, match="Unauthorized participant"):
            await service.edit_order_participants(
                order.id,
                [OrderParticipantInput(user_id=outsider)],
                make_user(org_id=order.buyer_id),
            )

    @pytest.mark.asyncio
    async def test_duplicate_users_rejected(self, service) -> None:
        order = make_order()
        service._get_order = AsyncMock(return_value=order)
        user_id = uuid.uuid4()

        with pytest.raises(ValidationException, match="only appear once"):
            await service.edit_order_participants(
                order.id,
                [OrderParticipantInput(user_id=user_id), OrderParticipantInput(user_id=user_id)],
                make_user(org_id=order.buyer_id),
            )

    @pytest.mark.asyncio
    async def test_removing_other_approver_is_forbidden(self, service, mock_db) -> None:
        order = make_order()
        service._get_order = AsyncMock(return_value=order)
        user = make_user(org_id=order.buyer_id)
        approver = uuid.uuid4()
        mock_db.execute.side_effect = [
            make_result(values=[SimpleNamespace(id=user.id, organization_id=order.buyer_id)]),
            make_result(values=[_p(approver, True), _p(user.id, False)]),
        ]

        with pytest.raises(ForbiddenException, match="change controller"):
            await service.edit_order_participants(
                order.id, [OrderParticipantInput(user_id=user.id)], user
            )
        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_admin_can_clear_every_participant(self, service, mock_db) -> None:
        order = make_order()
        service._get_order = AsyncMock(return_value=order)
        admin = make_user(org_id=order.buyer_id, permissions=(PERMISSION_ADMIN,))
        mock_db.execute.side_effect = [
            make_result(values=[_p(uuid.uuid4(), True)]),  # current participants
            make_result(),  # delete
        ]

        rows = await service.edit_order_participants(order.id, [], admin)

        assert rows == []
        mock_db.commit.assert_awaited_once()
        service.messaging.create_or_edit_message_thread.assert_awaited_once_with(order.id, [])
        service.outbox.publish_event.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_integration_replaces_participants_and_rereads(self, service, mock_db) -> None:
        order = make_order()
        service._get_order = AsyncMock(return_value=order)
        integration = make_user(permissions=(PERMISSION_INTEGRATION,))
        user_id = uuid.uuid4()
        participant_id = uuid.uuid4()
        stored = SimpleNamespace(id=participant_id, user_id=user_id, approval_is_required=True)
        mock_db.execute.side_effect = [
            make_result(values=[]),  # current participants
            make_result(),  # delete
            make_result(values=[participant_id]),  # insert returning ids
            make_result(values=[stored]),  # re-read
        ]

        rows = await service.edit_order_participants(
            order.id,
            [OrderParticipantInput(user_id=user_id, approval_is_required=True)],
            integration,
        )

        assert rows == [stored]
        service.messaging.create_or_edit_message_thread.assert_awaited_once_with(
            order.id, [user_id]
        )


class TestSeedDefaultParticipants:
    @pytest.mark.asyncio
    async def test_existing_participants_conflict(self, service, mock_db) -> None:
        order = make_order()
        service._get_order = AsyncMock(return_value=order)
        mock_db.execute.return_value = make_result(scalar=2)

        with pytest.raises(ConflictException, match="already has participants"):
            await service.seed_default_participants(order.id, make_user(org_id=order.buyer_id))

    @pytest.mark.asyncio
    async def test_no_users_is_a_validation_error(self, service, mock_db) -> None:
        order = make_order()
        service._get_order = AsyncMock(return_value=order)
        mock_db.execute.side_effect = [make_result(scalar=0), make_result(values=[])]

        with pytest.raises(ValidationException, match="No default participants"):
            await service.seed_default_participants(order.id, make_user(org_id=order.buyer_id))

    @pytest.mark.asyncio
    async def test_one_approver_per_buyer_and_supplier(self, service) -> None:
        order = make_order()
        service._get_order = AsyncMock(return_value=order)
        buyer_first = SimpleNamespace(
            id=uuid.UUID(int=1), organization_id=order.buyer_id, can_approve_change_requests=False
        )
        buyer_approver = SimpleNamespace(
            id=uuid.UUID(int=2), organization_id=order.buyer_id, can_approve_change_requests=True
        )
        supplier_user = SimpleNamespace(
            id=uuid.UUID(int=3), organization_id=order.supplier_id, can_approve_change_requests=False
        )
        service.db.execute.side_effect = [
            make_result(scalar=0),
            make_result(values=[buyer_first, buyer_approver, supplier_user]),
        ]
        service._replace_participants = AsyncMock(return_value=[])

        await service.seed_default_participants(order.id, make_user(org_id=order.buyer_id))

        participants = service._replace_participants.await_args.args[1]
        flags = {p.user_id: p.approval_is_required for p in participants}
        assert flags == {
            buyer_first.id: False,
            buyer_approver.id: True,
            supplier_user.id: True,
        }


class TestDefaultParticipants:
    @pytest.mark.asyncio
    async def test_missing_orgs_are_skipped(self, service, mock_db) -> None:
        buyer_id, supplier_id = uuid.uuid4(), uuid.uuid4()
        buyer_user = SimpleNamespace(
            id=uuid.uuid4(), organization_id=buyer_id, can_approve_change_requests=False
        )
        mock_db.execute.return_value = make_result(values=[buyer_user])

        participants = await service.default_participants(
            uuid.uuid4(), (buyer_id, supplier_id, None), (buyer_id, supplier_id)
        )

        assert [(p.user_id, p.approval_is_required) for p in participants] == [
            (buyer_user.id, True)
        ]
        params = mock_db.execute.await_args.args[0].compile().params
        assert None not in params["organization_id_1"]

    @pytest.mark.asyncio
    async def test_add_participants_reports_lost_insert(self, service, mock_db) -> None:
        mock_db.execute.return_value = make_result(values=[])

        with pytest.raises(PersistenceException) as exc_info:
            await service.add_participants(
                uuid.uuid4(), [OrderParticipantInput(user_id=uuid.uuid4())]
            )
        assert exc_info.value.entity == "participants"
        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_add_no_participants_writes_nothing(self, service, mock_db) -> None:
        assert await service.add_participants(uuid.uuid4(), []) == []
        mock_db.execute.assert_not_awaited()
