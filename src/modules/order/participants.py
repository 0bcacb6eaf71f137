"""Order participants: the approver-set guard, participant edits and default seeding."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from typing import Protocol

from sqlalchemy import delete, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    PersistenceException,
    ValidationException,
)
from src.models.order import Order
from src.models.order_participant import OrderParticipant
from src.models.user import User
from src.modules.events.outbox_service import OutboxService
from src.modules.identity.auth import AuthenticatedUser
from src.modules.identity.constants import PRIVILEGED_PARTICIPANT_EDITORS
from src.modules.messaging.service import MessagingService
from src.modules.order.constants import EVENT_ORDER_PARTICIPANTS_CHANGED
from src.modules.order.loaders import OrderLoaders
from src.modules.order.saga import OrderEditSaga
from src.modules.order.schemas import OrderParticipantInput

logger = logging.getLogger(__name__)


class ParticipantLike(Protocol):
    user_id: uuid.UUID
    approval_is_required: bool


def is_allowed_to_edit_participants(
    current_participants: Iterable[ParticipantLike],
    proposed_participants: Iterable[ParticipantLike],
    acting_user_id: uuid.UUID,
) -> bool:
    """Decide whether a non-privileged user may replace the participant list.

    Every current required approver other than the acting user must survive
    with an unchanged ``approval_is_required`` flag, with one exception: the
    acting user, when they are themselves a required approver, may make a
    single change.
    """
    proposed = list(proposed_participants)
    self_affected = 0
    controller_mutations = 0

    for current in current_participants:
        if not current.approval_is_required:
            continue
        if current.user_id == acting_user_id:
            self_affected += 1
            controller_mutations += 1
            continue

        found = False
        for candidate in proposed:
            if candidate.user_id == current.user_id:
                found = True
                if candidate.approval_is_required != current.approval_is_required:
                    controller_mutations += 1
        if not found:
            controller_mutations += 1

    if not self_affected and controller_mutations > 0:
        return False
    if controller_mutations > 1:
        return False
    return True


class ParticipantService:
    def __init__(self, db: AsyncSession, messages: AsyncSession, loaders: OrderLoaders):
        self.db = db
        self.loaders = loaders
        self.messaging = MessagingService(messages)
        self.outbox = OutboxService(db)

    async def _get_order(self, order_id: uuid.UUID) -> Order:
        order = await self.loaders.orders.invalidate(order_id).get(order_id)
        if order is None:
            raise NotFoundException(f"Order {order_id} not found")
        return order

    async def list_participants(self, order_id: uuid.UUID) -> list[OrderParticipant]:
        result = await self.db.execute(
            select(OrderParticipant)
            .where(OrderParticipant.order_id == order_id)
            .order_by(OrderParticipant.created_at)
        )
        return list(result.scalars().all())

    async def _user_orgs(self, user_ids: list[uuid.UUID]) -> dict[uuid.UUID, uuid.UUID]:
        if not user_ids:
            return {}
        result = await self.db.execute(
            select(User.id, User.organization_id).where(User.id.in_(user_ids))
        )
        return {row.id: row.organization_id for row in result.all()}

    async def add_participants(
        self, order_id: uuid.UUID, participants: list[OrderParticipantInput]
    ) -> list[uuid.UUID]:
        """Insert participants inside the caller's transaction; nothing is committed here."""
        if not participants:
            return []
        result = await self.db.execute(
            insert(OrderParticipant)
            .values([
                {
                    "order_id": order_id,
                    "user_id": p.user_id,
                    "approval_is_required": p.approval_is_required,
                }
                for p in participants
            ])
            .returning(OrderParticipant.id)
        )
        participant_ids = list(result.scalars().all())
        if not participant_ids:
            raise PersistenceException("Failed to create participants", entity="participants")
        return participant_ids

    async def _replace_participants(
        self,
        order: Order,
        participants: list[OrderParticipantInput],
        operation: str,
        acting_user_id: uuid.UUID,
    ) -> list[OrderParticipant]:
        """Delete-all then re-insert, then sync the message thread."""
        saga = OrderEditSaga(operation, order.id)

        async with saga.phase("participants", self.db):
            await self.db.execute(
                delete(OrderParticipant).where(OrderParticipant.order_id == order.id)
            )
            participant_ids = await self.add_participants(order.id, participants)
            await self.outbox.publish_event(
                event_type=EVENT_ORDER_PARTICIPANTS_CHANGED,
                aggregate_type="order",
                aggregate_id=order.id,
                payload={
                    "order_id": str(order.id),
                    "edited_by": str(acting_user_id),
                    "participants": [
                        {
                            "user_id": str(p.user_id),
                            "approval_is_required": p.approval_is_required,
                        }
                        for p in participants
                    ],
                },
            )

        async with saga.phase("message_thread", self.messaging.session):
            await self.messaging.create_or_edit_message_thread(
                order.id, [p.user_id for p in participants]
            )

        if not participant_ids:
            return []
        result = await self.db.execute(
            select(OrderParticipant).where(OrderParticipant.id.in_(participant_ids))
        )
        return list(result.scalars().all())

    async def edit_order_participants(
        self,
        order_id: uuid.UUID,
        participants: list[OrderParticipantInput],
        user: AuthenticatedUser,
    ) -> list[OrderParticipant]:
        """Replace the order's participant list. An empty list removes everyone."""
        order = await self._get_order(order_id)
        associated = order.associated_org_ids

        user_ids = [p.user_id for p in participants]
        if len(user_ids) != len(set(user_ids)):
            raise ValidationException("A user can only appear once in the participant list")

        if not user.is_integration:
            if user.organization_id not in associated:
                raise ForbiddenException("Unauthorized participant user")
            user_orgs = await self._user_orgs(user_ids)
            for participant in participants:
                if user_orgs.get(participant.user_id) not in associated:
                    raise ForbiddenException(
                        "Unauthorized participant",
                        details=[{"user_id": str(participant.user_id)}],
                    )

        current = await self.list_participants(order_id)
        if not user.has_any_permission(*PRIVILEGED_PARTICIPANT_EDITORS) and not (
            is_allowed_to_edit_participants(current, participants, user.id)
        ):
            raise ForbiddenException("Unauthorized change controller modification")

        rows = await self._replace_participants(
            order, participants, "edit_order_participants", user.id
        )
        logger.info(
            "User %s set %d participant(s) on order %s", user.id, len(rows), order_id
        )
        return rows

    async def default_participants(
        self,
        order_id: uuid.UUID,
        org_ids: Iterable[uuid.UUID | None],
        approver_org_ids: Iterable[uuid.UUID],
    ) -> list[OrderParticipantInput]:
        """Every active user of ``org_ids``, with one required approver per approver org.

        The approver is the org's first user allowed to approve change
        requests, otherwise its first user by id.
        """
        org_ids = {org_id for org_id in org_ids if org_id is not None}
        users_result = await self.db.execute(
            select(User)
            .where(User.organization_id.in_(org_ids), User.is_active.is_(True))
            .order_by(User.id)
        )
        users = list(users_result.scalars().all())

        approvers: set[uuid.UUID] = set()
        for org_id in approver_org_ids:
            org_users = [u for u in users if u.organization_id == org_id]
            approver = next((u for u in org_users if u.can_approve_change_requests), None)
            if approver is None and org_users:
                approver = org_users[0]
            if approver is not None:
                approvers.add(approver.id)

        if not approvers:
            raise ValidationException(f"No default participants for order {order_id}.")

        return [
            OrderParticipantInput(user_id=u.id, approval_is_required=u.id in approvers)
            for u in users
        ]

    async def seed_default_participants(
        self, order_id: uuid.UUID, user: AuthenticatedUser
    ) -> list[OrderParticipant]:
        """Seed participants from every active user of the order's organizations."""
        order = await self._get_order(order_id)
        associated = order.associated_org_ids
        if not user.is_integration and user.organization_id not in associated:
            raise ForbiddenException("User does not have permission to edit this order.")

        count_result = await self.db.execute(
            select(func.count())
            .select_from(OrderParticipant)
            .where(OrderParticipant.order_id == order_id)
        )
        if (count_result.scalar() or 0) > 0:
            raise ConflictException(f"Order {order_id} already has participants")

        participants = await self.default_participants(
            order_id, associated, (order.buyer_id, order.supplier_id)
        )
        return await self._replace_participants(
            order, participants, "seed_default_participants", user.id
        )
