"""Change-Control State Machine: change requests, their reviews and deltas.

A change request is Proposed until its reviews resolve it: Rejected as soon as
one required approver rejects, Approved once every review is approved. The
author's own review row is approved at submission, but the request itself
is always inserted as Proposed, even when the author is its only approver.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, date, datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.config import settings
from src.exceptions import ConflictException, ForbiddenException, NotFoundException
from src.models.order import Order
from src.models.order_change_request import OrderChangeRequest
from src.models.order_change_request_line_item import OrderChangeRequestLineItem
from src.models.order_change_review import OrderChangeReview
from src.models.order_participant import OrderParticipant
from src.modules.events.outbox_service import OutboxService
from src.modules.identity.auth import AuthenticatedUser
from src.modules.lookups.constants import CHANGE_APPROVED, CHANGE_PROPOSED, CHANGE_REJECTED
from src.modules.lookups.service import StatusResolver
from src.modules.messaging.service import MessagingService
from src.modules.order.constants import (
    CHANGE_REQUEST_TITLE,
    EVENT_CHANGE_REQUEST_CREATED,
    EVENT_CHANGE_REQUEST_RESOLVED,
    EVENT_CHANGE_REVIEW_DECIDED,
)
from src.modules.order.line_items import ChangeRequestDraft
from src.modules.order.loaders import OrderLoaders
from src.modules.order.saga import OrderEditSaga

logger = logging.getLogger(__name__)


class ChangeControlService:
    def __init__(
        self,
        db: AsyncSession,
        messages: AsyncSession,
        statuses: StatusResolver,
        loaders: OrderLoaders,
    ):
        self.db = db
        self.statuses = statuses
        self.loaders = loaders
        self.messaging = MessagingService(messages)
        self.outbox = OutboxService(db)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def next_change_request_number(self, order_id: uuid.UUID) -> int:
        """Highest existing number for the order plus one; 1 for the first request."""
        result = await self.db.execute(
            select(func.max(OrderChangeRequest.change_request_number)).where(
                OrderChangeRequest.order_id == order_id
            )
        )
        return (result.scalar() or 0) + 1

    async def get_change_request(
        self, order_id: uuid.UUID, change_request_id: uuid.UUID
    ) -> OrderChangeRequest:
        result = await self.db.execute(
            select(OrderChangeRequest)
            .options(
                selectinload(OrderChangeRequest.reviews),
                selectinload(OrderChangeRequest.line_items),
            )
            .where(
                OrderChangeRequest.id == change_request_id,
                OrderChangeRequest.order_id == order_id,
            )
            .execution_options(populate_existing=True)
        )
        change_request = result.scalar_one_or_none()
        if change_request is None:
            raise NotFoundException(
                f"Change request {change_request_id} not found on order {order_id}"
            )
        return change_request

    async def list_change_requests(self, order_id: uuid.UUID) -> list[OrderChangeRequest]:
        result = await self.db.execute(
            select(OrderChangeRequest)
            .options(
                selectinload(OrderChangeRequest.reviews),
                selectinload(OrderChangeRequest.line_items),
            )
            .where(OrderChangeRequest.order_id == order_id)
            .order_by(OrderChangeRequest.change_request_number)
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def _insert_change_request(
        self,
        order: Order,
        author_id: uuid.UUID,
        draft: ChangeRequestDraft,
        note: str | None,
        proposed_id: uuid.UUID,
    ) -> OrderChangeRequest:
        """Number and insert the request, retrying when a concurrent submission wins the number."""
        attempts = max(settings.change_request_number_attempts, 1)
        for attempt in range(1, attempts + 1):
            number = await self.next_change_request_number(order.id)
            change_request = OrderChangeRequest(
                order_id=order.id,
                author_id=author_id,
                change_status_id=proposed_id,
                change_request_number=number,
                title=CHANGE_REQUEST_TITLE.format(number=number),
                description=draft.description,
                note=note,
                created_on=date.today(),
            )
            try:
                async with self.db.begin_nested():
                    self.db.add(change_request)
                    await self.db.flush()
            except IntegrityError as exc:
                if attempt == attempts:
                    raise ConflictException(
                        f"Could not allocate a change request number for order {order.id}"
                    ) from exc
                logger.warning(
                    "Change request number %d for order %s was taken; retrying (%d/%d)",
                    number,
                    order.id,
                    attempt,
                    attempts,
                )
                continue
            return change_request
        raise ConflictException(f"Could not allocate a change request number for order {order.id}")

    async def submit_change_request(
        self,
        saga: OrderEditSaga,
        order: Order,
        user: AuthenticatedUser,
        draft: ChangeRequestDraft,
        note: str | None = None,
    ) -> OrderChangeRequest:
        proposed_id = await self.statuses.get_change_status_id(CHANGE_PROPOSED)
        approved_id = await self.statuses.get_change_status_id(CHANGE_APPROVED)

        async with saga.phase("change_request", self.db):
            # An order under change control is never booking-ready
            await self.db.execute(
                update(Order).where(Order.id == order.id).values(is_ready_for_booking=False)
            )

            change_request = await self._insert_change_request(
                order, user.id, draft, note, proposed_id
            )

            participants_result = await self.db.execute(
                select(OrderParticipant).where(OrderParticipant.order_id == order.id)
            )
            participants = list(participants_result.scalars().all())

            now = datetime.now(UTC)
            reviews = [
                OrderChangeReview(
                    order_change_request_id=change_request.id,
                    reviewer_id=p.user_id,
                    change_status_id=approved_id if p.user_id == user.id else proposed_id,
                    review_date=now if p.user_id == user.id else None,
                )
                for p in participants
                if p.approval_is_required
            ]
            self.db.add_all(reviews)
            self.db.add_all([
                OrderChangeRequestLineItem(order_change_request_id=change_request.id, **delta)
                for delta in draft.deltas
            ])
            await self.db.flush()

            await self.outbox.publish_event(
                event_type=EVENT_CHANGE_REQUEST_CREATED,
                aggregate_type="order",
                aggregate_id=order.id,
                payload={
                    "order_id": str(order.id),
                    "change_request_id": str(change_request.id),
                    "change_request_number": change_request.change_request_number,
                    "author_id": str(user.id),
                    "reviewer_ids": [str(r.reviewer_id) for r in reviews],
                },
            )

        self.loaders.orders.invalidate(order.id)
        logger.info(
            "Created %s on order %s with %d review(s) and %d delta(s)",
            change_request.title,
            order.id,
            len(reviews),
            len(draft.deltas),
        )

        recipients = [p.user_id for p in participants if p.user_id != user.id]
        async with saga.phase("change_request_message", self.messaging.session):
            await self.messaging.post_change_request_message(
                order_id=order.id,
                sender_id=user.id,
                recipient_ids=recipients,
                change_request_id=change_request.id,
                title=change_request.title,
                participant_ids=[p.user_id for p in participants],
            )
        return change_request

    # ------------------------------------------------------------------
    # Review
    # ------------------------------------------------------------------

    async def _publish_resolved(
        self, order_id: uuid.UUID, change_request: OrderChangeRequest, outcome: str
    ) -> None:
        await self.outbox.publish_event(
            event_type=EVENT_CHANGE_REQUEST_RESOLVED,
            aggregate_type="order",
            aggregate_id=order_id,
            payload={
                "order_id": str(order_id),
                "change_request_id": str(change_request.id),
                "outcome": outcome,
            },
        )

    async def review_change_request(
        self,
        order_id: uuid.UUID,
        change_request_id: uuid.UUID,
        user: AuthenticatedUser,
        decision: str,
        comment: str | None = None,
    ) -> OrderChangeRequest:
        """Record a required approver's verdict and resolve the request when possible."""
        proposed_id = await self.statuses.get_change_status_id(CHANGE_PROPOSED)
        change_request = await self.get_change_request(order_id, change_request_id)
        if change_request.change_status_id != proposed_id:
            raise ConflictException(f"{change_request.title} has already been resolved")

        participant_result = await self.db.execute(
            select(OrderParticipant).where(
                OrderParticipant.order_id == order_id,
                OrderParticipant.user_id == user.id,
            )
        )
        participant = participant_result.scalar_one_or_none()
        if participant is None or not participant.approval_is_required:
            raise ForbiddenException("Only required approvers can review change requests")

        review = next((r for r in change_request.reviews if r.reviewer_id == user.id), None)
        if review is None:
            raise ForbiddenException(
                f"User is not a reviewer of {change_request.title}"
            )
        if review.change_status_id != proposed_id:
            raise ConflictException("This review has already been decided")

        decision_id = await self.statuses.get_change_status_id(decision)
        approved_id = await self.statuses.get_change_status_id(CHANGE_APPROVED)
        rejected_id = await self.statuses.get_change_status_id(CHANGE_REJECTED)

        saga = OrderEditSaga("review_change_request", order_id)
        async with saga.phase("change_review", self.db):
            review.change_status_id = decision_id
            review.review_date = datetime.now(UTC)
            review.comment = comment

            outcome = None
            review_statuses = [r.change_status_id for r in change_request.reviews]
            if rejected_id in review_statuses:
                change_request.change_status_id = rejected_id
                outcome = CHANGE_REJECTED
            elif all(s == approved_id for s in review_statuses):
                change_request.change_status_id = approved_id
                outcome = CHANGE_APPROVED
            await self.db.flush()

            await self.outbox.publish_event(
                event_type=EVENT_CHANGE_REVIEW_DECIDED,
                aggregate_type="order",
                aggregate_id=order_id,
                payload={
                    "order_id": str(order_id),
                    "change_request_id": str(change_request.id),
                    "reviewer_id": str(user.id),
                    "decision": decision,
                },
            )
            if outcome is not None:
                await self._publish_resolved(order_id, change_request, outcome)

        logger.info(
            "User %s %s %s on order %s", user.id, decision.lower(), change_request.title, order_id
        )
        return await self.get_change_request(order_id, change_request_id)
