"""MessagingService: order message threads in the messaging store.

Writes go to the messaging session only; they never share a transaction with
the relational order store and are committed by the caller's saga phase.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.enums import MessageAttachmentType
from src.models.message import Message
from src.models.message_thread import MessageThread

logger = logging.getLogger(__name__)

THREAD_SUBJECT = "Purchase order {order_id}"


class MessagingService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_thread(self, order_id: uuid.UUID) -> MessageThread | None:
        result = await self.session.execute(
            select(MessageThread).where(MessageThread.order_id == order_id)
        )
        return result.scalar_one_or_none()

    async def create_or_edit_message_thread(
        self,
        order_id: uuid.UUID,
        participant_ids: list[uuid.UUID],
    ) -> MessageThread:
        """Make the order's thread membership match ``participant_ids``."""
        thread = await self.get_thread(order_id)
        if thread is None:
            thread = MessageThread(
                order_id=order_id,
                subject=THREAD_SUBJECT.format(order_id=order_id),
                participant_ids=list(participant_ids),
            )
            self.session.add(thread)
            logger.info("Created message thread for order %s", order_id)
        else:
            thread.participant_ids = list(participant_ids)
            logger.info(
                "Updated message thread %s for order %s (%d participants)",
                thread.id,
                order_id,
                len(participant_ids),
            )
        await self.session.flush()
        return thread

    async def post_change_request_message(
        self,
        order_id: uuid.UUID,
        sender_id: uuid.UUID,
        recipient_ids: list[uuid.UUID],
        change_request_id: uuid.UUID,
        title: str,
        participant_ids: list[uuid.UUID],
    ) -> Message:
        """Post a change-request notice to everyone on the order except the author."""
        thread = await self.get_thread(order_id)
        if thread is None:
            thread = await self.create_or_edit_message_thread(order_id, participant_ids)

        message = Message(
            thread_id=thread.id,
            sender_id=sender_id,
            recipient_ids=list(recipient_ids),
            body=f"{title} has been submitted for review.",
            attachment_type=MessageAttachmentType.CHANGE_REQUEST,
            attachment_id=change_request_id,
        )
        self.session.add(message)
        await self.session.flush()
        return message
