"""OutboxService: publishes order events inside the relational transaction."""

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from src.logging_config import request_id_var
from src.models.enums import EventStatus
from src.models.event_outbox import EventOutbox


class OutboxService:
    """Writes outbox rows; delivery happens later in the Celery outbox worker."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def publish_event(
        self,
        event_type: str,
        aggregate_type: str,
        aggregate_id: uuid.UUID | str,
        payload: dict,
    ) -> EventOutbox:
        """Add a PENDING event to the current transaction.

        The row commits or rolls back together with the order mutation that
        produced it.
        """
        event = EventOutbox(
            event_type=event_type,
            aggregate_type=aggregate_type,
            aggregate_id=str(aggregate_id),
            payload=payload,
            status=EventStatus.PENDING,
            request_id=request_id_var.get(),
        )
        self.session.add(event)
        await self.session.flush()
        return event
