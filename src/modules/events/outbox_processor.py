"""OutboxProcessor: synchronous batch processor for Celery workers."""

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import text
from sqlalchemy.orm import Session

from src.database.engine import sync_engine
from src.modules.events.handlers import STATUS_ERROR, EventHandlerRegistry

logger = logging.getLogger(__name__)

PROCESSED_EVENT_TTL = timedelta(days=7)


class OutboxProcessor:
    """Drains pending order events using sync sessions (for Celery workers).

    Rows are claimed with SELECT ... FOR UPDATE SKIP LOCKED so several workers
    can run side by side. Idempotency is tracked per handler: a retried event
    only re-runs the handlers that have not succeeded yet.
    """

    def __init__(self, engine=None) -> None:
        self.engine = engine or sync_engine

    def process_batch(self, batch_size: int = 50) -> dict:
        """Process a batch of pending events.

        Returns dict with 'processed' and 'failed' counts.
        """
        processed_count = 0
        failed_count = 0

        with Session(self.engine) as session:
            pending_rows = session.execute(
                text("""
                    SELECT id, event_type, aggregate_type, aggregate_id,
                           payload, retry_count, max_retries
                    FROM event_outbox
                    WHERE status = 'PENDING'
                    ORDER BY created_at ASC
                    LIMIT :batch_size
                    FOR UPDATE SKIP LOCKED
                """),
                {"batch_size": batch_size},
            ).fetchall()

            for row in pending_rows:
                try:
                    self._process_event(session, row)
                    session.commit()
                    processed_count += 1
                except Exception as exc:
                    session.rollback()
                    logger.exception(
                        "Failed to process event %s (type=%s, aggregate=%s/%s)",
                        row.id, row.event_type, row.aggregate_type, row.aggregate_id,
                    )
                    self._record_failure(session, row, exc)
                    session.commit()
                    failed_count += 1

        return {"processed": processed_count, "failed": failed_count}

    def _process_event(self, session: Session, row) -> None:
        already_done = {
            r.handler_name
            for r in session.execute(
                text("SELECT handler_name FROM processed_events WHERE event_id = :event_id"),
                {"event_id": row.id},
            ).fetchall()
        }

        session.execute(
            text("UPDATE event_outbox SET status = 'PROCESSING' WHERE id = :event_id"),
            {"event_id": row.id},
        )

        results = EventHandlerRegistry.dispatch(row.event_type, row.payload, skip=already_done)

        expires_at = datetime.now(UTC) + PROCESSED_EVENT_TTL
        for result in results:
            if not result.succeeded:
                continue
            session.execute(
                text("""
                    INSERT INTO processed_events
                        (event_id, event_type, handler_name, processed_at, expires_at)
                    VALUES
                        (:event_id, :event_type, :handler_name, now(), :expires_at)
                """),
                {
                    "event_id": row.id,
                    "event_type": row.event_type,
                    "handler_name": result.handler,
                    "expires_at": expires_at,
                },
            )

        handler_errors = [r for r in results if r.status == STATUS_ERROR]
        if handler_errors:
            # Successful handlers stay recorded so a retry skips them
            session.commit()
            error_messages = "; ".join(f"{r.handler}: {r.error}" for r in handler_errors)
            raise RuntimeError(f"Handler errors: {error_messages}")

        session.execute(
            text("""
                UPDATE event_outbox
                SET status = 'COMPLETED', processed_at = now()
                WHERE id = :event_id
            """),
            {"event_id": row.id},
        )

    def _record_failure(self, session: Session, row, exc: Exception) -> None:
        new_retry_count = row.retry_count + 1
        new_status = "FAILED" if new_retry_count >= row.max_retries else "PENDING"
        session.execute(
            text("""
                UPDATE event_outbox
                SET status = :new_status,
                    retry_count = :retry_count,
                    last_error = :error
                WHERE id = :event_id
            """),
            {
                "new_status": new_status,
                "retry_count": new_retry_count,
                "error": str(exc),
                "event_id": row.id,
            },
        )

    def cleanup_expired(self) -> int:
        """Delete expired processed_events and old completed outbox events."""
        total_deleted = 0

        with Session(self.engine) as session:
            result = session.execute(
                text("DELETE FROM processed_events WHERE expires_at < now()")
            )
            total_deleted += result.rowcount

            result = session.execute(
                text("""
                    DELETE FROM event_outbox
                    WHERE status = 'COMPLETED'
                      AND processed_at < now() - INTERVAL '30 days'
                """)
            )
            total_deleted += result.rowcount

            session.commit()

        logger.info("Cleaned up %d expired event records", total_deleted)
        return total_deleted
