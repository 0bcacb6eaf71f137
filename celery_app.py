"""Celery worker for the order event outbox.

One queue, two periodic jobs: drain pending outbox rows every
``event_outbox_poll_seconds`` and prune idempotency records nightly.
"""

from celery import Celery
from celery.schedules import crontab

from src.config import settings

OUTBOX_QUEUE = "order-events"

celery = Celery("order_change_control")

celery.conf.update(
    broker_url=settings.celery_broker_url,
    result_backend=settings.celery_result_backend,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_default_queue=OUTBOX_QUEUE,
    task_routes={"src.modules.events.tasks.*": {"queue": OUTBOX_QUEUE}},
    # Rows are claimed with SKIP LOCKED; a redelivered drain re-runs only unfinished handlers
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    # A drain that overruns its poll interval is abandoned; the next beat picks the rows up
    task_soft_time_limit=max(settings.event_outbox_poll_seconds * 6, 30),
    result_expires=3600,
    broker_transport_options={
        "retry_on_timeout": True,
        "visibility_timeout": 3600,
    },
    beat_schedule={
        "drain-order-event-outbox": {
            "task": "src.modules.events.tasks.process_outbox",
            "schedule": settings.event_outbox_poll_seconds,
            "options": {"expires": settings.event_outbox_poll_seconds},
        },
        "prune-processed-order-events": {
            "task": "src.modules.events.tasks.cleanup_processed_events",
            "schedule": crontab(hour=3, minute=30),
        },
    },
)

celery.autodiscover_tasks(["src.modules.events"])
