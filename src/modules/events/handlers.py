"""Registry of outbox event handlers, keyed by event type.

Handler names double as idempotency keys in ``processed_events``: a handler
that succeeded for an event is never run for it again, even when a sibling
handler failed and the event is retried.
"""

import logging
from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

Handler = Callable[[dict], None]

STATUS_OK = "ok"
STATUS_ERROR = "error"
STATUS_SKIPPED = "skipped"


@dataclass(frozen=True)
class HandlerResult:
    handler: str
    status: str
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_OK


class EventHandlerRegistry:
    _handlers: dict[str, dict[str, Handler]] = defaultdict(dict)

    @classmethod
    def register(cls, event_type: str, handler: Handler, name: str | None = None) -> None:
        """Register ``handler`` for ``event_type``; re-registering a name is a no-op."""
        name = name or handler.__name__
        if name in cls._handlers[event_type]:
            return
        cls._handlers[event_type][name] = handler
        logger.info("Registered handler %s for %s", name, event_type)

    @classmethod
    def get_handlers(cls, event_type: str) -> dict[str, Handler]:
        return dict(cls._handlers.get(event_type, {}))

    @classmethod
    def dispatch(
        cls, event_type: str, payload: dict, skip: Iterable[str] = ()
    ) -> list[HandlerResult]:
        """Run every handler for ``event_type`` except those named in ``skip``.

        A failing handler is logged and reported; the remaining handlers still run.
        """
        skipped = set(skip)
        results = []
        for name, handler in cls.get_handlers(event_type).items():
            if name in skipped:
                results.append(HandlerResult(name, STATUS_SKIPPED))
                continue
            try:
                handler(payload)
            except Exception as exc:
                logger.exception("Handler %s failed for %s", name, event_type)
                results.append(HandlerResult(name, STATUS_ERROR, str(exc)))
                continue
            results.append(HandlerResult(name, STATUS_OK))
        return results

    @classmethod
    def clear(cls) -> None:
        cls._handlers.clear()
