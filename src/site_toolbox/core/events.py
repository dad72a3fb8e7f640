"""EventBus — decoupled Observer for progress, warning, and error events."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

EventHandler = Callable[..., None]

# Event names emitted by the tools.
PROGRESS = "progress"
COMPLETED = "completed"
WARNING = "warning"
ERROR = "error"


class EventBus:
    """Publish/subscribe bus shared by tools and front-ends.

    Tools report progress and non-fatal problems (a corrupt image in a
    batch, a requested size larger than the source) through the bus
    instead of raising, so the CLI can print them and keep going.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event: str, handler: EventHandler) -> None:
        """Register a handler for a given event type.

        Args:
            event: The event name to subscribe to (e.g. ``"warning"``).
            handler: A callable invoked with the event's keyword arguments.
        """
        self._handlers[event].append(handler)

    def unsubscribe(self, event: str, handler: EventHandler) -> None:
        """Remove a previously registered handler.

        Args:
            event: The event name.
            handler: The handler to remove.
        """
        try:
            self._handlers[event].remove(handler)
        except ValueError:
            logger.warning("Handler %r was not subscribed to event %r", handler, event)

    def emit(self, event: str, **kwargs: Any) -> None:
        """Fire an event, calling every subscribed handler in order.

        A handler that raises is logged and skipped; the remaining
        handlers still run.

        Args:
            event: The event name to fire.
            **kwargs: Arbitrary data passed to each handler.
        """
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(**kwargs)
            except Exception:
                logger.exception("Error in handler %r for event %r", handler, event)
