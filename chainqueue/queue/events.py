"""
Typed publish/subscribe channel for queue lifecycle events.
"""

import asyncio
import inspect
import logging
from collections import defaultdict
from typing import Any, Callable

from chainqueue.constants import QueueEventType
from chainqueue.types.events import JobEvent

logger = logging.getLogger(__name__)

# Listeners may be plain callables or return an awaitable
EventListener = Callable[[JobEvent], Any]


class EventBus:
    """
    Publish-only event channel.

    Listeners are registered per event type (or for all types). A failing
    listener is logged and skipped; publishing never raises.
    """

    def __init__(self) -> None:
        self._listeners: dict[QueueEventType, list[EventListener]] = defaultdict(list)
        self._wildcard: list[EventListener] = []
        self._pending_tasks: set[asyncio.Task] = set()

    def subscribe(
        self,
        event_type: QueueEventType,
        listener: EventListener,
    ) -> Callable[[], None]:
        """
        Register a listener for one event type.

        Returns:
            A callable that removes the listener.
        """
        event_type = QueueEventType(event_type)
        self._listeners[event_type].append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners[event_type]:
                self._listeners[event_type].remove(listener)

        return unsubscribe

    def subscribe_all(self, listener: EventListener) -> Callable[[], None]:
        """Register a listener for every event type."""
        self._wildcard.append(listener)

        def unsubscribe() -> None:
            if listener in self._wildcard:
                self._wildcard.remove(listener)

        return unsubscribe

    def listener_count(self, event_type: QueueEventType | None = None) -> int:
        """Count listeners for one event type, or all listeners."""
        if event_type is None:
            return sum(len(v) for v in self._listeners.values()) + len(self._wildcard)
        return len(self._listeners.get(QueueEventType(event_type), [])) + len(
            self._wildcard
        )

    def publish(self, event: JobEvent) -> None:
        """Deliver an event to its listeners."""
        listeners = [*self._listeners.get(event.event_type, []), *self._wildcard]
        for listener in listeners:
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    self._schedule(result, event)
            except Exception:
                logger.exception(
                    "Event listener failed",
                    extra={"event_type": str(event.event_type)},
                )

    def _schedule(self, awaitable: Any, event: JobEvent) -> None:
        """Run an async listener in the background on the current loop."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "Async listener skipped, no running event loop",
                extra={"event_type": str(event.event_type)},
            )
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return

        task = loop.create_task(self._run_listener(awaitable, event))
        self._pending_tasks.add(task)
        task.add_done_callback(self._pending_tasks.discard)

    @staticmethod
    async def _run_listener(awaitable: Any, event: JobEvent) -> None:
        try:
            await awaitable
        except Exception:
            logger.exception(
                "Async event listener failed",
                extra={"event_type": str(event.event_type)},
            )
