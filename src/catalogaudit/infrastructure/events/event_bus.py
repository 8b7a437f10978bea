"""In-process event bus.

Hey future me - publish() is called from the pipeline and the bulk executor in the middle of
their work, so it must NEVER block or raise. Events go into a bounded asyncio.Queue; when the
queue is full the event is dropped with a warning. A single dispatch task hands events to
subscribers. A failing handler is logged and the next one still runs.
"""

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from catalogaudit.domain.entities import Event, EventType
from catalogaudit.domain.ports import IEventPublisher

logger = logging.getLogger(__name__)

EventHandler = Callable[[Event], Awaitable[None] | None]

DEFAULT_BUFFER_SIZE = 256


class EventBus(IEventPublisher):
    """Buffered publish/subscribe bus running on the event loop."""

    def __init__(self, buffer_size: int = DEFAULT_BUFFER_SIZE) -> None:
        if buffer_size <= 0:
            buffer_size = DEFAULT_BUFFER_SIZE
        self._queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=buffer_size)
        self._subscribers: dict[EventType, list[EventHandler]] = {}
        self._task: asyncio.Task[None] | None = None
        self._running = False
        self._dropped = 0

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Register a sync or async handler for an event type."""
        self._subscribers.setdefault(event_type, []).append(handler)

    def publish(self, event: Event) -> None:
        if event.timestamp is None:
            event.timestamp = datetime.now(UTC)
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self._dropped += 1
            logger.warning("event bus full, dropping event %s", event.type.value)

    async def start(self) -> None:
        if self._running:
            logger.warning("EventBus already running")
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop(), name="event-bus")
        logger.info("EventBus started")

    async def stop(self) -> None:
        """Stop dispatching after delivering everything already queued."""
        if not self._running:
            return
        await self._queue.join()
        self._running = False
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        logger.info("EventBus stopped")

    async def _run_loop(self) -> None:
        while self._running:
            event = await self._queue.get()
            try:
                await self._dispatch(event)
            finally:
                self._queue.task_done()

    async def _dispatch(self, event: Event) -> None:
        for handler in list(self._subscribers.get(event.type, [])):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    "event handler failed for %s: %s", event.type.value, e, exc_info=True
                )

    def get_status(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "queued": self._queue.qsize(),
            "dropped": self._dropped,
            "subscriptions": {t.value: len(h) for t, h in self._subscribers.items()},
        }
