"""
Dispatch of verified events to downstream handlers.

Verified events are queued and handed to subscribed handlers by a small
pool of worker tasks, so the HTTP response to GitHub does not wait on
downstream processing.
"""

import asyncio
from collections import defaultdict
from typing import Awaitable, Callable, Dict, List, Optional

from labelmaker.core.logging import get_logger, set_request_id
from labelmaker.core.settings import get_settings
from labelmaker.hooks.models import VerifiedEvent

logger = get_logger(__name__)

EventHandler = Callable[[VerifiedEvent], Awaitable[None]]

ALL_EVENTS = "*"


class EventDispatcher:
    """Routes verified events to handlers subscribed by event type."""

    def __init__(self, queue_size: Optional[int] = None, workers: Optional[int] = None):
        """
        Initialize dispatcher.

        Args:
            queue_size: Max events waiting for a worker; submit() waits when full
            workers: Number of worker tasks
        """
        settings = get_settings().hooks
        self.queue: asyncio.Queue = asyncio.Queue(
            maxsize=queue_size if queue_size is not None else settings.queue_size
        )
        self.worker_count = workers if workers is not None else settings.workers
        self.handlers: Dict[str, List[EventHandler]] = defaultdict(list)
        self.workers: List[asyncio.Task] = []
        self.running = False

    def subscribe(self, event_type: str, handler: EventHandler):
        """Register a handler for an event type, or "*" for every event."""
        self.handlers[event_type].append(handler)

    async def start(self):
        """Start dispatch workers."""
        self.running = True
        for i in range(self.worker_count):
            worker = asyncio.create_task(self._worker(f"dispatch-{i}"))
            self.workers.append(worker)

        logger.info(f"Started {len(self.workers)} event dispatch workers")

    async def stop(self):
        """Stop dispatch workers; queued events that were not picked up are dropped."""
        self.running = False

        for worker in self.workers:
            worker.cancel()
        await asyncio.gather(*self.workers, return_exceptions=True)
        self.workers = []

        if not self.queue.empty():
            logger.warning(f"Dropping {self.queue.qsize()} undispatched events")

        logger.info("Stopped event dispatcher")

    async def submit(self, event: VerifiedEvent):
        """Queue a verified event, waiting for room if the queue is full."""
        await self.queue.put(event)
        logger.debug(f"Queued {event.event_type} event for {event.full_name}")

    def handlers_for(self, event_type: str) -> List[EventHandler]:
        return self.handlers.get(event_type, []) + self.handlers.get(ALL_EVENTS, [])

    async def dispatch(self, event: VerifiedEvent):
        """Run every matching handler; a failing handler does not stop the others."""
        handlers = self.handlers_for(event.event_type)
        if not handlers:
            logger.debug(f"No handler for {event.event_type} event on {event.full_name}")
            return

        for handler in handlers:
            try:
                await handler(event)
            except Exception as e:
                logger.error(
                    f"Handler {getattr(handler, '__name__', handler)!r} failed for "
                    f"{event.event_type} event on {event.full_name}: {e}",
                    exc_info=True
                )

    async def _worker(self, worker_id: str):
        """Worker coroutine for processing queued events."""
        logger.debug(f"Dispatch worker {worker_id} started")

        while self.running:
            event = await self.queue.get()
            try:
                if event.delivery_id:
                    set_request_id(event.delivery_id)
                await self.dispatch(event)
            finally:
                self.queue.task_done()


async def log_event(event: VerifiedEvent):
    """Default handler: record that an event was accepted."""
    logger.info(
        f"Accepted {event.event_type} event for {event.full_name}",
        extra={"delivery_id": event.delivery_id, "size": len(event.body)}
    )
