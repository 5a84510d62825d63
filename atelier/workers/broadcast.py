"""Per-project fan-out of progress events to live subscribers."""
from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProgressEvent:
    event: str
    data: dict[str, Any] = field(default_factory=dict)


# Last item of a queue whose subscriber fell behind and was dropped.
SUBSCRIPTION_CLOSED = ProgressEvent(event="closed")


class EventBroadcaster:
    """Every subscriber of a project receives every event published after it joined, until it falls behind."""

    def __init__(self, max_queue_size: int = 1000) -> None:
        self._subscribers: dict[str, set[asyncio.Queue[ProgressEvent]]] = {}
        self._max_queue_size = max_queue_size

    def subscribe(self, project_id: str) -> asyncio.Queue[ProgressEvent]:
        queue: asyncio.Queue[ProgressEvent] = asyncio.Queue(maxsize=self._max_queue_size)
        self._subscribers.setdefault(project_id, set()).add(queue)
        return queue

    def unsubscribe(self, project_id: str, queue: asyncio.Queue[ProgressEvent]) -> None:
        queues = self._subscribers.get(project_id)
        if not queues:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[project_id]

    @contextmanager
    def subscription(self, project_id: str) -> Iterator[asyncio.Queue[ProgressEvent]]:
        queue = self.subscribe(project_id)
        try:
            yield queue
        finally:
            self.unsubscribe(project_id, queue)

    def subscriber_count(self, project_id: str) -> int:
        return len(self._subscribers.get(project_id, ()))

    def _close(self, project_id: str, queue: asyncio.Queue[ProgressEvent]) -> None:
        self.unsubscribe(project_id, queue)
        while not queue.empty():
            queue.get_nowait()
        queue.put_nowait(SUBSCRIPTION_CLOSED)

    def publish(self, project_id: str, event: str, data: dict[str, Any]) -> int:
        """Deliver to every subscriber.

        A subscriber whose queue is full is dropped and its queue ends with
        :data:`SUBSCRIPTION_CLOSED`, so the reader can resynchronise instead of
        silently missing events.
        """

        delivered = 0
        for queue in list(self._subscribers.get(project_id, ())):
            try:
                queue.put_nowait(ProgressEvent(event=event, data=dict(data)))
            except asyncio.QueueFull:
                logger.warning("Subscriber of project %s fell behind; closing its stream", project_id)
                self._close(project_id, queue)
                continue
            delivered += 1
        return delivered
