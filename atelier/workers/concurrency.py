from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class BoundedRunSummary:
    total: int = 0
    handled: int = 0
    unhandled: int = 0
    peak_in_flight: int = 0


async def run_bounded(
    items: Iterable[T],
    worker: Callable[[T], Awaitable[object]],
    limit: int,
) -> BoundedRunSummary:
    """Run ``worker`` once per item with at most ``limit`` calls in flight.

    A fixed pool of ``min(limit, len(items))`` tasks pulls from one shared
    iterator, so every item is claimed exactly once and nothing queues beyond
    the pool. Exceptions escaping ``worker`` are logged and counted; they never
    stop the remaining items.
    """

    if limit <= 0:
        raise ValueError("concurrency limit must be a positive integer")

    pending = list(items)
    summary = BoundedRunSummary(total=len(pending))
    if not pending:
        return summary

    source = iter(pending)
    in_flight = 0

    async def lane() -> None:
        nonlocal in_flight
        for item in source:
            in_flight += 1
            summary.peak_in_flight = max(summary.peak_in_flight, in_flight)
            try:
                await worker(item)
            except Exception:
                summary.unhandled += 1
                logger.exception("Worker raised for item %r", item)
            else:
                summary.handled += 1
            finally:
                in_flight -= 1

    await asyncio.gather(*(lane() for _ in range(min(limit, len(pending)))))
    return summary
