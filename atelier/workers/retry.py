from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from atelier.core.errors import PermanentError, RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(slots=True)
class RetryPolicy:
    """Bounded retries with linear backoff (``attempt * base_delay`` seconds).

    :class:`PermanentError` is re-raised at once without further attempts.
    Once every attempt fails, :class:`RetryExhaustedError` carries the last cause.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    label: str = "operation"
    sleep: Sleep = asyncio.sleep

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay cannot be negative")

    def delay_for(self, attempt: int) -> float:
        return attempt * self.base_delay

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        last_error: BaseException | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except PermanentError:
                raise
            except Exception as exc:
                last_error = exc
                logger.warning("%s attempt %d/%d failed: %s", self.label, attempt, self.max_attempts, exc)
                if attempt < self.max_attempts:
                    await self.sleep(self.delay_for(attempt))
        assert last_error is not None
        raise RetryExhaustedError(self.max_attempts, last_error) from last_error


@dataclass(slots=True)
class FixedDelayRetry(RetryPolicy):
    """Same contract with a constant pause between attempts."""

    def delay_for(self, attempt: int) -> float:
        return self.base_delay


@dataclass(slots=True)
class ExponentialRetry(RetryPolicy):
    """Same contract with ``base_delay * 2 ** (attempt - 1)`` pauses."""

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * 2 ** (attempt - 1)
