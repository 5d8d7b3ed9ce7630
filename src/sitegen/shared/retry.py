"""Bounded retry with exponential backoff, cooperative with cancellation."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from sitegen.errors import ErrorKind, classify_error, retry_after_hint
from sitegen.shared.cancellation import CancellationToken

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]

_RETRYABLE = {ErrorKind.TRANSIENT, ErrorKind.RATE_LIMIT}


class RetryPolicy:
    """Wraps a fallible async operation with a fixed attempt budget.

    ``max_retries`` is the total number of invocations, so an operation that
    always fails transiently is called exactly ``max_retries`` times.
    Transient and rate-limit errors share one backoff curve
    (``initial_delay * multiplier ** attempt``, capped at ``max_delay``); a
    server ``Retry-After`` hint raises the wait but never lowers it.  Every
    other error kind propagates on first occurrence.

    The cancellation token is checked before and after every attempt, so a
    cancelled workflow never dispatches another call and never sleeps.
    """

    def __init__(
        self,
        max_retries: int = 5,
        initial_delay: float = 2.0,
        multiplier: float = 1.5,
        max_delay: float = 60.0,
        *,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.multiplier = multiplier
        self.max_delay = max_delay
        self._sleep = sleep

    def delay_for(self, attempt: int, suggested: float | None = None) -> float:
        """Wait before retry number ``attempt + 1`` (``attempt`` is 0-based)."""
        backoff = min(self.initial_delay * (self.multiplier ** attempt), self.max_delay)
        return max(suggested or 0.0, backoff)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        cancel: CancellationToken | None = None,
        description: str = "operation",
    ) -> T:
        for attempt in range(self.max_retries):
            if cancel is not None:
                cancel.raise_if_cancelled()
            try:
                return await operation()
            except Exception as exc:
                if cancel is not None:
                    cancel.raise_if_cancelled()
                kind = classify_error(exc)
                if kind not in _RETRYABLE or attempt == self.max_retries - 1:
                    raise

                delay = self.delay_for(attempt, retry_after_hint(exc))
                logger.warning(
                    "%s failed (%s), retrying in %.1fs (attempt %d/%d): %s",
                    description, kind.value, delay, attempt + 1, self.max_retries, exc,
                )
                await self._sleep(delay)

        # Unreachable: the last attempt either returns or raises.
        raise RuntimeError(f"{description} exhausted {self.max_retries} attempts")
