"""Exponential-backoff retries for backend calls, sync or async."""
from __future__ import annotations

import asyncio
import functools
import inspect
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Tuple, Type

from jobfill.log import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class Backoff:
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    factor: float = 2.0
    jitter: bool = True

    def delay(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        seconds = min(self.base_delay * self.factor ** (attempt - 1), self.max_delay)
        return seconds * (0.5 + random.random()) if self.jitter else seconds

    def next_delay(self, name: str, attempt: int, exc: BaseException) -> float:
        """Delay before the next attempt; re-raises ``exc`` once attempts run out."""
        if attempt >= self.max_attempts:
            log.error("%s gave up after %d attempts: %s", name, self.max_attempts, exc)
            raise exc
        seconds = self.delay(attempt)
        log.warning("%s failed (%s), attempt %d/%d, next try in %.1fs", name, exc, attempt, self.max_attempts, seconds)
        return seconds


def retry(
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
    jitter: bool = True,
    retryable: Tuple[Type[BaseException], ...] = (Exception,),
) -> Callable:
    """Retry the decorated callable on ``retryable`` exceptions.

    Coroutine functions wait with ``asyncio.sleep``; plain functions block in
    ``time.sleep``. Anything outside ``retryable`` propagates on the first raise.
    """
    policy = Backoff(max_attempts, base_delay, max_delay, backoff_factor, jitter)

    def decorator(fn: Callable) -> Callable:
        name = fn.__qualname__

        if inspect.iscoroutinefunction(fn):

            @functools.wraps(fn)
            async def run_async(*args: Any, **kwargs: Any) -> Any:
                attempt = 1
                while True:
                    try:
                        return await fn(*args, **kwargs)
                    except retryable as exc:
                        await asyncio.sleep(policy.next_delay(name, attempt, exc))
                    attempt += 1

            return run_async

        @functools.wraps(fn)
        def run(*args: Any, **kwargs: Any) -> Any:
            attempt = 1
            while True:
                try:
                    return fn(*args, **kwargs)
                except retryable as exc:
                    time.sleep(policy.next_delay(name, attempt, exc))
                attempt += 1

        return run

    return decorator
