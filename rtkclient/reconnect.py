"""Reconnection with exponential backoff.

Both the device link and the NTRIP client recover from transient failures
the same way: count consecutive failures, wait ``min(base * 2**n, 30)``
seconds, try again, and give up once the ceiling is reached. A successful
connection or a user-initiated connect resets the count.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from rtkclient.errors import ConfigurationError

__all__ = ["ReconnectPolicy", "ReconnectScheduler"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconnectPolicy:
    """Backoff parameters.

    Attributes:
        max_attempts: Consecutive failures after which reconnection is
            abandoned. The failure that reaches this count is terminal.
        base_delay: Delay before the first retry, in seconds.
        max_delay: Upper bound of any single delay, in seconds.
        backoff_factor: Multiplier applied per consecutive failure.
    """

    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff_factor: float = 2.0

    def validate(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ConfigurationError("delays must not be negative")
        if self.backoff_factor < 1:
            raise ConfigurationError("backoff_factor must be at least 1")

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number *attempt* (0-based)."""
        return min(self.base_delay * self.backoff_factor**attempt, self.max_delay)


class ReconnectScheduler:
    """Owns the consecutive-failure counter and the pending retry task.

    Args:
        policy: Backoff parameters.
        name: Component name used in log messages.
    """

    def __init__(self, policy: ReconnectPolicy, name: str) -> None:
        policy.validate()
        self._policy = policy
        self._name = name
        self._failures = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def policy(self) -> ReconnectPolicy:
        return self._policy

    @property
    def failures(self) -> int:
        """Consecutive failures since the last success or reset."""
        return self._failures

    @property
    def pending(self) -> bool:
        """True while a retry is waiting to fire or running."""
        return self._task is not None and not self._task.done()

    def reset(self) -> None:
        self._failures = 0

    def record_failure(self) -> float | None:
        """Count one failure and return the delay before the next retry.

        Returns:
            Seconds to wait, or None when the ceiling has been reached.
        """
        self._failures += 1
        if self._failures >= self._policy.max_attempts:
            logger.error(
                "%s: giving up after %d consecutive failures",
                self._name,
                self._failures,
            )
            return None
        return self._policy.delay_for(self._failures - 1)

    def schedule(self, delay: float, retry: Callable[[], Awaitable[None]]) -> None:
        """Run *retry* after *delay* seconds, replacing any pending retry."""
        self.cancel()
        logger.warning(
            "%s: retry %d/%d in %.1fs",
            self._name,
            self._failures,
            self._policy.max_attempts - 1,
            delay,
        )
        self._task = asyncio.create_task(self._run(delay, retry))

    def cancel(self) -> asyncio.Task[None] | None:
        """Cancel a pending retry, unless called from within it.

        Returns:
            The cancelled task so the caller can wait for it to unwind, or
            None when nothing was cancelled.
        """
        task = self._task
        self._task = None
        if task is None or task.done() or task is asyncio.current_task():
            return None
        task.cancel()
        return task

    async def _run(self, delay: float, retry: Callable[[], Awaitable[None]]) -> None:
        await asyncio.sleep(delay)
        await retry()
