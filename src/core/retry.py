"""Flood-wait and transient-error retry policy.

Every backend call in the delete pipeline goes through ``RetryPolicy.call``:

- ``RateLimitError``: sleep exactly the signaled duration and repeat the same
  call. There is no cap because the wait is authoritative.
- ``TransientBackendError``: exponential backoff (1s, 2s, 4s by default),
  then re-raise so the caller can skip the unit of work.
- Anything else propagates immediately.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from core.errors import RateLimitError, TransientBackendError
from core.ports import Sleep

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """Explicit retry loop with an injected sleep so backoff is testable."""

    def __init__(
        self,
        sleep: Sleep = asyncio.sleep,
        max_retries: int = 3,
        base_delay: float = 1.0,
    ) -> None:
        self._sleep = sleep
        self._max_retries = max(0, max_retries)
        self._base_delay = base_delay

    @property
    def sleep(self) -> Sleep:
        return self._sleep

    async def call(self, operation: Callable[[], Awaitable[T]], description: str = "backend call") -> T:
        retries = 0
        while True:
            try:
                return await operation()
            except RateLimitError as exc:
                LOGGER.warning("Flood wait during %s, sleeping %ss", description, exc.seconds)
                await self._sleep(exc.seconds)
            except TransientBackendError as exc:
                if retries >= self._max_retries:
                    LOGGER.error("Giving up on %s after %s retries: %s", description, retries, exc)
                    raise
                delay = self._base_delay * (2 ** retries)
                retries += 1
                LOGGER.warning(
                    "%s failed (%s), retrying in %ss (%s/%s)",
                    description,
                    exc,
                    delay,
                    retries,
                    self._max_retries,
                )
                await self._sleep(delay)
