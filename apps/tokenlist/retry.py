from __future__ import annotations

import logging
from typing import Awaitable, Callable, TypeVar

from tenacity import AsyncRetrying, before_sleep_log, stop_after_attempt

LOGGER = logging.getLogger(__name__)

DEFAULT_RETRY_ATTEMPTS = 3

T = TypeVar('T')


async def retry(operation: Callable[[], Awaitable[T]], attempts: int = DEFAULT_RETRY_ATTEMPTS) -> T:
    """Run ``operation`` until it succeeds, at most ``attempts`` times, with no delay in between.

    ``operation`` is any zero-argument callable returning an awaitable, so a
    plain ``lambda`` wrapping a coroutine call works. The last error is
    re-raised unchanged once every attempt has failed.
    """
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max(1, attempts)),
        before_sleep=before_sleep_log(LOGGER, logging.DEBUG),
        reraise=True,
    ):
        with attempt:
            return await operation()
    raise AssertionError('unreachable')
