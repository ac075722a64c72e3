"""Async-safe file lock wrapper.

Wraps filelock.FileLock so acquiring never blocks the event loop. The lock is
not thread-local because acquire and release run on worker threads. Lock
acquisition that times out is retried a few times before giving up.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from filelock import FileLock, Timeout
from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

LOCK_TIMEOUT_S = 10.0
LOCK_ATTEMPTS = 3


def _log_lock_retry(retry_state: RetryCallState) -> None:
    logger.warning(f"[LOCK] Retry {retry_state.attempt_number}: lock busy")


@asynccontextmanager
async def async_file_lock(
    lock_path: Path, timeout_s: float = LOCK_TIMEOUT_S
) -> AsyncIterator[None]:
    """Hold an inter-process lock for the duration of the block.

    Usage:
        async with async_file_lock(lock_path):
            await do_something()

    Raises:
        filelock.Timeout: If the lock stays busy across all attempts.
    """
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(lock_path, timeout=timeout_s, thread_local=False)

    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type(Timeout),
        stop=stop_after_attempt(LOCK_ATTEMPTS),
        wait=wait_exponential(multiplier=0.1, max=2),
        before_sleep=_log_lock_retry,
        reraise=True,
    ):
        with attempt:
            await asyncio.to_thread(lock.acquire)
    try:
        yield
    finally:
        await asyncio.to_thread(lock.release)
