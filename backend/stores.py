"""Bounded calls into the synchronous metadata and blob stores."""

import functools

import anyio
import anyio.to_thread

from config import STORE_TIMEOUT_SECONDS
from errors import StoreTimeoutError


async def call_store(fn, *args, timeout: float | None = None, **kwargs):
    """Run a blocking store call in a worker thread, bounded by ``timeout`` seconds.

    On timeout the worker thread is abandoned, not stopped: the call may still
    take effect later, so callers must not assume it did nothing.
    """
    timeout = STORE_TIMEOUT_SECONDS if timeout is None else timeout
    func = functools.partial(fn, *args, **kwargs)
    try:
        with anyio.fail_after(timeout):
            return await anyio.to_thread.run_sync(func, abandon_on_cancel=True)
    except TimeoutError as e:
        name = getattr(fn, "__qualname__", repr(fn))
        raise StoreTimeoutError(f"{name} timed out after {timeout}s") from e
