import asyncio
import time
from typing import Callable


async def sleep_while(keep_waiting: Callable[[], bool], seconds: float, interval: float = 0.1) -> bool:
    """
    Sleep up to `seconds`, waking every `interval` to re-check `keep_waiting`.

    Returns True if the full duration elapsed, False if the predicate
    turned false first.
    """
    deadline = time.monotonic() + max(0.0, seconds)
    while True:
        if not keep_waiting():
            return False
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return True
        await asyncio.sleep(min(interval, remaining))


async def wait_until(condition: Callable[[], bool], timeout: float, interval: float = 0.1) -> bool:
    """Poll `condition` until it holds or `timeout` passes. Returns the final value."""
    deadline = time.monotonic() + max(0.0, timeout)
    while not condition():
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return condition()
        await asyncio.sleep(min(interval, remaining))
    return True
