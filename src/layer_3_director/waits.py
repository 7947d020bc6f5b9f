"""Pause and skip aware waits shared by the engine and executors."""

import asyncio
import time

from .director_state import DirectorState


def should_continue(state: DirectorState, session_id: int) -> bool:
    return state.is_current(session_id) and not state.skip_requested


async def wait_while_paused(state: DirectorState, session_id: int, interval: float = 0.1) -> None:
    while state.is_paused and should_continue(state, session_id):
        await asyncio.sleep(interval)


async def interruptible_sleep(state: DirectorState, session_id: int, seconds: float, interval: float = 0.1) -> bool:
    """
    Sleep for `seconds` of unpaused time.

    Exits within one `interval` when the session stops or a skip is requested.
    Time spent paused does not count toward the duration.

    Returns:
        True if the full duration elapsed
    """
    remaining = max(0.0, seconds)
    last = time.monotonic()
    while remaining > 0:
        if not should_continue(state, session_id):
            return False
        await asyncio.sleep(min(interval, remaining))
        now = time.monotonic()
        if not state.is_paused:
            remaining -= now - last
        last = now
    return should_continue(state, session_id)
