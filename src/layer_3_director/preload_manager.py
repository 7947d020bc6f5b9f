import asyncio
from typing import Awaitable, Callable, List, Optional, Set

from src.layer_2_content_generation.timeline import Block, Timeline
from src.utils.config import DirectorConfig
from src.utils.timing import wait_until

from .director_state import DirectorState

PrepareBlock = Callable[[Block, int], Awaitable[None]]


class PreloadManager:
    """
    Materializes block assets ahead of the cursor.

    A background worker ticks every `preload_interval` seconds over the window
    [cursor, cursor + preload_block_count). Every preparation is tagged with
    the session that started it; stale sessions never touch the marks.
    """

    def __init__(self, state: DirectorState, config: DirectorConfig, prepare_block: PrepareBlock):
        self.state = state
        self.config = config
        self.prepare_block = prepare_block
        self._worker: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

    def is_block_ready(self, block: Block) -> bool:
        return self.state.cache.is_block_ready(block)

    def count_prepared_blocks(self, start: int, end: int) -> int:
        return self.state.count_prepared_blocks(start, end)

    # ================== Worker ==================

    def start_worker(self, session_id: int) -> None:
        if self._worker is not None and not self._worker.done():
            return
        self._worker = asyncio.ensure_future(self._worker_loop(session_id))
        print("🔄 [Preloader] Preload worker started")

    def stop_worker(self) -> None:
        if self._worker is not None:
            self._worker.cancel()
            self._worker = None
            print("🛑 [Preloader] Preload worker stopped")

    async def _worker_loop(self, session_id: int) -> None:
        while self.state.is_current(session_id):
            await asyncio.sleep(self.config.preload_interval)
            self.tick(session_id)

    def tick(self, session_id: int) -> int:
        """Dispatch preparation for the window ahead of the cursor. Returns the number dispatched."""
        context = self.state.context
        if context is None or not self.state.is_current(session_id):
            return 0

        start = context.cursor
        dispatched = self.dispatch_window(context.timeline, start, self.config.preload_block_count, session_id)
        end = min(start + self.config.preload_block_count, context.total)
        prepared = self.count_prepared_blocks(start, end)
        if dispatched:
            print(f"📦 [Preloader] Buffer: {prepared}/{self.config.preload_block_count}, preparing {len(dispatched)}")
        return len(dispatched)

    # ================== Preparation ==================

    def dispatch_window(self, timeline: Timeline, start: int, count: int, session_id: int) -> List[asyncio.Task]:
        """Start preparing every block in the window that is neither ready nor in progress"""
        tasks = []
        cache = self.state.cache
        for block in timeline.blocks[max(0, start):max(0, start + count)]:
            if self.is_block_ready(block) or block.id in cache.in_progress:
                continue
            cache.in_progress.add(block.id)
            task = asyncio.ensure_future(self._prepare_tracked(block, session_id))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            tasks.append(task)
        return tasks

    async def prepare_window(self, timeline: Timeline, start: int, count: int, session_id: int) -> None:
        tasks = self.dispatch_window(timeline, start, count, session_id)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _prepare_tracked(self, block: Block, session_id: int) -> None:
        try:
            await self.prepare_block(block, session_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            print(f"⚠️ [Preloader] Failed to prepare block {block.id}: {e}")
        finally:
            if self.state.is_current(session_id):
                self.state.cache.in_progress.discard(block.id)

    async def wait_for_first_block_ready(self, timeline: Timeline, timeout: float) -> bool:
        """Poll until the first block is ready or `timeout` passes. Never blocks longer."""
        if not timeline.blocks:
            return False

        first = timeline.blocks[0]
        await wait_until(
            lambda: self.is_block_ready(first) or not self.state.is_running,
            timeout,
            self.config.first_block_poll_interval
        )
        ready = self.is_block_ready(first)
        if ready:
            print("✅ [Preloader] First block ready, starting playback")
        else:
            print("⚠️ [Preloader] First block not ready after timeout, starting anyway")
        return ready
