"""
Walks the active timeline block by block.

Before each block the engine checks, in order: stop, skip, pause. A skip
always preempts pause. Blocks that do not become ready within
`block_ready_timeout` are skipped rather than stalling the show.
"""

import asyncio
from typing import Optional

from src.layer_1_audio_interface.audio_output import BaseAudioOutput
from src.layer_2_content_generation.timeline import (
    Block,
    MusicBlock,
    MusicControlBlock,
    SilenceBlock,
    TalkBlock,
    Timeline,
)
from src.utils.config import DirectorConfig
from src.utils.timing import wait_until

from .director_state import DirectorState, ExecutionContext
from .music_executor import MusicExecutor
from .preload_manager import PreloadManager
from .session_store import SessionSnapshot, SessionStore
from .talk_executor import TalkExecutor
from .waits import interruptible_sleep, wait_while_paused


class ExecutionEngine:
    def __init__(
        self,
        state: DirectorState,
        config: DirectorConfig,
        preload: PreloadManager,
        talk_executor: TalkExecutor,
        music_executor: MusicExecutor,
        audio_output: BaseAudioOutput,
        session_store: Optional[SessionStore] = None
    ):
        self.state = state
        self.config = config
        self.preload = preload
        self.talk = talk_executor
        self.music = music_executor
        self.audio = audio_output
        self.session_store = session_store

    async def execute_timeline(self, session_id: int) -> bool:
        """
        Play the active timeline from its cursor to the end.

        Returns:
            True if the last block was reached in this session
        """
        context = self.state.context
        if context is None:
            return False
        timeline = context.timeline

        while self._is_live(context, session_id) and context.cursor < context.total:
            if self.state.skip_requested:
                self._apply_skip(context, session_id)

            await wait_while_paused(self.state, session_id, self.config.pause_poll_interval)
            if not self._is_live(context, session_id):
                break
            if self.state.skip_requested:
                continue

            index = context.cursor
            block = timeline.blocks[index]

            if not self.preload.is_block_ready(block):
                ready = await self._wait_for_block(context, index, session_id)
                if not self._is_live(context, session_id):
                    break
                if not ready and not self.state.skip_requested:
                    print(f"❌ [Engine] Block {index} not ready after {self.config.block_ready_timeout}s, skipping")
                    context.move_cursor(index + 1)
                    self.state.notify_state_change()
                # Re-check stop, skip and pause after the wait
                continue

            self.state.emit("on_block_start", block, index)
            print(f"▶️ [Engine] Block {index + 1}/{context.total} ({block.type})")

            try:
                await self.execute_block(block, session_id)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                print(f"❌ [Engine] Block execution error: {e}")
                self.state.emit("on_error", e, block)
            else:
                if not self.state.skip_requested and self._is_live(context, session_id):
                    self.state.emit("on_block_end", block)

            if not self._is_live(context, session_id):
                break
            if not self.state.skip_requested:
                context.move_cursor(index + 1)
                self._save_snapshot(timeline, context.cursor)
                self.state.notify_state_change()

        completed = self._is_live(context, session_id) and context.cursor >= context.total
        if completed:
            print(f"🏁 [Engine] Show completed: {timeline.title}")
            self.state.emit("on_show_completed", timeline)
        return completed

    def _is_live(self, context: ExecutionContext, session_id: int) -> bool:
        return self.state.is_current(session_id) and self.state.context is context

    def _apply_skip(self, context: ExecutionContext, session_id: int) -> None:
        target = self.state.target_block_index
        self.state.clear_skip()
        if not 0 <= target < context.total:
            return

        context.move_cursor(target)
        print(f"⏭️ [Engine] Jumped to block {target}")
        self.state.notify_state_change()
        self.preload.dispatch_window(context.timeline, target, self.config.preload_block_count, session_id)

    async def _wait_for_block(self, context: ExecutionContext, index: int, session_id: int) -> bool:
        block = context.timeline.blocks[index]
        print(f"⏳ [Engine] Block {index} not ready, waiting...")
        self.preload.dispatch_window(context.timeline, index, 1, session_id)
        await wait_until(
            lambda: (self.preload.is_block_ready(block)
                     or self.state.skip_requested
                     or not self._is_live(context, session_id)),
            self.config.block_ready_timeout,
            self.config.block_ready_poll_interval
        )
        return self.preload.is_block_ready(block)

    def _save_snapshot(self, timeline: Timeline, cursor: int) -> None:
        if self.session_store is None:
            return
        self.session_store.save_snapshot(SessionSnapshot(timeline_id=timeline.id, cursor=cursor, position=0.0))

    async def execute_block(self, block: Block, session_id: int) -> None:
        if isinstance(block, TalkBlock):
            await self.talk.execute(block, session_id)
        elif isinstance(block, MusicBlock):
            await self.music.execute(block, session_id)
        elif isinstance(block, MusicControlBlock):
            await self.music.execute_control(block)
        elif isinstance(block, SilenceBlock):
            await interruptible_sleep(self.state, session_id, block.duration_ms / 1000,
                                      self.config.pause_poll_interval)
        else:
            print(f"⚠️ [Engine] Unknown block type: {type(block).__name__}")
