"""
Show Scheduler
--------------
Top-level loop of the station. Each iteration installs a timeline (first
run, pre-fetched or freshly generated), plays it through the execution
engine and, halfway through, double-buffers the next one.

The session id is the only cancellation token: every continuation captures
it and re-checks `state.is_current(session_id)` before committing anything.
"""

import asyncio
import math
from typing import Optional

from src.layer_1_audio_interface.audio_output import BaseAudioOutput
from src.layer_1_audio_interface.speech_synthesis import BaseSpeechSynthesizer
from src.layer_2_content_generation.content_generator import BaseContentGenerator
from src.layer_2_content_generation.media_provider import BaseMediaProvider
from src.layer_2_content_generation.timeline import Block, MusicBlock, TalkBlock, Timeline
from src.utils.config import DirectorConfig
from src.utils.errors import TimelineGenerationError
from src.utils.timing import sleep_while

from .director_state import DirectorState, ExecutionContext, PlaybackInfo, PlayerState
from .events import EventSink
from .execution_engine import ExecutionEngine
from .mail_queue import ListenerMailQueue
from .music_executor import MusicExecutor
from .playback_controller import PlaybackController
from .preload_manager import PreloadManager
from .session_store import SessionStore
from .talk_executor import TalkExecutor
from .warmup_content import WarmupContent


class ShowScheduler:
    """Owns all director state; collaborators receive a handle to it"""

    def __init__(
        self,
        config: DirectorConfig,
        content_generator: BaseContentGenerator,
        synthesizer: BaseSpeechSynthesizer,
        media_provider: BaseMediaProvider,
        audio_output: BaseAudioOutput,
        session_store: Optional[SessionStore] = None
    ):
        self.config = config
        self.content_generator = content_generator
        self.synthesizer = synthesizer
        self.audio = audio_output

        self.state = DirectorState(recent_song_limit=config.recent_song_limit)
        self.mail_queue = ListenerMailQueue()

        self.controller = PlaybackController(self.state, audio_output, on_change=self.state.notify_state_change)
        self.talk_executor = TalkExecutor(self.state, config, synthesizer, audio_output)
        self.music_executor = MusicExecutor(self.state, config, media_provider, synthesizer, audio_output)
        self.preload = PreloadManager(self.state, config, self._prepare_block)
        self.engine = ExecutionEngine(
            self.state, config, self.preload, self.talk_executor,
            self.music_executor, audio_output, session_store
        )
        self.warmup = WarmupContent(self.state, config, synthesizer, media_provider, audio_output)

        self._theme: Optional[str] = None
        self._halfway_task: Optional[asyncio.Task] = None
        self._warmup_task: Optional[asyncio.Task] = None

    # ================== Lifecycle ==================

    async def start_show(self, theme: Optional[str] = None, user_request: Optional[str] = None,
                         events: Optional[EventSink] = None) -> None:
        """Run the show until stop_show() is called"""
        if self.state.is_running:
            print("⚠️ [Director] Show already running")
            return

        self.state.is_running = True
        session_id = self.state.begin_session()
        self.synthesizer.reset()
        self._theme = theme or self.config.default_theme

        self.state.context = ExecutionContext(
            timeline=Timeline(id="init", title="Initializing", blocks=[]),
            events=events or EventSink()
        )
        await self._run_show_loop(user_request, session_id)

    def stop_show(self) -> None:
        self.state.is_running = False
        self.preload.stop_worker()
        self._cancel_halfway_task()
        self._cancel_warmup_task()

        self.audio.stop_all()
        self.synthesizer.abort()
        self.state.reset()
        print("🛑 [Director] Show stopped")

    # ================== Controls ==================

    def pause_show(self) -> bool:
        return self.controller.pause()

    def resume_show(self) -> bool:
        return self.controller.resume()

    def skip_to_next(self) -> bool:
        return self.controller.skip_next()

    def skip_to_previous(self) -> bool:
        return self.controller.skip_previous()

    def skip_to_block(self, index: int) -> bool:
        return self.controller.skip_to_index(index)

    def get_playback_info(self) -> Optional[PlaybackInfo]:
        return self.controller.playback_info()

    def get_state(self) -> PlayerState:
        return self.state.player_state()

    def submit_request(self, text: str) -> bool:
        """Queue a listener request for an upcoming timeline"""
        return self.mail_queue.submit(text)

    # ================== Show loop ==================

    async def _run_show_loop(self, user_request: Optional[str], session_id: int) -> None:
        print(f"🎬 [Director] Entering show loop (session {session_id})")
        first_run = True

        while self.state.is_current(session_id):
            try:
                if first_run:
                    first_run = False
                    timeline = await self._first_run(user_request, session_id)
                elif self.state.next_timeline is not None and self.state.next_timeline_ready:
                    timeline = await self._use_prefetched(session_id)
                else:
                    timeline = await self._regenerate(session_id)

                if timeline is None or not self.state.is_current(session_id):
                    continue

                self.preload.start_worker(session_id)
                self._cancel_halfway_task()
                self._halfway_task = asyncio.ensure_future(self._prepare_next_timeline(timeline, session_id))

                await self.engine.execute_timeline(session_id)

                if self.state.is_current(session_id):
                    self._prune_caches(timeline)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                print(f"❌ [Director] Loop error: {e}")
                self._cancel_warmup_task()
                self.state.emit("on_error", e)
                await sleep_while(lambda: self.state.is_current(session_id),
                                  self.config.error_backoff, self.config.pause_poll_interval)

        print("🎬 [Director] Show loop ended")

    async def _first_run(self, user_request: Optional[str], session_id: int) -> Optional[Timeline]:
        self._warmup_task = asyncio.ensure_future(self.warmup.play_warmup_content(session_id))

        timeline = await self._generate_timeline(self._theme, user_request)
        if not self._install_timeline(timeline, session_id):
            return None

        print("⏳ [Director] Preparing audio...")
        prepare = asyncio.ensure_future(
            self.preload.prepare_window(timeline, 0, self.config.preload_block_count, session_id)
        )
        prepare.add_done_callback(_log_background_failure)
        await self.preload.wait_for_first_block_ready(timeline, self.config.first_block_timeout)
        if not self.state.is_current(session_id):
            return None

        self._cancel_warmup_task()
        await self.audio.fade_music(0, self.config.warmup_crossfade_ms)
        self.audio.stop_all()
        self.audio.set_music_volume(self.config.music_default_volume)
        await asyncio.sleep(self.config.warmup_settle_delay)
        return timeline

    async def _use_prefetched(self, session_id: int) -> Optional[Timeline]:
        print("📼 [Director] Using pre-generated timeline")
        timeline = self.state.next_timeline
        self.state.clear_next_timeline()

        self.audio.stop_all()
        await asyncio.sleep(self.config.promote_settle_delay)

        # Block ids can repeat across episodes
        self.state.cache.clear_talk_audio()

        await self.warmup.play_transition_music(session_id)
        await sleep_while(lambda: self.state.is_current(session_id),
                          self.config.post_transition_delay, self.config.pause_poll_interval)

        if not self._install_timeline(timeline, session_id):
            return None
        await self.preload.prepare_window(timeline, 0, self.config.preload_block_count, session_id)
        return timeline

    async def _regenerate(self, session_id: int) -> Optional[Timeline]:
        print("⚠️ [Director] No timeline buffered, waiting for generation...")
        self._cancel_halfway_task()
        self._cancel_warmup_task()
        self.state.clear_next_timeline()

        await self.audio.fade_music(0, self.config.regenerate_fade_ms)
        self.audio.stop_music()
        self.audio.set_music_volume(self.config.music_default_volume)
        self.state.cache.clear_talk_audio()

        filler = asyncio.ensure_future(self.warmup.play_transition_music(session_id))
        try:
            timeline = await self._generate_timeline(self._theme, self.mail_queue.get_next())
        finally:
            if not filler.done():
                filler.cancel()
                await asyncio.gather(filler, return_exceptions=True)

        if not self.state.is_current(session_id):
            return None
        await self.audio.fade_music(0, self.config.regenerate_fade_ms)
        self.audio.stop_music()
        self.audio.set_music_volume(self.config.music_default_volume)

        if not self._install_timeline(timeline, session_id):
            return None
        await self.preload.prepare_window(timeline, 0, self.config.preload_block_count, session_id)
        return timeline

    # ================== Double buffering ==================

    def halfway_delay(self, timeline: Timeline) -> float:
        if timeline.estimated_duration > 0:
            estimate = timeline.estimated_duration / 2
        else:
            estimate = len(timeline.blocks) * self.config.seconds_per_block_estimate / 2
        return max(self.config.halfway_delay_min, estimate)

    async def _prepare_next_timeline(self, current: Timeline, session_id: int) -> None:
        """Generate and partly prefetch the next timeline. Never promotes it."""
        keep_going = lambda: self.state.is_current(session_id)
        if not await sleep_while(keep_going, self.halfway_delay(current), self.config.pause_poll_interval):
            return
        if self.state.is_preparing_next or self.state.next_timeline is not None:
            return

        self.state.is_preparing_next = True
        try:
            print("🔮 [Director] Pre-generating next timeline...")
            next_timeline = await self._generate_timeline(self._theme, self.mail_queue.get_next())
            if not keep_going():
                return

            self.state.next_timeline = next_timeline
            self.state.next_timeline_ready = False
            half = math.ceil(len(next_timeline.blocks) / 2)
            await self.preload.prepare_window(next_timeline, 0, half, session_id)

            if keep_going() and self.state.next_timeline is next_timeline:
                self.state.next_timeline_ready = True
                print(f"✅ [Director] Next timeline ready: {next_timeline.title}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            print(f"⚠️ [Director] Next timeline preparation failed: {e}")
        finally:
            if keep_going():
                self.state.is_preparing_next = False

    def _cancel_halfway_task(self) -> None:
        if self._halfway_task is not None and not self._halfway_task.done():
            self._halfway_task.cancel()
        self._halfway_task = None

    def _cancel_warmup_task(self) -> None:
        if self._warmup_task is not None and not self._warmup_task.done():
            self._warmup_task.cancel()
        self._warmup_task = None

    # ================== Helpers ==================

    async def _generate_timeline(self, theme: Optional[str], user_request: Optional[str]) -> Timeline:
        print(f"✍️ [Director] Generating new timeline ({self.config.main_duration_sec}s)...")
        timeline = await self.content_generator.generate(
            self.config.main_duration_sec, theme, user_request, self.state.recent_song_names()
        )
        if timeline is None or not timeline.blocks:
            raise TimelineGenerationError("Content generator returned an empty timeline")
        return timeline

    def _install_timeline(self, timeline: Timeline, session_id: int) -> bool:
        """Make `timeline` the active one. No-op for a stale session."""
        if not self.state.is_current(session_id):
            return False

        print(f"📋 [Director] New timeline {timeline.id} with {len(timeline.blocks)} blocks")
        if self.state.context is None:
            self.state.context = ExecutionContext(timeline=timeline)
        else:
            self.state.context.load(timeline)

        self.state.emit("on_timeline_ready", timeline)
        self._prune_caches(timeline)
        self.state.notify_state_change()
        return True

    def _prune_caches(self, active: Timeline) -> None:
        removed = self.state.cache.prune([active, self.state.next_timeline])
        if removed:
            print(f"🧹 [Director] Pruned {removed} cache entries")

    async def _prepare_block(self, block: Block, session_id: int) -> None:
        if isinstance(block, TalkBlock):
            await self.talk_executor.prepare(block, session_id)
        elif isinstance(block, MusicBlock):
            await self.music_executor.prepare(block, session_id)


def _log_background_failure(task: asyncio.Future) -> None:
    if not task.cancelled() and task.exception() is not None:
        print(f"⚠️ [Director] Background prepare warning: {task.exception()}")
