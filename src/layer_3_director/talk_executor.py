"""
Talk block preparation and playback.

Blocks with few enough speakers are synthesized as one batched artifact when
the synthesizer supports it; everything else is synthesized line by line.
"""

import asyncio
from typing import Dict, Optional

from src.layer_1_audio_interface.audio_output import BaseAudioOutput
from src.layer_1_audio_interface.speech_synthesis import BaseSpeechSynthesizer, SpeechLine
from src.layer_2_content_generation.timeline import BackgroundMusic, ScriptLine, TalkBlock
from src.utils.config import DirectorConfig

from .director_state import DirectorState, talk_batch_key, talk_line_key
from .waits import interruptible_sleep, should_continue, wait_while_paused


class TalkExecutor:
    def __init__(self, state: DirectorState, config: DirectorConfig,
                 synthesizer: BaseSpeechSynthesizer, audio_output: BaseAudioOutput):
        self.state = state
        self.config = config
        self.synthesizer = synthesizer
        self.audio = audio_output

    def use_batch(self, block: TalkBlock) -> bool:
        speakers = {line.speaker for line in block.scripts}
        return self.synthesizer.supports_batch and len(speakers) <= self.config.batch_speaker_threshold

    # ================== Preparation ==================

    async def prepare(self, block: TalkBlock, session_id: int) -> None:
        if self.use_batch(block) and await self._prepare_batched(block, session_id):
            return
        await self._prepare_single(block, session_id)

    async def _prepare_batched(self, block: TalkBlock, session_id: int) -> bool:
        key = talk_batch_key(block.id)
        if key in self.state.cache.prepared_audio:
            return True

        lines = [SpeechLine(s.speaker, s.text, s.mood, s.voice_override) for s in block.scripts]
        try:
            result = await self.synthesizer.synthesize_batch(lines)
        except Exception as e:
            print(f"⚠️ [Talk] Batched synthesis failed for {block.id}: {e}")
            return False

        if not result.success or not result.audio_data:
            print(f"⚠️ [Talk] Batched synthesis failed for {block.id}: {result.error}, falling back to single lines")
            return False
        if self.state.is_current(session_id):
            self.state.cache.prepared_audio[key] = result.audio_data
        return True

    async def _prepare_single(self, block: TalkBlock, session_id: int) -> None:
        await asyncio.gather(*(self._synthesize_line(block, line, session_id) for line in block.scripts))

    async def _synthesize_line(self, block: TalkBlock, line: ScriptLine, session_id: int) -> Optional[bytes]:
        key = talk_line_key(block.id, line)
        cached = self.state.cache.prepared_audio.get(key)
        if cached is not None:
            return cached

        try:
            result = await self.synthesizer.synthesize(
                line.text,
                line.speaker,
                mood=line.mood,
                style_hint=line.style_hint,
                voice_override=line.voice_override
            )
        except Exception as e:
            print(f"⚠️ [Talk] Synthesis failed: {e}")
            return None

        if not result.success or not result.audio_data:
            print(f"⚠️ [Talk] Synthesis failed for {line.speaker}: {result.error}")
            return None
        if self.state.is_current(session_id):
            self.state.cache.prepared_audio[key] = result.audio_data
        return result.audio_data

    # ================== Playback ==================

    async def execute(self, block: TalkBlock, session_id: int) -> None:
        await self._apply_background(block.background_music)
        try:
            batch = self.state.cache.prepared_audio.get(talk_batch_key(block.id))
            if batch is not None:
                print(f"🎙️ [Talk] Playing batched audio for {len(block.scripts)} lines")
                self.state.emit(
                    "on_batch_script",
                    [{"speaker": s.speaker, "text": s.text} for s in block.scripts],
                    block.id
                )
                if not await self.audio.play_voice(batch):
                    print(f"⚠️ [Talk] Batched playback did not complete for {block.id}")
            else:
                await self._execute_lines(block, session_id)
        finally:
            if self.state.is_current(session_id):
                await self._restore_background(block.background_music)

    async def _execute_lines(self, block: TalkBlock, session_id: int) -> None:
        """Play line by line, synthesizing line i+1 while line i plays"""
        lines = block.scripts
        pending: Dict[int, asyncio.Task] = {}

        def lookahead(index: int) -> None:
            if index >= len(lines) or index in pending:
                return
            if talk_line_key(block.id, lines[index]) in self.state.cache.prepared_audio:
                return
            pending[index] = asyncio.ensure_future(self._synthesize_line(block, lines[index], session_id))

        lookahead(0)
        try:
            for i, line in enumerate(lines):
                await wait_while_paused(self.state, session_id, self.config.pause_poll_interval)
                if not should_continue(self.state, session_id):
                    break

                lookahead(i + 1)
                self.state.emit("on_script", line.speaker, line.text, block.id)

                task = pending.pop(i, None)
                audio = await task if task else self.state.cache.prepared_audio.get(talk_line_key(block.id, line))
                if audio is None:
                    print(f"🔁 [Talk] Line {i} not prepared, synthesizing live")
                    audio = await self._synthesize_line(block, line, session_id)

                if not should_continue(self.state, session_id):
                    break
                if audio is None:
                    print(f"⚠️ [Talk] Skipping line {i} of {block.id}: no audio")
                elif not await self.audio.play_voice(audio):
                    print(f"⚠️ [Talk] Line {i} playback did not complete")

                if line.pause_ms:
                    await interruptible_sleep(self.state, session_id, line.pause_ms / 1000,
                                              self.config.pause_poll_interval)
        finally:
            for task in pending.values():
                task.cancel()

    async def _apply_background(self, background: Optional[BackgroundMusic]) -> None:
        if background is None:
            return
        if background.action == "fade":
            volume = background.volume if background.volume is not None else self.config.music_fade_low
            await self.audio.fade_music(volume, self.config.fade_duration_normal_ms)
        elif background.action == "pause":
            self.audio.pause_music()
        elif background.action == "continue" and background.volume is not None:
            self.audio.set_music_volume(background.volume)

    async def _restore_background(self, background: Optional[BackgroundMusic]) -> None:
        if background is None:
            return
        if background.action == "fade":
            await self.audio.fade_music(self.config.music_default_volume, self.config.fade_duration_normal_ms)
        elif background.action == "pause":
            self.audio.resume_music()
