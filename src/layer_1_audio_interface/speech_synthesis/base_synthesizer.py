from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional
import asyncio

from .abort_manager import SynthesisAbortManager
from .voice_profiles import build_style_prompt, get_profile


@dataclass
class SynthesisResult:
    success: bool
    audio_data: Optional[bytes] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class SpeechLine:
    """One line of a multi-line batch request"""
    speaker: str
    text: str
    mood: Optional[str] = None
    voice_override: Optional[str] = None


class BaseSpeechSynthesizer(ABC):
    """
    Abstract base class for speech synthesis providers.
    Provides bounded concurrency, retries with exponential backoff and
    cooperative abort. Subclasses only implement the blocking provider call.
    """

    supports_batch = False

    def __init__(self, max_concurrent: int = 3, retry_count: int = 3, retry_base_delay: float = 1.0):
        self.retry_count = max(1, retry_count)
        self.retry_base_delay = retry_base_delay
        self.executor = ThreadPoolExecutor(max_workers=max_concurrent)
        self.abort_manager = SynthesisAbortManager()

    @abstractmethod
    def _synthesize_core(self, text: str, voice_name: str, style_prompt: str) -> bytes:
        """
        Core provider call that subclasses must implement.

        Args:
            text: Text to speak
            voice_name: Provider voice identifier
            style_prompt: Delivery instructions (ignored by providers without style control)

        Returns:
            Encoded audio bytes (WAV/MP3)
        """
        pass

    def _synthesize_batch_core(self, lines: List[SpeechLine]) -> bytes:
        raise NotImplementedError(f"{type(self).__name__} does not support batched synthesis")

    def resolve_voice(self, speaker: str, voice_override: Optional[str] = None) -> str:
        return voice_override or get_profile(speaker).gemini_voice

    async def synthesize(
        self,
        text: str,
        speaker: str,
        mood: Optional[str] = None,
        style_hint: Optional[str] = None,
        voice_override: Optional[str] = None
    ) -> SynthesisResult:
        if not text or not text.strip():
            return SynthesisResult(success=False, error="Empty text")

        voice = self.resolve_voice(speaker, voice_override)
        style_prompt = build_style_prompt(speaker, mood, style_hint)
        return await self._run_with_retries(self._synthesize_core, text, voice, style_prompt)

    async def synthesize_batch(self, lines: List[SpeechLine]) -> SynthesisResult:
        """Synthesize several lines as one artifact (multi-speaker single-shot providers)"""
        if not self.supports_batch:
            return SynthesisResult(success=False, error="Batch synthesis not supported")
        if not lines:
            return SynthesisResult(success=False, error="No lines")
        return await self._run_with_retries(self._synthesize_batch_core, list(lines))

    async def _run_with_retries(self, func: Callable[..., bytes], *args) -> SynthesisResult:
        generation = self.abort_manager.generation
        if self.abort_manager.is_aborted(generation):
            return SynthesisResult(success=False, error="Request aborted")

        loop = asyncio.get_running_loop()
        last_error: Optional[Exception] = None

        for attempt in range(1, self.retry_count + 1):
            try:
                audio = await loop.run_in_executor(self.executor, func, *args)
            except Exception as e:
                last_error = e
                print(f"⚠️ [TTS] Attempt {attempt}/{self.retry_count} failed: {e}")
                if attempt < self.retry_count:
                    await asyncio.sleep(self.retry_base_delay * (2 ** (attempt - 1)))
                    if self.abort_manager.is_aborted(generation):
                        return SynthesisResult(success=False, error="Request aborted")
                continue

            if self.abort_manager.is_aborted(generation):
                return SynthesisResult(success=False, error="Request aborted")
            if not audio:
                return SynthesisResult(success=False, error="Empty audio response")
            return SynthesisResult(success=True, audio_data=audio)

        return SynthesisResult(success=False, error=str(last_error))

    def abort(self) -> None:
        """Discard every in-flight request and fail new ones until reset()"""
        self.abort_manager.abort()

    def reset(self) -> None:
        self.abort_manager.reset()

    def close(self) -> None:
        try:
            self.abort_manager.abort()
            self.executor.shutdown(wait=False)
            print("✅ [TTS] Synthesizer cleanup completed")
        except Exception as e:
            print(f"⚠️ [TTS] Error in synthesizer cleanup: {e}")
