"""
Two-channel mixer for continuous radio output.
A single sounddevice stream mixes a music channel and a voice channel so
music can keep playing underneath speech without gaps between blocks.
"""

import asyncio
import io
import threading
from typing import Optional, Union

import numpy as np
import requests
import sounddevice as sd
import soundfile as sf
from scipy.signal import resample

from .audio_output import BaseAudioOutput, PlaybackResult


class _Channel:
    """Mono float32 samples with a read cursor"""

    def __init__(self, samples: np.ndarray, loop: bool = False):
        self.samples = samples
        self.position = 0
        self.loop = loop
        self.paused = False

    @property
    def finished(self) -> bool:
        return not self.loop and self.position >= len(self.samples)

    def read(self, frames: int) -> np.ndarray:
        out = np.zeros(frames, dtype=np.float32)
        if self.paused or len(self.samples) == 0:
            return out

        written = 0
        while written < frames:
            if self.position >= len(self.samples):
                if not self.loop:
                    break
                self.position = 0
            take = min(frames - written, len(self.samples) - self.position)
            out[written:written + take] = self.samples[self.position:self.position + take]
            self.position += take
            written += take
        return out


class SoundDeviceMixer(BaseAudioOutput):
    """
    Audio output backed by one sounddevice OutputStream.
    Byte payloads are decoded with soundfile and resampled to the stream rate.
    """

    def __init__(
        self,
        sample_rate: int = 48000,
        device: Optional[int] = None,
        channels: int = 2,
        blocksize: int = 1024,
        music_volume: float = 0.9,
        voice_volume: float = 1.0,
        duck_volume: float = 0.15,
        request_timeout: float = 60.0
    ):
        self.sample_rate = sample_rate
        self.device = device
        self.channels = channels
        self.blocksize = blocksize
        self.voice_volume = voice_volume
        self.duck_volume = duck_volume
        self.request_timeout = request_timeout

        self._music: Optional[_Channel] = None
        self._voice: Optional[_Channel] = None
        self._music_volume = music_volume

        # Thread synchronization with the audio callback
        self._lock = threading.RLock()
        self._stream = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._voice_done: Optional[asyncio.Future] = None
        self._fade_generation = 0
        self._fade_task: Optional[asyncio.Task] = None

    # ================== Stream ==================

    def _ensure_stream(self) -> None:
        if self._stream is not None:
            return
        self._stream = sd.OutputStream(
            device=self.device,
            samplerate=self.sample_rate,
            channels=self.channels,
            dtype='float32',
            blocksize=self.blocksize,
            callback=self._audio_callback
        )
        self._stream.start()
        print(f"🎵 [Mixer] Started output stream ({self.sample_rate} Hz, blocksize {self.blocksize})")

    def _audio_callback(self, outdata, frames, time, status):
        if status:
            print(f"⚠️ [Mixer] Audio callback status: {status}")

        mix = np.zeros(frames, dtype=np.float32)
        finished_future = None
        with self._lock:
            if self._music is not None:
                mix += self._music.read(frames) * self._music_volume
                if self._music.finished:
                    self._music = None
            if self._voice is not None:
                mix += self._voice.read(frames) * self.voice_volume
                if self._voice.finished:
                    self._voice = None
                    finished_future, self._voice_done = self._voice_done, None

        np.clip(mix, -1.0, 1.0, out=mix)
        for i in range(self.channels):
            outdata[:, i] = mix

        if finished_future is not None:
            self._signal_voice_done(finished_future, True)

    def _signal_voice_done(self, future: Optional[asyncio.Future], completed: bool) -> None:
        """Resolve a voice future taken from `_voice_done` under the lock"""
        loop = self._loop
        if future is None or loop is None:
            return

        def _resolve():
            if not future.done():
                future.set_result(completed)

        loop.call_soon_threadsafe(_resolve)

    # ================== Decoding ==================

    def _fetch(self, url: str) -> bytes:
        r = requests.get(url, timeout=self.request_timeout)
        r.raise_for_status()
        return r.content

    def _decode(self, data: bytes) -> np.ndarray:
        audio, rate = sf.read(io.BytesIO(data), dtype='float32', always_2d=True)
        mono = audio.mean(axis=1).astype(np.float32)
        if rate != self.sample_rate and len(mono) > 0:
            target_len = int(len(mono) * self.sample_rate / rate)
            mono = resample(mono, target_len).astype(np.float32)
        return mono

    async def _load(self, source: Union[bytes, str]) -> np.ndarray:
        loop = asyncio.get_running_loop()
        self._loop = loop
        data = source
        if isinstance(source, str):
            data = await loop.run_in_executor(None, self._fetch, source)
        return await loop.run_in_executor(None, self._decode, data)

    # ================== Music channel ==================

    async def play_music(self, source: Union[bytes, str], fade_in_ms: int = 0, loop: bool = False) -> PlaybackResult:
        try:
            samples = await self._load(source)
        except Exception as e:
            print(f"⚠️ [Mixer] Could not load music: {e}")
            return PlaybackResult(success=False, error=str(e))

        target_volume = self._music_volume
        with self._lock:
            self._music = _Channel(samples, loop=loop)
            if fade_in_ms:
                self._music_volume = 0.0

        try:
            self._ensure_stream()
        except Exception as e:
            print(f"⚠️ [Mixer] Error starting playback stream: {e}")
            return PlaybackResult(success=False, error=str(e))

        if fade_in_ms:
            self._fade_task = asyncio.ensure_future(self.fade_music(target_volume, fade_in_ms))
        return PlaybackResult(success=True)

    async def fade_music(self, target_volume: float, duration_ms: int) -> None:
        self._fade_generation += 1
        generation = self._fade_generation
        steps = max(1, int(duration_ms) // 50)
        start = self._music_volume
        for i in range(1, steps + 1):
            if generation != self._fade_generation:
                return
            with self._lock:
                self._music_volume = start + (target_volume - start) * i / steps
            await asyncio.sleep(duration_ms / 1000 / steps)

    def set_music_volume(self, volume: float) -> None:
        self._fade_generation += 1
        with self._lock:
            self._music_volume = max(0.0, min(1.0, volume))

    def pause_music(self) -> None:
        with self._lock:
            if self._music:
                self._music.paused = True

    def resume_music(self) -> None:
        with self._lock:
            if self._music:
                self._music.paused = False

    def stop_music(self) -> None:
        with self._lock:
            self._music = None

    # ================== Voice channel ==================

    async def play_voice(self, audio: bytes) -> bool:
        try:
            samples = await self._load(audio)
        except Exception as e:
            print(f"⚠️ [Mixer] Could not decode voice audio: {e}")
            return False

        future = asyncio.get_running_loop().create_future()
        with self._lock:
            self._voice = _Channel(samples)
            replaced, self._voice_done = self._voice_done, future
        # A new line replaces whatever voice is still playing
        self._signal_voice_done(replaced, False)

        try:
            self._ensure_stream()
        except Exception as e:
            print(f"⚠️ [Mixer] Error starting playback stream: {e}")
            return False
        return await future

    async def overlay_voice(self, audio: bytes) -> bool:
        previous = self._music_volume
        await self.fade_music(self.duck_volume, 300)
        completed = await self.play_voice(audio)
        await self.fade_music(previous, 500)
        return completed

    # ================== Global controls ==================

    def pause_all(self) -> None:
        with self._lock:
            for channel in (self._music, self._voice):
                if channel:
                    channel.paused = True

    def resume_all(self) -> None:
        with self._lock:
            for channel in (self._music, self._voice):
                if channel:
                    channel.paused = False

    def stop_all(self) -> None:
        self._fade_generation += 1
        with self._lock:
            self._music = None
            self._voice = None
            stopped, self._voice_done = self._voice_done, None
        self._signal_voice_done(stopped, False)

    def close(self) -> None:
        self.stop_all()
        if self._stream is not None:
            try:
                self._stream.stop()
                self._stream.close()
                print("🎵 [Mixer] Stopped output stream")
            except Exception as e:
                print(f"⚠️ [Mixer] Error stopping playback stream: {e}")
        self._stream = None
