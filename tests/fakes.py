"""In-memory collaborators for director tests."""

import asyncio
import threading
import time
from typing import Dict, List, Optional, Sequence, Union

from src.layer_1_audio_interface.audio_output import BaseAudioOutput, PlaybackResult
from src.layer_1_audio_interface.speech_synthesis import BaseSpeechSynthesizer
from src.layer_2_content_generation.content_generator import BaseContentGenerator
from src.layer_2_content_generation.media_provider import BaseMediaProvider, Track
from src.layer_2_content_generation.timeline import (
    MusicBlock,
    ScriptLine,
    SilenceBlock,
    TalkBlock,
    Timeline,
)
from src.layer_3_director.events import EventSink
from src.utils.config import DirectorConfig
from src.utils.errors import MediaDownloadError

FAST_TIMINGS = dict(
    first_block_timeout=1.0,
    first_block_poll_interval=0.01,
    block_ready_timeout=0.3,
    block_ready_poll_interval=0.01,
    pause_poll_interval=0.01,
    preload_interval=0.05,
    error_backoff=0.2,
    promote_settle_delay=0.0,
    post_transition_delay=0.0,
    warmup_settle_delay=0.0,
    halfway_delay_min=0.05,
    seconds_per_block_estimate=0.01,
    music_download_retry_base=0.0,
    music_intro_delay=0.01,
    transition_min_sec=0.01,
    transition_max_sec=0.02,
    transition_failure_delay=0.01,
    tts_retry_base_delay=0.0,
)


def make_config(**overrides) -> DirectorConfig:
    values = dict(FAST_TIMINGS)
    values.update(overrides)
    return DirectorConfig.from_dict(values)


def talk(block_id: str, *lines: Union[str, ScriptLine], speakers: Sequence[str] = ("host1",)) -> TalkBlock:
    scripts = []
    for i, line in enumerate(lines):
        if isinstance(line, str):
            line = ScriptLine(speaker=speakers[i % len(speakers)], text=line)
        scripts.append(line)
    return TalkBlock(id=block_id, scripts=scripts)


def music(block_id: str, query: str, duration_sec: Optional[float] = None, **kwargs) -> MusicBlock:
    return MusicBlock(id=block_id, search_query=query, duration_sec=duration_sec, **kwargs)


def silence(block_id: str, duration_ms: int) -> SilenceBlock:
    return SilenceBlock(id=block_id, duration_ms=duration_ms)


def timeline(timeline_id: str, *blocks, estimated_duration: float = 0.0) -> Timeline:
    return Timeline(id=timeline_id, blocks=list(blocks), title=f"Show {timeline_id}",
                    estimated_duration=estimated_duration)


class FakeAudioOutput(BaseAudioOutput):
    """Records every call. Voice playback lasts `voice_duration` unless stopped."""

    def __init__(self, voice_duration: float = 0.01, fail_bytes: bool = False, fail_urls: bool = False):
        self.voice_duration = voice_duration
        self.fail_bytes = fail_bytes
        self.fail_urls = fail_urls
        self.calls: List[tuple] = []
        self.voice_played: List[bytes] = []
        self.music_played: List[Union[bytes, str]] = []
        self.music_volume = 0.9
        self._voice_stop: Optional[asyncio.Event] = None

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]

    async def play_music(self, source, fade_in_ms=0, loop=False):
        self.calls.append(("play_music", source, fade_in_ms, loop))
        if isinstance(source, bytes) and self.fail_bytes:
            return PlaybackResult(success=False, error="decode failed")
        if isinstance(source, str) and self.fail_urls:
            return PlaybackResult(success=False, error="stream failed")
        self.music_played.append(source)
        return PlaybackResult(success=True)

    async def play_voice(self, audio):
        self.calls.append(("play_voice", audio))
        self.voice_played.append(audio)
        self._voice_stop = asyncio.Event()
        try:
            await asyncio.wait_for(self._voice_stop.wait(), self.voice_duration)
            return False
        except asyncio.TimeoutError:
            return True

    async def overlay_voice(self, audio):
        self.calls.append(("overlay_voice", audio))
        return await self.play_voice(audio)

    async def fade_music(self, target_volume, duration_ms):
        self.calls.append(("fade_music", target_volume, duration_ms))
        self.music_volume = target_volume

    def set_music_volume(self, volume):
        self.calls.append(("set_music_volume", volume))
        self.music_volume = volume

    def pause_music(self):
        self.calls.append(("pause_music",))

    def resume_music(self):
        self.calls.append(("resume_music",))

    def stop_music(self):
        self.calls.append(("stop_music",))

    def pause_all(self):
        self.calls.append(("pause_all",))

    def resume_all(self):
        self.calls.append(("resume_all",))

    def stop_all(self):
        self.calls.append(("stop_all",))
        if self._voice_stop is not None:
            self._voice_stop.set()


class FakeSynthesizer(BaseSpeechSynthesizer):
    """Returns b"voice:<text>" after `delay` seconds; texts in `fail_texts` always fail."""

    def __init__(self, supports_batch: bool = False, fail_batch: bool = False,
                 fail_texts: Sequence[str] = (), delay: float = 0.0, **kwargs):
        kwargs.setdefault("retry_count", 1)
        kwargs.setdefault("retry_base_delay", 0.0)
        super().__init__(**kwargs)
        self.supports_batch = supports_batch
        self.fail_batch = fail_batch
        self.fail_texts = set(fail_texts)
        self.delay = delay
        self.requests: List[str] = []
        self.batch_requests: List[list] = []
        self._lock = threading.Lock()

    def _synthesize_core(self, text, voice_name, style_prompt):
        with self._lock:
            self.requests.append(text)
        if self.delay:
            time.sleep(self.delay)
        if text in self.fail_texts:
            raise RuntimeError(f"cannot say {text!r}")
        return f"voice:{text}".encode()

    def _synthesize_batch_core(self, lines):
        with self._lock:
            self.batch_requests.append(list(lines))
        if self.fail_batch:
            raise RuntimeError("batch unavailable")
        return b"batch:" + b"|".join(line.text.encode() for line in lines)


class FakeMediaProvider(BaseMediaProvider):
    """Every query resolves to one track. Download failures are counted down per call."""

    def __init__(self, missing: Sequence[str] = (), download_failures: int = 0, lyrics: Optional[str] = None):
        self.missing = set(missing)
        self.download_failures = download_failures
        self.lyric_text = lyrics
        self.searches: List[str] = []
        self.resolved: List[str] = []
        self.downloads: List[str] = []
        self._url_counter = 0
        self._lock = threading.Lock()

    def _search(self, query, count):
        with self._lock:
            self.searches.append(query)
        if query in self.missing:
            return []
        return [Track(id=f"id-{query}", name=f"Song {query}", artist=["Artist"], lyric_id=f"lyric-{query}")]

    def _resolve_url(self, track_id, bitrate, source):
        with self._lock:
            self._url_counter += 1
            url = f"http://media.test/{track_id}/{self._url_counter}.mp3"
            self.resolved.append(url)
        return url

    def _lyrics(self, lyric_id, source):
        return self.lyric_text

    def _download(self, url):
        with self._lock:
            self.downloads.append(url)
            if self.download_failures > 0:
                self.download_failures -= 1
                raise MediaDownloadError("connection reset")
        return f"mp3:{url}".encode()


class FakeContentGenerator(BaseContentGenerator):
    """Replays scripted outcomes: a Timeline is returned, an exception raised."""

    def __init__(self, outcomes: Sequence[Union[Timeline, Exception]], delay: float = 0.0):
        super().__init__(max_parse_retries=1)
        self.outcomes = list(outcomes)
        self.delay = delay
        self.calls: List[Dict] = []

    def _request_completion(self, system_prompt, user_prompt):
        raise NotImplementedError

    async def generate(self, duration_sec, theme=None, user_request=None, recent_songs=None):
        self.calls.append({
            "duration_sec": duration_sec,
            "theme": theme,
            "user_request": user_request,
            "recent_songs": list(recent_songs or []),
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        index = min(len(self.calls), len(self.outcomes)) - 1
        outcome = self.outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class EventRecorder:
    """Collects (event name, *args) tuples from an EventSink"""

    def __init__(self):
        self.events: List[tuple] = []

    def sink(self) -> EventSink:
        def record(name):
            return lambda *args: self.events.append((name,) + args)
        return EventSink(
            on_state_change=record("state_change"),
            on_block_start=record("block_start"),
            on_block_end=record("block_end"),
            on_error=record("error"),
            on_timeline_ready=record("timeline_ready"),
            on_script=record("script"),
            on_batch_script=record("batch_script"),
            on_show_completed=record("show_completed"),
        )

    def named(self, *names) -> List[tuple]:
        return [e for e in self.events if e[0] in names]

    def block_events(self) -> List[tuple]:
        """block_start/block_end as (name, block id)"""
        return [(e[0], e[1].id) for e in self.named("block_start", "block_end")]
