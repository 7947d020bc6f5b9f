"""
Shared director state.

One DirectorState is owned by a ShowScheduler and handed to the controller,
preload manager and executors. All cache access goes through MediaCache so
readiness and pruning rules live in one place.
"""

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, Iterable, List, Optional, Set

from src.layer_2_content_generation.media_provider import Track
from src.layer_2_content_generation.timeline import Block, MusicBlock, ScriptLine, TalkBlock, Timeline

from .events import EventSink


def talk_batch_key(block_id: str) -> str:
    return f"{block_id}-batch"


def talk_line_key(block_id: str, line: ScriptLine) -> str:
    return f"{block_id}-{line.speaker}-{line.text[:20]}"


@dataclass
class ExecutionContext:
    """The live timeline, its cursor and pause flag"""
    timeline: Timeline
    cursor: int = 0
    is_paused: bool = False
    events: EventSink = field(default_factory=EventSink)

    @property
    def total(self) -> int:
        return len(self.timeline.blocks)

    @property
    def current_block(self) -> Optional[Block]:
        if 0 <= self.cursor < self.total:
            return self.timeline.blocks[self.cursor]
        return None

    def move_cursor(self, index: int) -> None:
        if not 0 <= index <= self.total:
            raise IndexError(f"Cursor {index} out of range [0, {self.total}]")
        self.cursor = index

    def load(self, timeline: Timeline) -> None:
        self.timeline = timeline
        self.cursor = 0


@dataclass
class CachedUrl:
    url: str
    cached_at: float


@dataclass
class SongRecord:
    name: str
    artist: str
    lyrics: str = ""


class MediaCache:
    """
    Session-scoped caches keyed by block id (talk audio) or search query (music).
    Each entry is written once by the task that produced it.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self.prepared_audio: Dict[str, bytes] = {}
        self.tracks: Dict[str, Track] = {}
        self.urls: Dict[str, CachedUrl] = {}
        self.music_data: Dict[str, bytes] = {}
        self.in_progress: Set[str] = set()

    def is_block_ready(self, block: Block) -> bool:
        if isinstance(block, TalkBlock):
            if talk_batch_key(block.id) in self.prepared_audio:
                return True
            return all(talk_line_key(block.id, line) in self.prepared_audio for line in block.scripts)
        if isinstance(block, MusicBlock):
            return block.search_query in self.music_data
        return True

    def store_url(self, query: str, url: str) -> None:
        self.urls[query] = CachedUrl(url=url, cached_at=self.clock())

    def url_age(self, query: str) -> Optional[float]:
        cached = self.urls.get(query)
        if cached is None:
            return None
        return self.clock() - cached.cached_at

    def clear_talk_audio(self) -> None:
        self.prepared_audio.clear()

    def clear(self) -> None:
        self.prepared_audio.clear()
        self.tracks.clear()
        self.urls.clear()
        self.music_data.clear()
        self.in_progress.clear()

    def prune(self, timelines: Iterable[Optional[Timeline]]) -> int:
        """
        Drop every entry not referenced by the given timelines.

        Music entries are kept only for referenced search queries, talk audio
        only for keys of referenced talk blocks.

        Returns:
            Number of entries removed
        """
        queries: Set[str] = set()
        talk_keys: Set[str] = set()
        block_ids: Set[str] = set()
        for timeline in timelines:
            if timeline is None:
                continue
            for block in timeline.blocks:
                block_ids.add(block.id)
                if isinstance(block, MusicBlock):
                    queries.add(block.search_query)
                elif isinstance(block, TalkBlock):
                    talk_keys.add(talk_batch_key(block.id))
                    talk_keys.update(talk_line_key(block.id, line) for line in block.scripts)

        removed = 0
        for cache, keep in ((self.tracks, queries), (self.urls, queries),
                            (self.music_data, queries), (self.prepared_audio, talk_keys)):
            for key in [k for k in cache if k not in keep]:
                del cache[key]
                removed += 1

        self.in_progress.intersection_update(block_ids)
        return removed


@dataclass
class MusicState:
    is_playing: bool = False
    current_track: Optional[str] = None
    volume: float = 1.0


@dataclass
class VoiceState:
    is_playing: bool = False
    current_script_id: Optional[str] = None


@dataclass
class QueueState:
    pending: int = 0
    ready: int = 0
    generating: int = 0


@dataclass
class PlayerState:
    is_playing: bool = False
    current_block_id: Optional[str] = None
    music: MusicState = field(default_factory=MusicState)
    voice: VoiceState = field(default_factory=VoiceState)
    queue: QueueState = field(default_factory=QueueState)


@dataclass
class PlaybackInfo:
    current: int
    total: int


class DirectorState:
    """Flags, session id, double-buffer slot and caches for one scheduler"""

    def __init__(self, clock: Callable[[], float] = time.time, recent_song_limit: int = 20):
        self.context: Optional[ExecutionContext] = None
        self.is_running = False
        self.session_id = 0

        self.skip_requested = False
        self.target_block_index = -1

        # Double buffer
        self.next_timeline: Optional[Timeline] = None
        self.next_timeline_ready = False
        self.is_preparing_next = False

        self.cache = MediaCache(clock)
        self.recent_songs: Deque[SongRecord] = deque(maxlen=recent_song_limit)

    def begin_session(self) -> int:
        self.session_id += 1
        return self.session_id

    def is_current(self, session_id: int) -> bool:
        return self.is_running and session_id == self.session_id

    @property
    def is_paused(self) -> bool:
        return self.context is not None and self.context.is_paused

    def request_skip(self, index: int) -> None:
        self.skip_requested = True
        self.target_block_index = index

    def clear_skip(self) -> None:
        self.skip_requested = False
        self.target_block_index = -1

    def clear_next_timeline(self) -> None:
        self.next_timeline = None
        self.next_timeline_ready = False

    def reset(self) -> None:
        """Drop everything derived from the last session"""
        self.context = None
        self.clear_skip()
        self.clear_next_timeline()
        self.is_preparing_next = False
        self.cache.clear()
        self.recent_songs.clear()

    def emit(self, name: str, *args) -> None:
        if self.context is not None:
            self.context.events.emit(name, *args)

    def count_prepared_blocks(self, start: int, end: int) -> int:
        if self.context is None:
            return 0
        blocks = self.context.timeline.blocks[max(0, start):max(0, end)]
        return sum(1 for block in blocks if self.cache.is_block_ready(block))

    def player_state(self) -> PlayerState:
        if self.context is None:
            return PlayerState()

        context = self.context
        block = context.current_block
        prepared = self.count_prepared_blocks(context.cursor, context.total)
        is_music = isinstance(block, MusicBlock)
        return PlayerState(
            is_playing=self.is_running and not context.is_paused,
            current_block_id=block.id if block else None,
            music=MusicState(is_playing=is_music, current_track=block.search_query if is_music else None),
            voice=VoiceState(
                is_playing=isinstance(block, TalkBlock),
                current_script_id=block.id if block else None
            ),
            queue=QueueState(
                pending=context.total - context.cursor - prepared,
                ready=prepared,
                generating=len(self.cache.in_progress)
            )
        )

    def notify_state_change(self) -> None:
        self.emit("on_state_change", self.player_state())

    def recent_song_names(self) -> List[str]:
        return [f"{song.name} - {song.artist}" for song in self.recent_songs]
