"""
Timeline data model.
A timeline is one episode's content plan: an ordered list of talk, music,
music-control and silence blocks produced by a content generator.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from src.utils.errors import TimelineParseError


class MusicAction(Enum):
    PAUSE = "pause"
    RESUME = "resume"
    FADE_IN = "fade_in"
    FADE_OUT = "fade_out"
    STOP = "stop"


def _pick(data: Dict[str, Any], *keys: str, default=None):
    """Return the first present key; generators mix camelCase and snake_case."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _number(value: Any, cast, name: str):
    """Coerce an optional numeric field, None stays None"""
    if value is None:
        return None
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise TimelineParseError(f"Invalid {name}: {value!r}")


@dataclass(frozen=True)
class ScriptLine:
    """A single spoken line inside a talk block"""
    speaker: str
    text: str
    mood: Optional[str] = None
    voice_override: Optional[str] = None
    style_hint: Optional[str] = None
    pause_ms: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"speaker": self.speaker, "text": self.text}
        if self.mood:
            data["mood"] = self.mood
        if self.voice_override:
            data["voiceName"] = self.voice_override
        if self.style_hint:
            data["voiceStyle"] = self.style_hint
        if self.pause_ms:
            data["pause"] = self.pause_ms
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScriptLine':
        if not isinstance(data, dict):
            raise TimelineParseError(f"Script line must be an object, got {data!r}")
        pause = _pick(data, "pause", "pause_ms", "pauseMs")
        return cls(
            speaker=str(data.get("speaker", "host1")),
            text=str(data.get("text", "")),
            mood=data.get("mood"),
            voice_override=_pick(data, "voiceName", "voice_override", "voiceOverride"),
            style_hint=_pick(data, "voiceStyle", "style_hint", "styleHint"),
            pause_ms=_number(pause, int, "pause"),
        )


@dataclass(frozen=True)
class BackgroundMusic:
    """Ducking directive applied to background music around a talk block"""
    action: str  # "continue", "fade", "pause"
    volume: Optional[float] = None


@dataclass(frozen=True)
class TalkBlock:
    id: str
    scripts: List[ScriptLine]
    background_music: Optional[BackgroundMusic] = None
    type: str = field(default="talk", init=False)

    def to_dict(self) -> Dict[str, Any]:
        data = {"type": self.type, "id": self.id, "scripts": [s.to_dict() for s in self.scripts]}
        if self.background_music:
            bg = {"action": self.background_music.action}
            if self.background_music.volume is not None:
                bg["volume"] = self.background_music.volume
            data["backgroundMusic"] = bg
        return data


@dataclass(frozen=True)
class MusicBlock:
    id: str
    search_query: str
    duration_sec: Optional[float] = None
    fade_in_ms: Optional[int] = None
    intro: Optional[ScriptLine] = None
    type: str = field(default="music", init=False)

    def to_dict(self) -> Dict[str, Any]:
        data = {"type": self.type, "id": self.id, "action": "play", "search": self.search_query}
        if self.duration_sec is not None:
            data["duration"] = self.duration_sec
        if self.fade_in_ms is not None:
            data["fadeIn"] = self.fade_in_ms
        if self.intro:
            data["intro"] = self.intro.to_dict()
        return data


@dataclass(frozen=True)
class MusicControlBlock:
    id: str
    action: MusicAction
    target_volume: Optional[float] = None
    fade_duration_ms: Optional[int] = None
    type: str = field(default="music_control", init=False)

    def to_dict(self) -> Dict[str, Any]:
        data = {"type": self.type, "id": self.id, "action": self.action.value}
        if self.target_volume is not None:
            data["targetVolume"] = self.target_volume
        if self.fade_duration_ms is not None:
            data["fadeDuration"] = self.fade_duration_ms
        return data


@dataclass(frozen=True)
class SilenceBlock:
    id: str
    duration_ms: int
    type: str = field(default="silence", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "id": self.id, "duration": self.duration_ms}


Block = Union[TalkBlock, MusicBlock, MusicControlBlock, SilenceBlock]


def block_from_dict(data: Dict[str, Any], block_id: str) -> Block:
    """Build a block from generator JSON, using `block_id` when the block carries none"""
    if not isinstance(data, dict):
        raise TimelineParseError(f"Block must be an object, got {data!r}")
    block_type = data.get("type")
    block_id = str(data.get("id") or block_id)

    if block_type == "talk":
        raw_scripts = data.get("scripts") or []
        if not isinstance(raw_scripts, list):
            raise TimelineParseError(f"Talk block {block_id} scripts must be a list")
        scripts = [ScriptLine.from_dict(s) for s in raw_scripts]
        scripts = [s for s in scripts if s.text.strip()]
        if not scripts:
            raise TimelineParseError(f"Talk block {block_id} has no script lines")
        bg = _pick(data, "backgroundMusic", "background_music")
        if bg is not None and not isinstance(bg, dict):
            raise TimelineParseError(f"Talk block {block_id} has invalid backgroundMusic: {bg!r}")
        background = None
        if bg:
            background = BackgroundMusic(action=bg.get("action", "continue"),
                                         volume=_number(bg.get("volume"), float, "volume"))
        return TalkBlock(id=block_id, scripts=scripts, background_music=background)

    if block_type == "music":
        query = _pick(data, "search", "search_query", "searchQuery")
        if not query:
            raise TimelineParseError(f"Music block {block_id} has no search query")
        duration = _pick(data, "duration", "duration_sec", "durationSec")
        fade_in = _pick(data, "fadeIn", "fade_in_ms", "fadeInMs")
        intro = data.get("intro")
        return MusicBlock(
            id=block_id,
            search_query=str(query),
            duration_sec=_number(duration, float, "duration"),
            fade_in_ms=_number(fade_in, int, "fadeIn"),
            intro=ScriptLine.from_dict(intro) if isinstance(intro, dict) and intro.get("text") else None,
        )

    if block_type == "music_control":
        try:
            action = MusicAction(data.get("action"))
        except ValueError:
            raise TimelineParseError(f"Unknown music control action: {data.get('action')}")
        fade = _pick(data, "fadeDuration", "fade_duration_ms", "fadeDurationMs")
        return MusicControlBlock(
            id=block_id,
            action=action,
            target_volume=_number(_pick(data, "targetVolume", "target_volume"), float, "targetVolume"),
            fade_duration_ms=_number(fade, int, "fadeDuration"),
        )

    if block_type == "silence":
        duration = _pick(data, "duration", "duration_ms", "durationMs", default=0)
        return SilenceBlock(id=block_id, duration_ms=_number(duration, int, "duration"))

    raise TimelineParseError(f"Unknown block type: {block_type}")


@dataclass
class Timeline:
    id: str
    blocks: List[Block]
    title: str = "Untitled"
    estimated_duration: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.blocks)

    def music_queries(self) -> List[str]:
        return [b.search_query for b in self.blocks if isinstance(b, MusicBlock)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "estimatedDuration": self.estimated_duration,
            "blocks": [b.to_dict() for b in self.blocks],
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Timeline':
        """Validate and normalize a parsed timeline. Missing ids are generated."""
        if not isinstance(data, dict):
            raise TimelineParseError("Invalid timeline structure: expected an object")

        raw_blocks = data.get("blocks")
        if not isinstance(raw_blocks, list):
            raise TimelineParseError("Invalid timeline structure: missing blocks array")
        if not raw_blocks:
            raise TimelineParseError("Invalid timeline: blocks array is empty")

        timeline_id = str(data.get("id") or f"timeline-{int(time.time() * 1000)}")
        blocks = [block_from_dict(b, f"{timeline_id}-block-{i}") for i, b in enumerate(raw_blocks)]

        duration = _pick(data, "estimatedDuration", "estimated_duration", default=0)
        return cls(
            id=timeline_id,
            blocks=blocks,
            title=str(data.get("title") or "Untitled"),
            estimated_duration=_number(duration, float, "estimatedDuration"),
            metadata=dict(data.get("metadata") or {}),
        )
