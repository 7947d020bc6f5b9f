from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Union


@dataclass
class PlaybackResult:
    success: bool
    error: Optional[str] = None


class BaseAudioOutput(ABC):
    """
    Two logical channels: "music" (loopable, fadeable, volume-settable) and
    "voice" (overlay that can duck music). Playback calls report failure
    through their return value instead of raising.
    """

    @abstractmethod
    async def play_music(self, source: Union[bytes, str], fade_in_ms: int = 0, loop: bool = False) -> PlaybackResult:
        """Start music from raw bytes or a URL. Returns once playback has started."""
        pass

    @abstractmethod
    async def play_voice(self, audio: bytes) -> bool:
        """Play speech and wait for it to finish. False if it failed or was stopped."""
        pass

    @abstractmethod
    async def overlay_voice(self, audio: bytes) -> bool:
        """Play speech over music, ducking the music while it plays"""
        pass

    @abstractmethod
    async def fade_music(self, target_volume: float, duration_ms: int) -> None:
        pass

    @abstractmethod
    def set_music_volume(self, volume: float) -> None:
        pass

    @abstractmethod
    def pause_music(self) -> None:
        pass

    @abstractmethod
    def resume_music(self) -> None:
        pass

    @abstractmethod
    def stop_music(self) -> None:
        pass

    @abstractmethod
    def pause_all(self) -> None:
        pass

    @abstractmethod
    def resume_all(self) -> None:
        pass

    @abstractmethod
    def stop_all(self) -> None:
        pass

    def close(self) -> None:
        """Release output resources"""
        pass
