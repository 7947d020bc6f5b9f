from typing import Callable, Optional

from src.layer_1_audio_interface.audio_output import BaseAudioOutput

from .director_state import DirectorState, PlaybackInfo


class PlaybackController:
    """
    Imperative playback controls over the shared director state.
    The execution engine observes the flags set here at its next poll point.
    """

    def __init__(self, state: DirectorState, audio_output: BaseAudioOutput,
                 on_change: Optional[Callable[[], None]] = None):
        self.state = state
        self.audio = audio_output
        self.on_change = on_change

    def _changed(self) -> None:
        if self.on_change:
            self.on_change()

    def pause(self) -> bool:
        context = self.state.context
        if context is None or context.is_paused:
            return False
        context.is_paused = True
        self.audio.pause_all()
        print("⏸️ [Controller] Show paused")
        self._changed()
        return True

    def resume(self) -> bool:
        context = self.state.context
        if context is None or not context.is_paused:
            return False
        context.is_paused = False
        self.audio.resume_all()
        print("▶️ [Controller] Show resumed")
        self._changed()
        return True

    def skip_next(self) -> bool:
        if self.state.context is None:
            return False
        return self._request_skip(self.state.context.cursor + 1)

    def skip_previous(self) -> bool:
        if self.state.context is None:
            return False
        return self._request_skip(self.state.context.cursor - 1)

    def skip_to_index(self, index: int) -> bool:
        """Jump to `index`, clearing pause so the jump is audible. Out of range is a no-op."""
        return self._request_skip(index, unpause=True)

    def _request_skip(self, index: int, unpause: bool = False) -> bool:
        context = self.state.context
        if context is None:
            print("⚠️ [Controller] Skip ignored: no active show")
            return False
        if not 0 <= index < context.total:
            return False

        print(f"⏭️ [Controller] Skip requested to block {index} (current: {context.cursor})")
        self.state.request_skip(index)
        if unpause and context.is_paused:
            context.is_paused = False
            self.audio.resume_all()
            print("▶️ [Controller] Resuming from pause for skip")
        self.audio.stop_all()
        self._changed()
        return True

    def playback_info(self) -> Optional[PlaybackInfo]:
        context = self.state.context
        if context is None:
            return None
        return PlaybackInfo(current=context.cursor, total=context.total)
