from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass
class EventSink:
    """
    Optional observer callbacks for a running show.
    Delivery is best effort: a failing callback is printed and ignored.

    Callbacks:
        on_state_change(player_state)
        on_block_start(block, index)
        on_block_end(block)
        on_error(error, block=None)
        on_timeline_ready(timeline)
        on_script(speaker, text, block_id)
        on_batch_script(lines, block_id)
        on_show_completed(timeline)
    """
    on_state_change: Optional[Callable[..., Any]] = None
    on_block_start: Optional[Callable[..., Any]] = None
    on_block_end: Optional[Callable[..., Any]] = None
    on_error: Optional[Callable[..., Any]] = None
    on_timeline_ready: Optional[Callable[..., Any]] = None
    on_script: Optional[Callable[..., Any]] = None
    on_batch_script: Optional[Callable[..., Any]] = None
    on_show_completed: Optional[Callable[..., Any]] = None

    def emit(self, name: str, *args) -> None:
        callback = getattr(self, name, None)
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            print(f"⚠️ [Events] {name} callback failed: {e}")
