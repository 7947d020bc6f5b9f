"""
Director Layer
--------------
Show scheduling, media preloading, timeline execution and playback control.
"""

from .director_state import DirectorState, ExecutionContext, MediaCache, PlaybackInfo, PlayerState
from .events import EventSink
from .execution_engine import ExecutionEngine
from .mail_queue import ListenerMailQueue
from .playback_controller import PlaybackController
from .preload_manager import PreloadManager
from .session_store import SessionSnapshot, SessionStore
from .show_scheduler import ShowScheduler

__all__ = [
    'DirectorState',
    'ExecutionContext',
    'MediaCache',
    'PlaybackInfo',
    'PlayerState',
    'EventSink',
    'ExecutionEngine',
    'ListenerMailQueue',
    'PlaybackController',
    'PreloadManager',
    'SessionSnapshot',
    'SessionStore',
    'ShowScheduler',
]
