"""
Shared helpers: configuration loading, error types and timing.
"""

from .config import DirectorConfig
from .errors import DirectorError, MediaDownloadError, TimelineGenerationError, TimelineParseError
from .timing import sleep_while, wait_until

__all__ = [
    'DirectorConfig',
    'DirectorError',
    'MediaDownloadError',
    'TimelineGenerationError',
    'TimelineParseError',
    'sleep_while',
    'wait_until',
]
