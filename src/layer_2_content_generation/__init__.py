"""
Content Generation Layer
------------------------
Timeline data model, generator response parsing, timeline generators and
the music catalog provider.
"""

from .timeline import (
    BackgroundMusic,
    Block,
    MusicAction,
    MusicBlock,
    MusicControlBlock,
    ScriptLine,
    SilenceBlock,
    TalkBlock,
    Timeline,
)
from .response_parser import parse_timeline
from .content_generator import BaseContentGenerator, create_content_generator
from .media_provider import BaseMediaProvider, Track, create_media_provider, parse_lrc_to_text

__all__ = [
    'BackgroundMusic',
    'Block',
    'MusicAction',
    'MusicBlock',
    'MusicControlBlock',
    'ScriptLine',
    'SilenceBlock',
    'TalkBlock',
    'Timeline',
    'parse_timeline',
    'BaseContentGenerator',
    'create_content_generator',
    'BaseMediaProvider',
    'Track',
    'create_media_provider',
    'parse_lrc_to_text',
]
