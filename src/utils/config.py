import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

import yaml


@dataclass
class DirectorConfig:
    """Configuration management for the radio director"""

    # Show
    main_duration_sec: int = 480
    preload_block_count: int = 3
    halfway_delay_min: float = 5.0
    seconds_per_block_estimate: float = 3.0

    # Timeouts and poll intervals (seconds)
    first_block_timeout: float = 15.0
    first_block_poll_interval: float = 0.2
    block_ready_timeout: float = 10.0
    block_ready_poll_interval: float = 0.15
    pause_poll_interval: float = 0.1
    preload_interval: float = 2.0
    error_backoff: float = 5.0
    promote_settle_delay: float = 0.2
    post_transition_delay: float = 0.8
    warmup_settle_delay: float = 0.3

    # Music cache
    music_url_ttl: float = 20 * 60
    music_url_renew_threshold: float = 5 * 60
    music_bitrate: int = 320
    music_download_retries: int = 3
    music_download_retry_base: float = 1.0
    music_intro_delay: float = 0.8
    recent_song_limit: int = 20

    # Volumes and fades
    music_default_volume: float = 0.9
    music_during_voice: float = 0.15
    music_fade_low: float = 0.1
    music_after_warmup: float = 0.7
    music_after_transition: float = 0.8
    fade_duration_normal_ms: int = 1000
    music_end_fade_ms: int = 2000
    control_fade_ms: int = 2000
    control_fade_in_volume: float = 0.7
    warmup_crossfade_ms: int = 1500
    regenerate_fade_ms: int = 1000

    # Transition cue
    transition_min_sec: float = 10.0
    transition_max_sec: float = 20.0
    transition_volume: float = 0.5
    transition_fade_in_ms: int = 2000
    transition_fade_out_ms: int = 2000
    transition_failure_delay: float = 3.0
    transition_queries: List[str] = field(
        default_factory=lambda: ["light music", "piano", "instrumental", "ambient", "lofi"]
    )

    # Speech synthesis
    tts_engine: str = "gemini"
    tts_model: str = "gemini-2.5-flash-preview-tts"
    ms_tts_endpoint: str = "https://tts.cjack.top"
    max_concurrent_tts: int = 3
    tts_retry_count: int = 3
    tts_retry_base_delay: float = 1.0
    batch_speaker_threshold: int = 2

    # Content generation
    content_engine: str = "gemini"
    content_model: str = "gemini-2.0-flash"
    openai_base_url: str = "https://api.openai.com/v1"
    max_parse_retries: int = 3
    default_theme: Optional[str] = None

    # Media provider
    music_api_base: str = "https://music-api.gdstudio.xyz/api.php"
    music_source: str = "netease"
    music_request_timeout: float = 15.0

    # Audio output
    output_device: Optional[int] = None
    output_sample_rate: int = 48000

    # Persistence
    session_file: str = "data/session/session.json"

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'DirectorConfig':
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in (data or {}).items() if k in known}
        unknown = sorted(set(data or {}) - known)
        if unknown:
            print(f"⚠️ Ignoring unknown config keys: {', '.join(unknown)}")
        return cls(**values)

    @classmethod
    def from_yaml(cls, config_file: str = 'config.yaml') -> 'DirectorConfig':
        if not os.path.exists(config_file):
            print(f"⚠️ Warning: {config_file} not found. Using defaults.")
            return cls()
        try:
            with open(config_file, 'r') as f:
                data = yaml.safe_load(f)
        except Exception as e:
            print(f"⚠️ Warning: Could not load {config_file} ({e}). Using defaults.")
            return cls()
        return cls.from_dict(data)
