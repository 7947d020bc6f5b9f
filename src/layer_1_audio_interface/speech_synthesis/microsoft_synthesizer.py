import os
import re
from typing import Optional

import requests

from .base_synthesizer import BaseSpeechSynthesizer
from .voice_profiles import get_profile

_STAGE_DIRECTION_PATTERNS = [
    re.compile(r"（[^）]*）"),
    re.compile(r"\([^)]*\)"),
    re.compile(r"\[[^\]]*\]"),
    re.compile(r"【[^】]*】"),
]


def strip_stage_directions(text: str) -> str:
    """Remove bracketed stage directions like (music fades) or [narrator]"""
    for pattern in _STAGE_DIRECTION_PATTERNS:
        text = pattern.sub("", text)
    return re.sub(r"\s+", " ", text).strip()


class MicrosoftSpeechSynthesizer(BaseSpeechSynthesizer):
    """
    Microsoft neural voices through an HTTP text-to-speech gateway.
    No style control, so the style prompt is dropped.
    """

    def __init__(
        self,
        endpoint: str = "https://tts.cjack.top",
        token: Optional[str] = None,
        request_timeout: float = 30.0,
        **kwargs
    ):
        super().__init__(**kwargs)
        self.endpoint = endpoint.rstrip("/")
        self.token = token or os.getenv("MS_TTS_TOKEN", "")
        self.request_timeout = request_timeout
        self.session = requests.Session()

    def resolve_voice(self, speaker: str, voice_override: Optional[str] = None) -> str:
        return voice_override or get_profile(speaker).microsoft_voice

    def _synthesize_core(self, text: str, voice_name: str, style_prompt: str) -> bytes:
        clean_text = strip_stage_directions(text)
        if not clean_text:
            raise ValueError("No text to speak after removing stage directions")

        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        response = self.session.get(
            f"{self.endpoint}/api/text-to-speech",
            params={"voice": voice_name, "volume": 100, "rate": 0, "pitch": 0, "text": clean_text},
            headers=headers,
            timeout=self.request_timeout
        )
        if not response.ok:
            raise RuntimeError(f"Microsoft TTS error: {response.status_code} - {response.text[:200]}")
        return response.content

    def close(self) -> None:
        super().close()
        self.session.close()
