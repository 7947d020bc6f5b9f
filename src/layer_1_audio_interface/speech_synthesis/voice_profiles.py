from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class VoiceProfile:
    gemini_voice: str
    microsoft_voice: str
    gender: str
    style: str


VOICE_PROFILES: Dict[str, VoiceProfile] = {
    "host1": VoiceProfile("Aoede", "en-US-AvaMultilingualNeural", "female", "gentle and articulate, clear voice"),
    "host2": VoiceProfile("Gacrux", "en-US-AndrewMultilingualNeural", "male", "relaxed and witty, warm timbre"),
    "guest": VoiceProfile("Puck", "en-US-EmmaMultilingualNeural", "neutral", "lively and upbeat"),
    "news": VoiceProfile("Charon", "en-US-BrianMultilingualNeural", "male", "professional and steady"),
}

MOOD_STYLES: Dict[str, str] = {
    "cheerful": "Speak in a bright, cheerful tone.",
    "calm": "Speak calmly, at an unhurried pace.",
    "excited": "Speak with excitement and energy.",
    "serious": "Speak in a serious, measured tone.",
    "warm": "Speak warmly, like talking to a friend late at night.",
    "playful": "Speak playfully, with a smile in the voice.",
    "melancholy": "Speak softly, with a touch of melancholy.",
    "mysterious": "Speak in a low, mysterious tone.",
}


def get_profile(speaker: str) -> VoiceProfile:
    return VOICE_PROFILES.get(speaker, VOICE_PROFILES["host1"])


def build_style_prompt(speaker: str, mood: Optional[str] = None, style_hint: Optional[str] = None) -> str:
    """Natural-language delivery instructions for style-prompted TTS models"""
    profile = get_profile(speaker)
    parts = [f"You are a radio host; voice: {profile.style}."]
    if mood in MOOD_STYLES:
        parts.append(MOOD_STYLES[mood])
    if style_hint:
        parts.append(style_hint)
    return " ".join(parts)
