from .base_synthesizer import BaseSpeechSynthesizer, SpeechLine, SynthesisResult
from .abort_manager import SynthesisAbortManager
from .synthesizer_factory import SynthesizerFactory, create_synthesizer
from .voice_profiles import VOICE_PROFILES, VoiceProfile, build_style_prompt, get_profile

__all__ = [
    'BaseSpeechSynthesizer',
    'SpeechLine',
    'SynthesisResult',
    'SynthesisAbortManager',
    'SynthesizerFactory',
    'create_synthesizer',
    'VOICE_PROFILES',
    'VoiceProfile',
    'build_style_prompt',
    'get_profile',
]
