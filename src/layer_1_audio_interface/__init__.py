from .audio_output import BaseAudioOutput, PlaybackResult
from .speech_synthesis import BaseSpeechSynthesizer, SpeechLine, SynthesisResult, create_synthesizer

__all__ = [
    'BaseAudioOutput',
    'PlaybackResult',
    'BaseSpeechSynthesizer',
    'SpeechLine',
    'SynthesisResult',
    'create_synthesizer',
]
