import io
import os
from typing import Dict, List, Optional

import numpy as np
import scipy.io.wavfile
from google import genai
from google.genai import types

from .base_synthesizer import BaseSpeechSynthesizer, SpeechLine
from .voice_profiles import build_style_prompt

GEMINI_TTS_SAMPLE_RATE = 24000


def pcm_to_wav(pcm: bytes, sample_rate: int = GEMINI_TTS_SAMPLE_RATE) -> bytes:
    """Wrap raw 16-bit mono PCM in a WAV container"""
    samples = np.frombuffer(pcm, dtype=np.int16)
    buffer = io.BytesIO()
    scipy.io.wavfile.write(buffer, sample_rate, samples)
    return buffer.getvalue()


def _voice_config(voice_name: str) -> types.VoiceConfig:
    return types.VoiceConfig(prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice_name))


class GeminiSpeechSynthesizer(BaseSpeechSynthesizer):
    """
    Gemini TTS through the google-genai client.
    Supports single-shot batches of one or two speakers.
    """

    supports_batch = True

    def __init__(self, model: str = "gemini-2.5-flash-preview-tts", api_key: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.model = model
        self.client = genai.Client(api_key=api_key or os.getenv("GOOGLE_API_KEY"))

    def _generate(self, prompt: str, speech_config: types.SpeechConfig) -> bytes:
        response = self.client.models.generate_content(
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                response_modalities=["AUDIO"],
                speech_config=speech_config,
            )
        )
        try:
            pcm = response.candidates[0].content.parts[0].inline_data.data
        except (AttributeError, IndexError, TypeError):
            raise RuntimeError("No audio data in response")
        return pcm_to_wav(pcm)

    def _synthesize_core(self, text: str, voice_name: str, style_prompt: str) -> bytes:
        prompt = f"{style_prompt}\n\n#### TRANSCRIPT\n{text}"
        return self._generate(prompt, types.SpeechConfig(voice_config=_voice_config(voice_name)))

    def _synthesize_batch_core(self, lines: List[SpeechLine]) -> bytes:
        speaker_voices: Dict[str, str] = {}
        for line in lines:
            speaker_voices.setdefault(line.speaker, self.resolve_voice(line.speaker, line.voice_override))

        first = lines[0]
        style_prompt = build_style_prompt(first.speaker, first.mood)

        if len(speaker_voices) == 1:
            text = "\n\n".join(line.text for line in lines)
            prompt = f"{style_prompt}\n\nRead the following:\n{text}"
            return self._generate(prompt, types.SpeechConfig(voice_config=_voice_config(speaker_voices[first.speaker])))

        if len(speaker_voices) > 2:
            raise ValueError(f"Multi-speaker batch supports at most 2 speakers, got {len(speaker_voices)}")

        conversation = "\n".join(f"{line.speaker}: {line.text}" for line in lines)
        prompt = f"TTS the following radio conversation between {' and '.join(speaker_voices)}:\n{conversation}"
        speech_config = types.SpeechConfig(
            multi_speaker_voice_config=types.MultiSpeakerVoiceConfig(
                speaker_voice_configs=[
                    types.SpeakerVoiceConfig(speaker=speaker, voice_config=_voice_config(voice))
                    for speaker, voice in speaker_voices.items()
                ]
            )
        )
        return self._generate(prompt, speech_config)
