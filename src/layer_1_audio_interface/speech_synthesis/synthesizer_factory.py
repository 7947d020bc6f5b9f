from typing import Dict

from .base_synthesizer import BaseSpeechSynthesizer


class SynthesizerFactory:
    """
    Factory class for creating speech synthesizer instances.
    """

    @staticmethod
    def create_synthesizer(engine: str = "gemini", **kwargs) -> BaseSpeechSynthesizer:
        """
        Create a synthesizer based on the specified engine.

        Args:
            engine: Synthesis engine type ("gemini", "microsoft")
            **kwargs: Engine-specific configuration parameters

        Raises:
            ValueError: If engine type is not supported
        """
        engine = engine.lower()

        if engine == "gemini":
            from .gemini_synthesizer import GeminiSpeechSynthesizer
            return GeminiSpeechSynthesizer(**kwargs)
        elif engine == "microsoft":
            from .microsoft_synthesizer import MicrosoftSpeechSynthesizer
            return MicrosoftSpeechSynthesizer(**kwargs)
        else:
            available = ", ".join(SynthesizerFactory.get_available_engines().keys())
            raise ValueError(f"Unsupported TTS engine: {engine}. Available: {available}")

    @staticmethod
    def get_available_engines() -> Dict[str, str]:
        return {
            "gemini": "Gemini TTS with style prompts and two-speaker batches",
            "microsoft": "Microsoft neural voices over an HTTP gateway",
        }


def create_synthesizer(engine: str = "gemini", **kwargs) -> BaseSpeechSynthesizer:
    return SynthesizerFactory.create_synthesizer(engine, **kwargs)
