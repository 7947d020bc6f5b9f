import asyncio
import gc
import os
import signal
from typing import Optional

from src.layer_1_audio_interface.audio_mixer import SoundDeviceMixer
from src.layer_1_audio_interface.speech_synthesis import BaseSpeechSynthesizer, create_synthesizer
from src.layer_2_content_generation import create_content_generator, create_media_provider
from src.layer_3_director import EventSink, SessionStore, ShowScheduler
from src.utils.config import DirectorConfig


class RadioSystem:
    """Builds the station's components and runs the show until interrupted"""

    def __init__(self, config: DirectorConfig):
        self.config = config
        self.audio: Optional[SoundDeviceMixer] = None
        self.synthesizer: Optional[BaseSpeechSynthesizer] = None
        self.scheduler: Optional[ShowScheduler] = None

    def _create_synthesizer(self) -> BaseSpeechSynthesizer:
        common = dict(
            max_concurrent=self.config.max_concurrent_tts,
            retry_count=self.config.tts_retry_count,
            retry_base_delay=self.config.tts_retry_base_delay
        )
        if self.config.tts_engine == "microsoft":
            return create_synthesizer("microsoft", endpoint=self.config.ms_tts_endpoint, **common)
        return create_synthesizer("gemini", model=self.config.tts_model, **common)

    def _create_content_generator(self):
        if self.config.content_engine == "openai":
            return create_content_generator(
                "openai",
                model=self.config.content_model,
                base_url=self.config.openai_base_url,
                max_parse_retries=self.config.max_parse_retries
            )
        return create_content_generator(
            "gemini",
            model=self.config.content_model,
            max_parse_retries=self.config.max_parse_retries
        )

    def build(self) -> ShowScheduler:
        self.audio = SoundDeviceMixer(
            sample_rate=self.config.output_sample_rate,
            device=self.config.output_device,
            music_volume=self.config.music_default_volume,
            duck_volume=self.config.music_during_voice
        )
        print("✅ Audio output initialized")

        self.synthesizer = self._create_synthesizer()
        print(f"✅ TTS initialized ({self.config.tts_engine})")

        media_provider = create_media_provider(
            "gdstudio",
            api_base=self.config.music_api_base,
            source=self.config.music_source,
            timeout=self.config.music_request_timeout
        )
        print("✅ Music provider initialized")

        self.scheduler = ShowScheduler(
            self.config,
            self._create_content_generator(),
            self.synthesizer,
            media_provider,
            self.audio,
            session_store=SessionStore(self.config.session_file)
        )
        return self.scheduler

    @staticmethod
    def _print_batch(lines, block_id):
        for line in lines:
            print(f"🗣️ {line['speaker']}: {line['text']}")

    def _events(self) -> EventSink:
        return EventSink(
            on_block_start=lambda block, index: print(f"📻 Now playing block {index}: {block.type}"),
            on_script=lambda speaker, text, block_id: print(f"🗣️ {speaker}: {text}"),
            on_batch_script=self._print_batch,
            on_error=lambda error, block=None: print(f"❌ Show error: {error}"),
            on_timeline_ready=lambda timeline: print(f"📋 Up next: {timeline.title}"),
        )

    async def cleanup_resources(self):
        """Clean up all system resources"""
        if self.scheduler:
            try:
                self.scheduler.stop_show()
                print("✅ Show stopped")
            except Exception as e:
                print(f"⚠️ Error stopping show: {e}")
            self.scheduler = None

        if self.synthesizer:
            try:
                self.synthesizer.close()
                print("✅ TTS cleaned up")
            except Exception as e:
                print(f"⚠️ Error cleaning TTS: {e}")
            self.synthesizer = None

        if self.audio:
            try:
                self.audio.close()
                print("✅ Audio output closed")
            except Exception as e:
                print(f"⚠️ Error closing audio output: {e}")
            self.audio = None

        gc.collect()

    async def start(self):
        """Start the radio"""
        print("🚀 Starting radio...")
        scheduler = self.build()

        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGTERM, scheduler.stop_show)
        except (NotImplementedError, RuntimeError):
            pass

        try:
            await scheduler.start_show(theme=self.config.default_theme, events=self._events())
        except asyncio.CancelledError:
            print("\n🛑 Shutting down...")
        except Exception as e:
            print(f"💥 Unexpected error: {e}")
        finally:
            await self.cleanup_resources()
            print("👋 Goodbye!")


async def main():
    """Main entry point"""
    config = DirectorConfig.from_yaml(os.getenv("RADIO_CONFIG", "config.yaml"))
    system = RadioSystem(config)
    await system.start()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
