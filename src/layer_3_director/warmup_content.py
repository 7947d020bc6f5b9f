"""
Opening warmup and between-episode transition music.
Neither needs the content generator, so both can cover generation latency.
"""

import asyncio
import random
from datetime import datetime
from typing import Optional

from src.layer_1_audio_interface.audio_output import BaseAudioOutput
from src.layer_1_audio_interface.speech_synthesis import BaseSpeechSynthesizer
from src.layer_2_content_generation.media_provider import BaseMediaProvider
from src.utils.config import DirectorConfig
from src.utils.timing import sleep_while

from .director_state import DirectorState

GREETINGS = {
    "morning": "Good morning, and welcome to the station. A new day starts here with music and good company. "
               "The show is getting ready, so here's a song to begin.",
    "noon": "Good day, and welcome to the midday hour. Take a break from work and unwind. "
            "We're about to start, here's something easy to listen to first.",
    "afternoon": "Good afternoon, and welcome to the afternoon session. A cup of coffee, a song, and a slow afternoon. "
                 "The show is getting ready.",
    "evening": "Good evening, and welcome to the evening program. The busy day is behind you, "
               "let the music walk you home.",
    "night": "It's getting late, welcome to the late night show. Let's spend some warm moments together. "
             "We're starting in just a moment.",
    "latenight": "Still awake at this hour? Let the radio keep you company. "
                 "Here's something soft while the show gets ready.",
}


def get_quick_greeting(hour: int) -> str:
    """Canned greeting for the hour of day, used before any generated content exists"""
    if 6 <= hour < 9:
        return GREETINGS["morning"]
    if 9 <= hour < 12:
        return GREETINGS["noon"]
    if 12 <= hour < 18:
        return GREETINGS["afternoon"]
    if 18 <= hour < 21:
        return GREETINGS["evening"]
    if hour >= 21 or hour < 2:
        return GREETINGS["night"]
    return GREETINGS["latenight"]


def intro_music_keyword(hour: int) -> str:
    if 6 <= hour < 9:
        return "morning upbeat positive"
    if 9 <= hour < 18:
        return "work focus ambient"
    if 18 <= hour < 21:
        return "evening jazz relaxing"
    return "night lofi sleep"


class WarmupContent:
    def __init__(self, state: DirectorState, config: DirectorConfig, synthesizer: BaseSpeechSynthesizer,
                 media_provider: BaseMediaProvider, audio_output: BaseAudioOutput):
        self.state = state
        self.config = config
        self.synthesizer = synthesizer
        self.provider = media_provider
        self.audio = audio_output

    async def play_intro_music(self, session_id: int) -> Optional[str]:
        """Loop time-of-day background music. Returns the keyword used, or None."""
        keyword = intro_music_keyword(datetime.now().hour)
        try:
            tracks = await self.provider.search(keyword, 5)
            if not tracks or not self.state.is_current(session_id):
                return None
            track = tracks[0]
            url = await self.provider.resolve_url(track.id, self.config.music_bitrate, track.source)
            if not url or not self.state.is_current(session_id):
                return None
            result = await self.audio.play_music(url, loop=True)
            return keyword if result.success else None
        except Exception as e:
            print(f"⚠️ [Warmup] Intro music failed: {e}")
            return None

    async def play_warmup_content(self, session_id: int) -> None:
        """Greeting overlaid on intro music, both started together"""
        print("🌅 [Warmup] Starting warmup content...")
        music_task = asyncio.ensure_future(self.play_intro_music(session_id))
        try:
            greeting = get_quick_greeting(datetime.now().hour)
            result = await self.synthesizer.synthesize(greeting, "host1", mood="warm")
            if result.success and result.audio_data and self.state.is_current(session_id):
                await self.audio.fade_music(self.config.music_during_voice, 500)
                await self.audio.play_voice(result.audio_data)
                await self.audio.fade_music(self.config.music_after_warmup, 1000)
            await music_task
            print("🌅 [Warmup] Warmup content playing")
        except asyncio.CancelledError:
            music_task.cancel()
            raise
        except Exception as e:
            print(f"⚠️ [Warmup] Warmup playback error: {e}")

    async def play_transition_music(self, session_id: int) -> bool:
        """
        Short instrumental cue between episodes.

        Returns:
            True if the cue played to the end
        """
        print("🎼 [Warmup] Playing transition music...")
        keep_going = lambda: self.state.is_current(session_id)
        try:
            query = random.choice(self.config.transition_queries)
            tracks = await self.provider.search(query, 5)
            if not tracks:
                await sleep_while(keep_going, self.config.transition_failure_delay, self.config.pause_poll_interval)
                return False

            track = random.choice(tracks)
            url = await self.provider.resolve_url(track.id, self.config.music_bitrate, track.source)
            if not url or not keep_going():
                return False

            self.audio.set_music_volume(self.config.transition_volume)
            duration = random.uniform(self.config.transition_min_sec, self.config.transition_max_sec)
            result = await self.audio.play_music(url, fade_in_ms=self.config.transition_fade_in_ms)
            if not result.success:
                print(f"⚠️ [Warmup] Transition playback failed: {result.error}")
                await sleep_while(keep_going, self.config.transition_failure_delay, self.config.pause_poll_interval)
                return False

            completed = await sleep_while(keep_going, duration, self.config.pause_poll_interval)
            if completed:
                await self.audio.fade_music(0, self.config.transition_fade_out_ms)
            self.audio.stop_music()
            self.audio.set_music_volume(self.config.music_after_transition)
            return completed
        except asyncio.CancelledError:
            raise
        except Exception as e:
            print(f"⚠️ [Warmup] Transition music error: {e}")
            await sleep_while(keep_going, self.config.transition_failure_delay, self.config.pause_poll_interval)
            return False
