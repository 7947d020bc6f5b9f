"""
Music block preparation and playback.

Preparation walks search -> URL renewal/expiry -> URL + lyrics -> download,
committing each result only while the originating session is current.
Playback prefers downloaded bytes and falls back to a freshly resolved URL.
"""

import asyncio
from typing import Optional

from src.layer_1_audio_interface.audio_output import BaseAudioOutput
from src.layer_1_audio_interface.speech_synthesis import BaseSpeechSynthesizer, SynthesisResult
from src.layer_2_content_generation.media_provider import BaseMediaProvider, Track, parse_lrc_to_text
from src.layer_2_content_generation.timeline import MusicAction, MusicBlock, MusicControlBlock
from src.utils.config import DirectorConfig

from .director_state import DirectorState, SongRecord
from .waits import interruptible_sleep, should_continue


class MusicExecutor:
    def __init__(self, state: DirectorState, config: DirectorConfig, media_provider: BaseMediaProvider,
                 synthesizer: BaseSpeechSynthesizer, audio_output: BaseAudioOutput):
        self.state = state
        self.config = config
        self.provider = media_provider
        self.synthesizer = synthesizer
        self.audio = audio_output

    # ================== Track and URL ==================

    async def find_track(self, query: str, session_id: int) -> Optional[Track]:
        track = self.state.cache.tracks.get(query)
        if track is not None:
            return track

        print(f"🔎 [Music] Searching: {query}")
        tracks = await self.provider.search(query)
        if not tracks:
            print(f"⚠️ [Music] Not found: {query}")
            return None
        if self.state.is_current(session_id):
            self.state.cache.tracks[query] = tracks[0]
        return tracks[0]

    async def fresh_url(self, query: str, track: Track, session_id: int, fetch_lyrics: bool = False) -> Optional[str]:
        """
        Return a URL safe to hand to a download or playback call.

        A cached URL close to expiry is re-resolved; one at or past its TTL is
        discarded and resolved again.
        """
        cache = self.state.cache
        age = cache.url_age(query)

        if age is not None and age >= self.config.music_url_ttl:
            print(f"⌛ [Music] URL expired, re-fetching: {query}")
            if self.state.is_current(session_id):
                cache.urls.pop(query, None)
        elif age is not None:
            cached_url = cache.urls[query].url
            if self.config.music_url_ttl - age >= self.config.music_url_renew_threshold:
                return cached_url
            renewed = await self.provider.resolve_url(track.id, self.config.music_bitrate, track.source)
            if renewed:
                if self.state.is_current(session_id):
                    cache.store_url(query, renewed)
                print(f"🔄 [Music] URL renewed: {query}")
                return renewed
            print(f"⚠️ [Music] Failed to renew URL: {query}")
            return cached_url

        if fetch_lyrics:
            url, lyrics = await asyncio.gather(
                self.provider.resolve_url(track.id, self.config.music_bitrate, track.source),
                self.provider.lyrics(track.lyric_id or track.id, track.source)
            )
            self._record_song(track, lyrics, session_id)
        else:
            url = await self.provider.resolve_url(track.id, self.config.music_bitrate, track.source)

        if url and self.state.is_current(session_id):
            cache.store_url(query, url)
        return url

    def _record_song(self, track: Track, lyrics: Optional[str], session_id: int) -> None:
        if not self.state.is_current(session_id):
            return
        self.state.recent_songs.append(SongRecord(
            name=track.name,
            artist=", ".join(track.artist),
            lyrics=parse_lrc_to_text(lyrics)[:500] if lyrics else ""
        ))

    # ================== Preparation ==================

    async def prepare(self, block: MusicBlock, session_id: int) -> None:
        query = block.search_query
        if query in self.state.cache.music_data:
            return

        try:
            track = await self.find_track(query, session_id)
            if track is None or not self.state.is_current(session_id):
                return

            url = await self.fresh_url(query, track, session_id, fetch_lyrics=True)
            if not url:
                print(f"⚠️ [Music] Failed to get URL for: {track.name}")
                return

            data = await self._download_with_retries(url, track, session_id)
            if data is not None and self.state.is_current(session_id):
                self.state.cache.music_data[query] = data
                print(f"✅ [Music] Downloaded: {track.name} ({len(data) / 1024 / 1024:.2f} MB)")
        except Exception as e:
            print(f"❌ [Music] Preload failed: {query} - {e}")

    async def _download_with_retries(self, url: str, track: Track, session_id: int) -> Optional[bytes]:
        retries = self.config.music_download_retries
        for attempt in range(1, retries + 1):
            if not self.state.is_current(session_id):
                return None
            try:
                print(f"⬇️ [Music] Downloading (attempt {attempt}/{retries}): {track.name}")
                return await self.provider.download(url)
            except Exception as e:
                if attempt == retries:
                    print(f"❌ [Music] All retries failed: {track.name} - {e}")
                    return None
                delay = self.config.music_download_retry_base * (2 ** (attempt - 1))
                print(f"⚠️ [Music] Download failed (attempt {attempt}/{retries}): {e}. Retry in {delay}s")
                await asyncio.sleep(delay)
        return None

    # ================== Playback ==================

    async def execute(self, block: MusicBlock, session_id: int) -> None:
        intro_task = None
        if block.intro:
            intro = block.intro
            intro_task = asyncio.ensure_future(self.synthesizer.synthesize(
                intro.text, intro.speaker, mood=intro.mood,
                style_hint=intro.style_hint, voice_override=intro.voice_override
            ))

        try:
            if not await self._start_playback(block, session_id):
                print(f"⚠️ [Music] Skipping block {block.id}: no playable source")
                return

            if intro_task is not None:
                await self._overlay_intro(intro_task, session_id)

            if block.duration_sec:
                if await interruptible_sleep(self.state, session_id, block.duration_sec,
                                             self.config.pause_poll_interval):
                    await self.audio.fade_music(0, self.config.music_end_fade_ms)
                self.audio.stop_music()
                self.audio.set_music_volume(self.config.music_default_volume)
        finally:
            if intro_task is not None and not intro_task.done():
                intro_task.cancel()

    async def _start_playback(self, block: MusicBlock, session_id: int) -> bool:
        query = block.search_query
        data = self.state.cache.music_data.get(query)
        if data is not None:
            print(f"🎵 [Music] Playing cached: {query}")
            result = await self.audio.play_music(data, fade_in_ms=block.fade_in_ms or 0)
            if result.success:
                return True
            print(f"⚠️ [Music] Cached playback failed: {query} - {result.error}. Falling back to live search")
        else:
            print(f"⚠️ [Music] Not cached, falling back to live search: {query}")

        track = await self.find_track(query, session_id)
        if track is None or not should_continue(self.state, session_id):
            return False

        url = await self.fresh_url(query, track, session_id)
        if not url:
            print(f"❌ [Music] Failed to get URL (live): {query}")
            return False
        if not should_continue(self.state, session_id):
            return False

        print(f"🎵 [Music] Playing live: {track.name}")
        fade_in = block.fade_in_ms if block.fade_in_ms is not None else self.config.transition_fade_in_ms
        result = await self.audio.play_music(url, fade_in_ms=fade_in)
        if not result.success:
            print(f"❌ [Music] Live playback failed: {query} - {result.error}")
        return result.success

    async def _overlay_intro(self, intro_task: "asyncio.Future[SynthesisResult]", session_id: int) -> None:
        if not await interruptible_sleep(self.state, session_id, self.config.music_intro_delay,
                                         self.config.pause_poll_interval):
            return
        try:
            result = await intro_task
        except Exception as e:
            print(f"⚠️ [Music] Intro synthesis failed: {e}")
            return
        if result.success and result.audio_data and should_continue(self.state, session_id):
            await self.audio.overlay_voice(result.audio_data)

    async def execute_control(self, block: MusicControlBlock) -> None:
        fade_ms = block.fade_duration_ms or self.config.control_fade_ms
        if block.action == MusicAction.PAUSE:
            self.audio.pause_music()
        elif block.action == MusicAction.RESUME:
            self.audio.resume_music()
        elif block.action == MusicAction.FADE_IN:
            volume = block.target_volume if block.target_volume is not None else self.config.control_fade_in_volume
            await self.audio.fade_music(volume, fade_ms)
        elif block.action == MusicAction.FADE_OUT:
            await self.audio.fade_music(0, fade_ms)
        elif block.action == MusicAction.STOP:
            self.audio.stop_music()
