import asyncio

from src.layer_2_content_generation.media_provider import Track
from src.layer_2_content_generation.timeline import MusicAction, MusicControlBlock, ScriptLine
from src.layer_3_director.director_state import DirectorState, ExecutionContext
from src.layer_3_director.music_executor import MusicExecutor

from fakes import FakeAudioOutput, FakeMediaProvider, FakeSynthesizer, make_config, music, timeline


class FakeClock:
    def __init__(self, now=10_000.0):
        self.now = now

    def __call__(self):
        return self.now


def make_executor(block=None, provider=None, audio=None, **config):
    clock = FakeClock()
    state = DirectorState(clock=clock)
    state.is_running = True
    session_id = state.begin_session()
    state.context = ExecutionContext(timeline=timeline("t", block or music("m", "jazz")))
    provider = provider or FakeMediaProvider()
    audio = audio or FakeAudioOutput()
    executor = MusicExecutor(state, make_config(**config), provider, FakeSynthesizer(), audio)
    return executor, state, provider, audio, clock, session_id


TRACK = Track(id="id-jazz", name="Song jazz", artist=["Artist"])


def test_prepare_downloads_and_commits_bytes():
    block = music("m", "jazz")
    executor, state, provider, _, _, session_id = make_executor(block)

    asyncio.run(executor.prepare(block, session_id))

    assert provider.searches == ["jazz"]
    assert state.cache.tracks["jazz"].id == "id-jazz"
    assert state.cache.urls["jazz"].url == provider.resolved[0]
    assert state.cache.music_data["jazz"] == f"mp3:{provider.resolved[0]}".encode()
    assert state.cache.is_block_ready(block)


def test_prepare_records_lyrics_without_timestamps():
    block = music("m", "jazz")
    provider = FakeMediaProvider(lyrics="[00:01.00]first line\n[00:05.50]second line\n")
    executor, state, _, _, _, session_id = make_executor(block, provider)

    asyncio.run(executor.prepare(block, session_id))

    song = state.recent_songs[-1]
    assert (song.name, song.artist) == ("Song jazz", "Artist")
    assert song.lyrics == "first line\nsecond line"


def test_prepare_retries_download_with_backoff():
    block = music("m", "jazz")
    executor, state, provider, _, _, session_id = make_executor(block, FakeMediaProvider(download_failures=2))

    asyncio.run(executor.prepare(block, session_id))

    assert len(provider.downloads) == 3
    assert "jazz" in state.cache.music_data


def test_prepare_gives_up_after_max_retries():
    block = music("m", "jazz")
    executor, state, provider, _, _, session_id = make_executor(block, FakeMediaProvider(download_failures=5))

    asyncio.run(executor.prepare(block, session_id))

    assert len(provider.downloads) == 3
    assert "jazz" not in state.cache.music_data


def test_prepare_unknown_song_leaves_block_unready():
    block = music("m", "nothing")
    executor, state, _, _, _, session_id = make_executor(block, FakeMediaProvider(missing={"nothing"}))

    asyncio.run(executor.prepare(block, session_id))

    assert state.cache.music_data == {}
    assert state.cache.tracks == {}


def test_prepare_for_stale_session_commits_nothing():
    block = music("m", "jazz")
    executor, state, _, _, _, session_id = make_executor(block)
    state.begin_session()

    asyncio.run(executor.prepare(block, session_id))

    assert state.cache.tracks == {}
    assert state.cache.urls == {}
    assert state.cache.music_data == {}


def test_fresh_url_returns_young_cached_url():
    executor, state, provider, _, clock, session_id = make_executor()
    state.cache.store_url("jazz", "http://cached")
    clock.now += 60

    assert asyncio.run(executor.fresh_url("jazz", TRACK, session_id)) == "http://cached"
    assert provider.resolved == []


def test_fresh_url_renews_near_expiry():
    executor, state, provider, _, clock, session_id = make_executor()
    state.cache.store_url("jazz", "http://cached")
    clock.now += 16 * 60

    url = asyncio.run(executor.fresh_url("jazz", TRACK, session_id))

    assert url == provider.resolved[0]
    assert state.cache.urls["jazz"].url == url
    assert state.cache.url_age("jazz") == 0


def test_expired_url_never_reaches_download():
    block = music("m", "jazz")
    executor, state, provider, _, clock, session_id = make_executor(block)
    state.cache.tracks["jazz"] = TRACK
    state.cache.store_url("jazz", "http://expired")
    clock.now += 20 * 60

    asyncio.run(executor.prepare(block, session_id))

    assert "http://expired" not in provider.downloads
    assert provider.downloads == [provider.resolved[0]]
    assert state.cache.urls["jazz"].url == provider.resolved[0]


def test_execute_prefers_cached_bytes():
    block = music("m", "jazz", fade_in_ms=500)
    executor, state, provider, audio, _, session_id = make_executor(block)
    state.cache.music_data["jazz"] = b"mp3"

    asyncio.run(executor.execute(block, session_id))

    assert audio.calls[0] == ("play_music", b"mp3", 500, False)
    assert provider.searches == []


def test_execute_falls_back_to_live_url():
    block = music("m", "jazz")
    audio = FakeAudioOutput(fail_bytes=True)
    executor, state, provider, audio, _, session_id = make_executor(block, audio=audio)
    state.cache.music_data["jazz"] = b"corrupt"

    asyncio.run(executor.execute(block, session_id))

    assert audio.music_played == [provider.resolved[0]]


def test_execute_skips_when_nothing_playable():
    block = music("m", "nothing", duration_sec=5)
    executor, _, _, audio, _, session_id = make_executor(block, FakeMediaProvider(missing={"nothing"}))

    asyncio.run(executor.execute(block, session_id))

    assert audio.music_played == []
    assert "fade_music" not in audio.call_names()


def test_execute_timed_music_fades_and_restores_volume():
    block = music("m", "jazz", duration_sec=0.05)
    executor, state, _, audio, _, session_id = make_executor(block)
    state.cache.music_data["jazz"] = b"mp3"

    asyncio.run(executor.execute(block, session_id))

    assert audio.call_names() == ["play_music", "fade_music", "stop_music", "set_music_volume"]
    assert audio.calls[1][1:] == (0, 2000)
    assert audio.calls[3][1] == 0.9


def test_execute_overlays_intro_after_start():
    block = music("m", "jazz", intro=ScriptLine(speaker="host1", text="here it comes"))
    executor, state, _, audio, _, session_id = make_executor(block)
    state.cache.music_data["jazz"] = b"mp3"

    asyncio.run(executor.execute(block, session_id))

    names = audio.call_names()
    assert names.index("play_music") < names.index("overlay_voice")
    assert ("overlay_voice", b"voice:here it comes") in audio.calls


def test_skip_interrupts_timed_music():
    block = music("m", "jazz", duration_sec=10)
    executor, state, _, audio, _, session_id = make_executor(block)
    state.cache.music_data["jazz"] = b"mp3"

    async def run():
        task = asyncio.ensure_future(executor.execute(block, session_id))
        await asyncio.sleep(0.05)
        state.request_skip(0)
        loop = asyncio.get_running_loop()
        started = loop.time()
        await task
        return loop.time() - started

    assert asyncio.run(run()) < 0.1
    assert "fade_music" not in audio.call_names()


def test_control_blocks():
    executor, _, _, audio, _, _ = make_executor()

    async def run():
        await executor.execute_control(MusicControlBlock(id="c1", action=MusicAction.FADE_IN))
        await executor.execute_control(MusicControlBlock(id="c2", action=MusicAction.FADE_OUT, fade_duration_ms=500))
        await executor.execute_control(MusicControlBlock(id="c3", action=MusicAction.FADE_IN, target_volume=0.3))
        await executor.execute_control(MusicControlBlock(id="c4", action=MusicAction.PAUSE))
        await executor.execute_control(MusicControlBlock(id="c5", action=MusicAction.RESUME))
        await executor.execute_control(MusicControlBlock(id="c6", action=MusicAction.STOP))

    asyncio.run(run())
    assert audio.calls == [
        ("fade_music", 0.7, 2000),
        ("fade_music", 0, 500),
        ("fade_music", 0.3, 2000),
        ("pause_music",),
        ("resume_music",),
        ("stop_music",),
    ]


def test_prepare_records_song_without_lyrics():
    block = music("m", "jazz")
    executor, state, _, _, _, session_id = make_executor(block)

    asyncio.run(executor.prepare(block, session_id))

    assert state.recent_song_names() == ["Song jazz - Artist"]
    assert state.recent_songs[-1].lyrics == ""
