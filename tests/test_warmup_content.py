import asyncio

import pytest

from src.layer_3_director.director_state import DirectorState
from src.layer_3_director.warmup_content import GREETINGS, WarmupContent, get_quick_greeting, intro_music_keyword

from fakes import FakeAudioOutput, FakeMediaProvider, FakeSynthesizer, make_config


@pytest.mark.parametrize("hour, period", [
    (6, "morning"), (8, "morning"),
    (9, "noon"), (11, "noon"),
    (12, "afternoon"), (17, "afternoon"),
    (18, "evening"), (20, "evening"),
    (21, "night"), (23, "night"), (0, "night"), (1, "night"),
    (2, "latenight"), (5, "latenight"),
])
def test_greeting_by_hour(hour, period):
    assert get_quick_greeting(hour) == GREETINGS[period]


def test_intro_keyword_by_hour():
    assert intro_music_keyword(7) == "morning upbeat positive"
    assert intro_music_keyword(3) == "night lofi sleep"


def make_warmup(provider=None, audio=None, **config):
    state = DirectorState()
    state.is_running = True
    session_id = state.begin_session()
    synthesizer = FakeSynthesizer()
    audio = audio or FakeAudioOutput()
    warmup = WarmupContent(state, make_config(**config), synthesizer, provider or FakeMediaProvider(), audio)
    return warmup, state, synthesizer, audio, session_id


def test_warmup_greets_over_looping_music():
    warmup, _, synthesizer, audio, session_id = make_warmup()

    asyncio.run(warmup.play_warmup_content(session_id))

    assert synthesizer.requests[0] in GREETINGS.values()
    music_calls = [c for c in audio.calls if c[0] == "play_music"]
    assert music_calls[0][3] is True
    assert ("fade_music", 0.15, 500) in audio.calls
    assert ("fade_music", 0.7, 1000) in audio.calls


def test_transition_plays_and_restores_volume():
    warmup, _, _, audio, session_id = make_warmup()

    assert asyncio.run(warmup.play_transition_music(session_id))

    assert audio.call_names() == ["set_music_volume", "play_music", "fade_music", "stop_music", "set_music_volume"]
    assert audio.calls[0] == ("set_music_volume", 0.5)
    assert audio.calls[1][2] == 2000
    assert audio.calls[-1] == ("set_music_volume", 0.8)


def test_transition_without_tracks_waits_and_gives_up():
    provider = FakeMediaProvider(missing=set(make_config().transition_queries))
    warmup, _, _, audio, session_id = make_warmup(provider)

    assert not asyncio.run(warmup.play_transition_music(session_id))
    assert audio.calls == []


def test_transition_stops_early_for_stale_session():
    warmup, state, _, audio, session_id = make_warmup(transition_min_sec=5.0, transition_max_sec=5.0)

    async def run():
        task = asyncio.ensure_future(warmup.play_transition_music(session_id))
        await asyncio.sleep(0.05)
        state.is_running = False
        return await asyncio.wait_for(task, 0.5)

    assert asyncio.run(run()) is False
    assert "fade_music" not in audio.call_names()
    assert "stop_music" in audio.call_names()
