import asyncio

from src.layer_2_content_generation.timeline import MusicAction, MusicControlBlock
from src.layer_3_director.director_state import ExecutionContext
from src.layer_3_director.session_store import SessionStore
from src.layer_3_director.show_scheduler import ShowScheduler
from src.utils.timing import wait_until

from fakes import (
    EventRecorder,
    FakeAudioOutput,
    FakeContentGenerator,
    FakeMediaProvider,
    FakeSynthesizer,
    make_config,
    music,
    silence,
    talk,
    timeline,
)


def make_show(*blocks, audio=None, provider=None, store=None, **config):
    """Scheduler wired with fakes, with `blocks` installed as the active timeline"""
    scheduler = ShowScheduler(
        make_config(**config),
        FakeContentGenerator([]),
        FakeSynthesizer(),
        provider or FakeMediaProvider(),
        audio or FakeAudioOutput(),
        session_store=store
    )
    recorder = EventRecorder()
    scheduler.state.is_running = True
    session_id = scheduler.state.begin_session()
    scheduler.state.context = ExecutionContext(timeline=timeline("t", *blocks), events=recorder.sink())
    return scheduler, recorder, session_id


def test_blocks_play_in_order_with_paired_events():
    scheduler, recorder, session_id = make_show(
        talk("t0", "welcome"), talk("t1", "first song"), music("m", "jazz"),
        audio=FakeAudioOutput(fail_bytes=True)
    )

    completed = asyncio.run(scheduler.engine.execute_timeline(session_id))

    assert completed
    assert recorder.block_events() == [
        ("block_start", "t0"), ("block_end", "t0"),
        ("block_start", "t1"), ("block_end", "t1"),
        ("block_start", "m"), ("block_end", "m"),
    ]
    assert [e[2] for e in recorder.named("block_start")] == [0, 1, 2]
    assert len(recorder.named("show_completed")) == 1
    assert scheduler.audio.voice_played == [b"voice:welcome", b"voice:first song"]
    assert scheduler.audio.music_played[0].startswith("http://media.test/")


def test_skip_mid_talk_moves_on_without_ending_block():
    audio = FakeAudioOutput(voice_duration=0.3)
    scheduler, recorder, session_id = make_show(talk("t0", "long story", "more story"), talk("t1", "next"), audio=audio)

    async def run():
        task = asyncio.ensure_future(scheduler.engine.execute_timeline(session_id))
        assert await wait_until(lambda: bool(audio.voice_played), 1.0, 0.01)
        assert scheduler.skip_to_next()
        return await task

    assert asyncio.run(run())
    assert recorder.block_events() == [
        ("block_start", "t0"),
        ("block_start", "t1"), ("block_end", "t1"),
    ]
    assert audio.voice_played == [b"voice:long story", b"voice:next"]


def test_skip_preempts_pause():
    scheduler, recorder, session_id = make_show(talk("t0", "zero"), talk("t1", "one"))
    scheduler.pause_show()

    async def run():
        task = asyncio.ensure_future(scheduler.engine.execute_timeline(session_id))
        await asyncio.sleep(0.05)
        assert scheduler.skip_to_next()
        await asyncio.sleep(0.05)
        cursor = scheduler.state.context.cursor
        started = list(recorder.named("block_start"))
        scheduler.resume_show()
        await task
        return cursor, started

    cursor, started_while_paused = asyncio.run(run())
    assert cursor == 1
    assert started_while_paused == []
    assert recorder.block_events() == [("block_start", "t1"), ("block_end", "t1")]


def test_pause_holds_before_next_block():
    scheduler, recorder, session_id = make_show(talk("t0", "zero"))
    scheduler.pause_show()

    async def run():
        task = asyncio.ensure_future(scheduler.engine.execute_timeline(session_id))
        await asyncio.sleep(0.1)
        held = not task.done() and recorder.named("block_start") == []
        scheduler.resume_show()
        return held, await task

    held, completed = asyncio.run(run())
    assert held
    assert completed


def test_unready_block_is_skipped_after_timeout():
    scheduler, recorder, session_id = make_show(
        music("m", "nothing"), talk("t1", "still here"),
        provider=FakeMediaProvider(missing={"nothing"})
    )

    async def run():
        loop = asyncio.get_running_loop()
        started = loop.time()
        completed = await scheduler.engine.execute_timeline(session_id)
        return completed, loop.time() - started

    completed, elapsed = asyncio.run(run())
    assert completed
    assert 0.25 <= elapsed < 1.0
    assert recorder.block_events() == [("block_start", "t1"), ("block_end", "t1")]
    assert recorder.named("error") == []


def test_block_failure_reports_error_and_continues():
    scheduler, recorder, session_id = make_show(
        MusicControlBlock(id="c", action=MusicAction.FADE_OUT), talk("t1", "after")
    )

    async def broken_control(block):
        raise RuntimeError("mixer gone")

    scheduler.music_executor.execute_control = broken_control

    assert asyncio.run(scheduler.engine.execute_timeline(session_id))
    errors = recorder.named("error")
    assert len(errors) == 1
    assert str(errors[0][1]) == "mixer gone"
    assert errors[0][2].id == "c"
    assert recorder.block_events() == [
        ("block_start", "c"),
        ("block_start", "t1"), ("block_end", "t1"),
    ]


def test_stop_exits_promptly():
    scheduler, recorder, session_id = make_show(silence("s", 10_000), talk("t1", "never"))

    async def run():
        task = asyncio.ensure_future(scheduler.engine.execute_timeline(session_id))
        await asyncio.sleep(0.05)
        scheduler.stop_show()
        return await asyncio.wait_for(task, 0.5)

    assert asyncio.run(run()) is False
    assert recorder.named("show_completed") == []
    assert ("block_start", "t1") not in recorder.block_events()


def test_silence_does_not_count_paused_time():
    scheduler, _, session_id = make_show(silence("s", 150))

    async def run():
        loop = asyncio.get_running_loop()
        started = loop.time()
        task = asyncio.ensure_future(scheduler.engine.execute_timeline(session_id))
        await asyncio.sleep(0.05)
        scheduler.pause_show()
        await asyncio.sleep(0.3)
        still_running = not task.done()
        scheduler.resume_show()
        await task
        return still_running, loop.time() - started

    still_running, elapsed = asyncio.run(run())
    assert still_running
    assert elapsed >= 0.4


def test_progress_is_saved_after_each_block(tmp_path):
    store = SessionStore(str(tmp_path / "session.json"))
    scheduler, _, session_id = make_show(silence("s0", 10), silence("s1", 10), store=store)

    asyncio.run(scheduler.engine.execute_timeline(session_id))

    snapshot = store.load_snapshot()
    assert snapshot.timeline_id == "t"
    assert snapshot.cursor == 2
    assert snapshot.position == 0.0


def test_stale_session_plays_nothing():
    scheduler, recorder, session_id = make_show(talk("t0", "hello"))
    scheduler.state.begin_session()

    assert asyncio.run(scheduler.engine.execute_timeline(session_id)) is False
    assert recorder.block_events() == []
    assert scheduler.audio.voice_played == []


def test_pause_during_readiness_wait_holds_playback():
    scheduler, recorder, session_id = make_show(music("m", "jazz", duration_sec=0.05))
    paused_at_play = []
    play_music = scheduler.audio.play_music

    async def recording_play_music(source, fade_in_ms=0, loop=False):
        paused_at_play.append(scheduler.state.is_paused)
        return await play_music(source, fade_in_ms, loop)

    scheduler.audio.play_music = recording_play_music

    async def run():
        task = asyncio.ensure_future(scheduler.engine.execute_timeline(session_id))
        await asyncio.sleep(0)
        assert scheduler.pause_show()
        await asyncio.sleep(0.2)
        held = paused_at_play == [] and recorder.named("block_start") == []
        scheduler.resume_show()
        return held, await task

    held, completed = asyncio.run(run())
    assert held
    assert completed
    assert paused_at_play == [False]
