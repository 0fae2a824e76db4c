import asyncio

import pytest

import bside.scheduler
import bside.tempo

from conftest import ManualClock, RecordingSink, make_pattern


@pytest.mark.asyncio
async def test_start_initializes_timing (scheduler: bside.scheduler.QueueScheduler, clock: ManualClock) -> None:

	"""The first start sets started_at to now and ends_at one pattern later."""

	assert scheduler.state is bside.scheduler.SchedulerState.UNINITIALIZED

	await scheduler.start()

	playing = scheduler.now_playing
	assert scheduler.state is bside.scheduler.SchedulerState.RUNNING
	assert playing.started_at == clock.now
	assert playing.ends_at - playing.started_at == 16000.0

	await scheduler.stop()


@pytest.mark.asyncio
async def test_stop_keeps_state (scheduler: bside.scheduler.QueueScheduler) -> None:

	"""Stopping cancels ticking but leaves now-playing and the queue alone."""

	pattern = make_pattern("a", 4)
	scheduler.queue.append(pattern)

	await scheduler.start()
	before = scheduler.now_playing
	await scheduler.stop()

	assert scheduler.state is bside.scheduler.SchedulerState.STOPPED
	assert scheduler.task is None
	assert scheduler.now_playing == before
	assert list(scheduler.queue) == [pattern]


@pytest.mark.asyncio
async def test_restart_does_not_reinitialize (scheduler: bside.scheduler.QueueScheduler, clock: ManualClock) -> None:

	"""Starting again after a stop keeps the original timing."""

	await scheduler.start()
	first = scheduler.now_playing
	await scheduler.stop()

	clock.advance(500)
	await scheduler.start()

	assert scheduler.now_playing == first

	await scheduler.stop()


@pytest.mark.asyncio
async def test_tick_before_start_is_noop (scheduler: bside.scheduler.QueueScheduler, clock: ManualClock) -> None:

	"""An uninitialized scheduler ignores ticks."""

	clock.advance(1_000_000)

	assert await scheduler.tick() is None


@pytest.mark.asyncio
async def test_tick_before_end_is_idempotent (scheduler: bside.scheduler.QueueScheduler, clock: ManualClock) -> None:

	"""Ticking before the end time never changes anything, however often it runs."""

	sink = RecordingSink()
	scheduler.events.on("pattern", sink)
	scheduler.queue.append(make_pattern("a", 4))

	await scheduler.start()
	before = scheduler.now_playing

	for _ in range(20):
		clock.advance(500)
		if clock.now >= before.ends_at:
			break
		assert await scheduler.tick() is None

	assert scheduler.now_playing == before
	assert len(scheduler.queue) == 1
	assert sink.received == []

	await scheduler.stop()


@pytest.mark.asyncio
async def test_advance_pops_one_pattern (scheduler: bside.scheduler.QueueScheduler, clock: ManualClock) -> None:

	"""Queue [A(4), B(8)] with the current pattern ending: A plays, [B] remains."""

	sink = RecordingSink()
	scheduler.events.on("pattern", sink)

	a, b = make_pattern("A", 4), make_pattern("B", 8)
	scheduler.queue.append(a)
	scheduler.queue.append(b)

	await scheduler.start()
	clock.advance(16000)

	event = await scheduler.tick()

	playing = scheduler.now_playing
	assert playing.id == a.id
	assert playing.content == "A"
	assert playing.started_at == clock.now
	assert playing.ends_at - playing.started_at == 4 * 2000.0
	assert [item.id for item in scheduler.queue] == [b.id]

	assert event is not None
	assert event.content == "A"
	assert event.bar_count == 4
	assert event.remaining_queue_length == 1
	assert event.timestamp == clock.now
	assert event.change == "advance"
	assert sink.received == [event]

	await scheduler.stop()


@pytest.mark.asyncio
async def test_empty_queue_loops_current (scheduler: bside.scheduler.QueueScheduler, clock: ManualClock) -> None:

	"""With nothing queued the same content restarts and the queue stays empty."""

	sink = RecordingSink()
	scheduler.events.on("pattern", sink)

	await scheduler.start()
	before = scheduler.now_playing
	clock.advance(16000)

	event = await scheduler.tick()

	after = scheduler.now_playing
	assert after.content == before.content
	assert after.id == before.id
	assert after.started_at == clock.now
	assert after.ends_at - after.started_at == 16000.0
	assert len(scheduler.queue) == 0

	assert event is not None
	assert event.change == "loop"
	assert event.remaining_queue_length == 0
	assert len(sink.received) == 1

	await scheduler.stop()


@pytest.mark.asyncio
async def test_one_advance_per_tick_after_a_stall (scheduler: bside.scheduler.QueueScheduler, clock: ManualClock) -> None:

	"""After many elapsed pattern lengths a single tick still advances only once."""

	for name in "ABC":
		scheduler.queue.append(make_pattern(name, 1))

	await scheduler.start()
	clock.advance(10 * 60 * 1000)

	await scheduler.tick()

	assert scheduler.now_playing.content == "A"
	assert len(scheduler.queue) == 2

	await scheduler.tick()

	assert scheduler.now_playing.content == "A"
	assert len(scheduler.queue) == 2

	await scheduler.stop()


@pytest.mark.asyncio
async def test_tempo_change_does_not_rescale_current (scheduler: bside.scheduler.QueueScheduler, clock: ManualClock) -> None:

	"""A new tempo leaves the playing pattern's end time alone and applies to the next one."""

	scheduler.queue.append(make_pattern("A", 2))

	await scheduler.start()
	ends_at = scheduler.now_playing.ends_at

	scheduler.set_tempo(bside.tempo.Tempo(bpm=60, beats_per_bar=4))

	assert scheduler.now_playing.ends_at == ends_at

	clock.advance(16000)
	await scheduler.tick()

	playing = scheduler.now_playing
	assert playing.ends_at - playing.started_at == 2 * 4000.0

	await scheduler.stop()


@pytest.mark.asyncio
async def test_failing_listener_does_not_stop_playback (scheduler: bside.scheduler.QueueScheduler, clock: ManualClock) -> None:

	"""A broadcast sink that raises does not prevent the advance."""

	def broken (event: bside.scheduler.PatternEvent) -> None:
		raise RuntimeError("sink down")

	sink = RecordingSink()
	scheduler.events.on("pattern", broken)
	scheduler.events.on("pattern", sink)
	scheduler.queue.append(make_pattern("A", 4))

	await scheduler.start()
	clock.advance(16000)
	await scheduler.tick()

	assert scheduler.now_playing.content == "A"
	assert len(sink.received) == 1

	await scheduler.stop()


@pytest.mark.asyncio
async def test_get_queue_info_snapshot (scheduler: bside.scheduler.QueueScheduler, clock: ManualClock) -> None:

	"""Queue info reports remaining time, truncated previews and tempo as plain values."""

	long_content = "x" * 200
	pattern = make_pattern(long_content, 16)
	scheduler.queue.append(pattern)

	await scheduler.start()
	clock.advance(6000)

	info = scheduler.get_queue_info()

	assert info["current_pattern"]["pattern"] == "initial"
	assert info["current_pattern"]["bars"] == 8
	assert info["current_pattern"]["remaining_ms"] == 10000.0
	assert info["queue_length"] == 1
	assert info["queue"] == [{"id": pattern.id, "bars": 16, "preview": "x" * 60 + "..."}]
	assert info["tempo"] == {"bpm": 120, "beats_per_bar": 4}

	info["queue"].clear()
	info["current_pattern"]["pattern"] = "changed"

	assert len(scheduler.queue) == 1
	assert scheduler.now_playing.content == "initial"

	clock.advance(60000)
	assert scheduler.get_queue_info()["current_pattern"]["remaining_ms"] == 0.0

	await scheduler.stop()


@pytest.mark.asyncio
async def test_now_playing_is_a_copy (scheduler: bside.scheduler.QueueScheduler) -> None:

	"""Mutating the returned now-playing value does not touch the scheduler."""

	await scheduler.start()

	copy = scheduler.now_playing
	copy.content = "hijacked"
	copy.ends_at = 0

	assert scheduler.now_playing.content == "initial"
	assert scheduler.now_playing.ends_at != 0

	await scheduler.stop()


@pytest.mark.asyncio
async def test_snapshot_context (scheduler: bside.scheduler.QueueScheduler) -> None:

	"""The generator context lists the current pattern, a queue preview and the tempo."""

	a = make_pattern("A", 4)
	scheduler.queue.append(a)

	context = await scheduler.snapshot_context(target_queue_length=6)

	assert context == {
		"current_pattern": "initial",
		"queue_preview": [{"id": a.id, "bars": 4, "pattern": "A"}],
		"queue_length": 1,
		"target_queue_length": 6,
		"tempo": {"bpm": 120, "beats_per_bar": 4}
	}


@pytest.mark.asyncio
async def test_background_ticks_advance_on_wall_clock () -> None:

	"""The periodic tick task advances through the queue in real time."""

	scheduler = bside.scheduler.QueueScheduler(
		initial_content = "initial",
		initial_bars = 1,
		tempo = bside.tempo.Tempo(bpm=6000, beats_per_bar=1)
	)

	sink = RecordingSink()
	scheduler.events.on("pattern", sink)
	scheduler.queue.append(make_pattern("A", 1))

	await scheduler.start()
	await asyncio.sleep(0.2)
	await scheduler.stop()

	assert sink.received
	assert sink.received[0].content == "A"
	assert all(event.change == "loop" for event in sink.received[1:])


def test_invalid_construction () -> None:

	"""Zero-length initial patterns and zero ticks per bar are rejected."""

	with pytest.raises(ValueError):
		bside.scheduler.QueueScheduler(initial_bars=0)

	with pytest.raises(ValueError):
		bside.scheduler.QueueScheduler(ticks_per_bar=0)


@pytest.mark.asyncio
async def test_overlapping_starts_create_one_tick_task (scheduler: bside.scheduler.QueueScheduler) -> None:

	"""Two starts waiting on the lock together still leave a single tick loop."""

	def tick_loops () -> int:
		return sum(1 for task in asyncio.all_tasks() if task.get_coro().__qualname__ == "QueueScheduler._run")

	async with scheduler.lock:
		first = asyncio.create_task(scheduler.start())
		second = asyncio.create_task(scheduler.start())
		await asyncio.sleep(0)

	await asyncio.gather(first, second)

	assert scheduler.running
	assert tick_loops() == 1

	await scheduler.stop()
