import pytest

import bside.event_emitter


@pytest.mark.asyncio
async def test_on_and_emit () -> None:

	"""Registered sync callbacks are called on emit."""

	emitter = bside.event_emitter.EventEmitter()
	received: list[int] = []

	emitter.on("pattern", lambda v: received.append(v))
	await emitter.emit("pattern", 42)

	assert received == [42]


@pytest.mark.asyncio
async def test_async_listeners_are_awaited () -> None:

	"""Coroutine callbacks run to completion before emit returns."""

	emitter = bside.event_emitter.EventEmitter()
	received: list[str] = []

	async def cb (v: str) -> None:
		received.append(v)

	emitter.on("feedback", cb)
	await emitter.emit("feedback", "like")

	assert received == ["like"]


@pytest.mark.asyncio
async def test_failing_listener_does_not_stop_others () -> None:

	"""A listener that raises is skipped and the rest still receive the event."""

	emitter = bside.event_emitter.EventEmitter()
	received: list[int] = []

	def broken (v: int) -> None:
		raise RuntimeError("boom")

	async def broken_async (v: int) -> None:
		raise RuntimeError("async boom")

	emitter.on("pattern", broken)
	emitter.on("pattern", broken_async)
	emitter.on("pattern", lambda v: received.append(v))

	await emitter.emit("pattern", 3)

	assert received == [3]


@pytest.mark.asyncio
async def test_off_removes_callback () -> None:

	"""off() prevents a previously registered callback from being called."""

	emitter = bside.event_emitter.EventEmitter()
	received: list[int] = []

	def cb (v: int) -> None:
		received.append(v)

	emitter.on("pattern", cb)
	emitter.off("pattern", cb)
	await emitter.emit("pattern", 1)

	assert received == []
	assert emitter.listener_count("pattern") == 0


@pytest.mark.asyncio
async def test_off_only_removes_target_callback () -> None:

	"""off() leaves other callbacks for the same event intact."""

	emitter = bside.event_emitter.EventEmitter()
	a: list[int] = []
	b: list[int] = []

	def cb_a (v: int) -> None:
		a.append(v)

	def cb_b (v: int) -> None:
		b.append(v)

	emitter.on("pattern", cb_a)
	emitter.on("pattern", cb_b)
	emitter.off("pattern", cb_a)
	await emitter.emit("pattern", 7)

	assert a == []
	assert b == [7]


def test_off_raises_for_unregistered_callback () -> None:

	"""off() raises ValueError when the callback was never registered."""

	emitter = bside.event_emitter.EventEmitter()

	with pytest.raises(ValueError, match="pattern"):
		emitter.off("pattern", lambda: None)


def test_off_raises_after_already_removed () -> None:

	"""off() raises ValueError when called twice for the same callback."""

	emitter = bside.event_emitter.EventEmitter()

	def cb (v: int) -> None:
		pass

	emitter.on("pattern", cb)
	emitter.off("pattern", cb)

	with pytest.raises(ValueError):
		emitter.off("pattern", cb)
