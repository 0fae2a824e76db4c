"""Playback scheduling: the now-playing slot and the queue behind it.

:class:`QueueScheduler` owns the station's mutable playback state: the single
:class:`NowPlaying` pattern and the :class:`~bside.pattern_queue.PatternQueue`.
A periodic tick (once per bar by default) checks whether the current pattern
has run out. When it has, the next queued pattern starts; with nothing queued
the current pattern loops. Each change is published as a
:class:`PatternEvent` on the ``"pattern"`` event.

Timing is wall-clock, in milliseconds. A tick advances at most once, so after
a long stall (a suspended process, a blocked loop) the scheduler resumes with
the next pattern rather than skipping through the queue to catch up.

Everyone who reads or edits the queue holds :attr:`QueueScheduler.lock` for
the duration of one logical step.
"""

import asyncio
import dataclasses
import enum
import logging
import typing

import bside.clock
import bside.constants
import bside.event_emitter
import bside.pattern_queue
import bside.tempo


logger = logging.getLogger(__name__)


class SchedulerState (enum.Enum):

	UNINITIALIZED = "uninitialized"
	RUNNING = "running"
	STOPPED = "stopped"


@dataclasses.dataclass
class NowPlaying:

	"""
	The pattern currently sounding.

	Attributes:
		id: Identifier carried over from the queued pattern.
		content: The pattern string.
		bars: Length in bars.
		started_at: When this pass of the pattern began (ms).
		ends_at: ``started_at + bars * bar_duration_ms`` at the tempo in
			force when it started.
	"""

	id: str
	content: str
	bars: int
	started_at: float = 0.0
	ends_at: float = 0.0

	@property
	def duration_ms (self) -> float:
		return self.ends_at - self.started_at


@dataclasses.dataclass(frozen=True)
class PatternEvent:

	"""
	Published on every advance or loop.

	Attributes:
		content: The pattern that is now playing.
		bar_count: Its length in bars.
		timestamp: When it started (ms).
		remaining_queue_length: Patterns still queued behind it.
		change: ``"advance"`` for a new pattern, ``"loop"`` for a repeat.
	"""

	content: str
	bar_count: int
	timestamp: float
	remaining_queue_length: int
	change: str = "advance"

	def as_dict (self) -> typing.Dict[str, typing.Any]:

		return {
			"pattern": self.content,
			"bars": self.bar_count,
			"timestamp": self.timestamp,
			"queue_length": self.remaining_queue_length,
			"change": self.change
		}


def _preview (content: str, length: int = bside.constants.QUEUE_PREVIEW_LENGTH) -> str:

	if len(content) <= length:
		return content

	return content[:length] + "..."


class QueueScheduler:

	"""
	Advance the now-playing pattern through the queue on bar boundaries.

	Example:
		```python
		scheduler = QueueScheduler(initial_content='note("c3 e3").s("sine")', initial_bars=8)
		scheduler.events.on("pattern", lambda event: print(event.content))
		await scheduler.start()
		```
	"""

	def __init__ (
		self,
		initial_content: str = bside.constants.DEFAULT_PATTERN,
		initial_bars: int = bside.constants.DEFAULT_PATTERN_BARS,
		tempo: typing.Optional[bside.tempo.Tempo] = None,
		queue: typing.Optional[bside.pattern_queue.PatternQueue] = None,
		events: typing.Optional[bside.event_emitter.EventEmitter] = None,
		clock: bside.clock.Clock = bside.clock.wall_clock_ms,
		ticks_per_bar: int = 1
	) -> None:

		"""
		Parameters:
			initial_content: Pattern to play before anything is queued.
			initial_bars: Its length in bars.
			tempo: Station tempo (default 120 BPM, 4 beats per bar).
			queue: Queue to draw from; a new empty one when omitted.
			events: Emitter to publish ``"pattern"`` events on.
			clock: Millisecond clock, replaceable in tests.
			ticks_per_bar: How many times per bar to check for a boundary.
				One check per bar can leave a pattern running up to a bar
				late; more checks tighten that at the cost of more wakeups.
		"""

		if initial_bars <= 0:
			raise ValueError("Pattern length in bars must be positive")

		if ticks_per_bar <= 0:
			raise ValueError("ticks_per_bar must be positive")

		self.tempo = tempo if tempo is not None else bside.tempo.Tempo()
		self.queue = queue if queue is not None else bside.pattern_queue.PatternQueue()
		self.events = events if events is not None else bside.event_emitter.EventEmitter()
		self.clock = clock
		self.ticks_per_bar = ticks_per_bar

		self.lock = asyncio.Lock()
		self.state = SchedulerState.UNINITIALIZED
		self.task: typing.Optional[asyncio.Task] = None

		self._now_playing = NowPlaying(
			id = bside.pattern_queue.new_pattern_id(),
			content = initial_content,
			bars = initial_bars
		)

	@property
	def running (self) -> bool:
		return self.state is SchedulerState.RUNNING

	@property
	def now_playing (self) -> NowPlaying:

		"""A copy of the now-playing slot. Changing it has no effect."""

		return dataclasses.replace(self._now_playing)

	@property
	def tick_interval (self) -> float:

		"""Seconds between ticks at the current tempo."""

		return self.tempo.bar_duration_ms / self.ticks_per_bar / 1000.0

	def set_tempo (self, tempo: bside.tempo.Tempo) -> None:

		"""Use ``tempo`` for every pattern that starts from now on.

		The pattern already playing keeps its end time.
		"""

		self.tempo = tempo
		logger.info(f"Tempo set to {tempo.bpm:.2f} BPM, {tempo.beats_per_bar} beats per bar")

	def _start_pass (self, now: float) -> None:

		self._now_playing.started_at = now
		self._now_playing.ends_at = now + self.tempo.bars_to_ms(self._now_playing.bars)

	def _initialize (self) -> None:

		now = self.clock()
		self._start_pass(now)

		seconds = round((self._now_playing.ends_at - now) / 1000)
		logger.info(f"Initialized current pattern ({self._now_playing.bars} bars, ends in {seconds}s)")

	async def start (self) -> None:

		"""Begin ticking. The first start also starts the current pattern's clock."""

		async with self.lock:

			if self.running:
				return

			if self.state is SchedulerState.UNINITIALIZED:
				self._initialize()

			self.state = SchedulerState.RUNNING

		self.task = asyncio.create_task(self._run())

		logger.info(f"Scheduler started (checking every {self.tick_interval * 1000:.0f}ms)")

	async def stop (self) -> None:

		"""Stop ticking. The now-playing slot and the queue are left as they are."""

		if not self.running:
			return

		self.state = SchedulerState.STOPPED

		if self.task is not None:
			self.task.cancel()

			try:
				await self.task
			except asyncio.CancelledError:
				pass

			self.task = None

		logger.info("Scheduler stopped")

	async def _run (self) -> None:

		while self.running:

			# Re-read every cycle so tempo changes alter the tick period.
			await asyncio.sleep(self.tick_interval)

			try:
				await self.tick()
			except Exception as exc:
				logger.warning(f"Scheduler tick failed: {exc}")

	async def tick (self) -> typing.Optional[PatternEvent]:

		"""Advance or loop if the current pattern has ended.

		Returns the published event, or ``None`` when nothing changed. Calling
		this before the current pattern's end time is always a no-op.
		"""

		async with self.lock:

			if self.state is SchedulerState.UNINITIALIZED:
				return None

			now = self.clock()

			if now < self._now_playing.ends_at:
				return None

			upcoming = self.queue.pop_front()

			if upcoming is not None:
				event = self._play(upcoming, now)
			else:
				event = self._loop(now)

		await self.events.emit("pattern", event)

		return event

	def _play (self, pattern: bside.pattern_queue.QueuedPattern, now: float) -> PatternEvent:

		self._now_playing = NowPlaying(id=pattern.id, content=pattern.content, bars=pattern.bars)
		self._start_pass(now)

		remaining = len(self.queue)
		seconds = round(self._now_playing.duration_ms / 1000)
		logger.info(f"Playing next pattern ({pattern.bars} bars, {seconds}s) - Queue: {remaining} remaining")

		return PatternEvent(
			content = pattern.content,
			bar_count = pattern.bars,
			timestamp = now,
			remaining_queue_length = remaining,
			change = "advance"
		)

	def _loop (self, now: float) -> PatternEvent:

		self._start_pass(now)

		logger.info("Queue empty, looping current pattern")

		return PatternEvent(
			content = self._now_playing.content,
			bar_count = self._now_playing.bars,
			timestamp = now,
			remaining_queue_length = 0,
			change = "loop"
		)

	def current_event (self) -> PatternEvent:

		"""Describe the now-playing pattern as an event, for late joiners."""

		return PatternEvent(
			content = self._now_playing.content,
			bar_count = self._now_playing.bars,
			timestamp = self._now_playing.started_at,
			remaining_queue_length = len(self.queue),
			change = "current"
		)

	async def snapshot_context (self, target_queue_length: int = bside.constants.TARGET_QUEUE_LENGTH) -> typing.Dict[str, typing.Any]:

		"""Read the generator context under the lock.

		The returned dict holds copies only and stays valid after the lock is
		released.
		"""

		async with self.lock:

			return {
				"current_pattern": self._now_playing.content,
				"queue_preview": [
					{"id": item.id, "bars": item.bars, "pattern": item.content}
					for item in self.queue.peek(bside.constants.QUEUE_CONTEXT_PREVIEW)
				],
				"queue_length": len(self.queue),
				"target_queue_length": target_queue_length,
				"tempo": self.tempo.as_dict()
			}

	def get_queue_info (self) -> typing.Dict[str, typing.Any]:

		"""Snapshot of playback for status surfaces. Contains plain values only."""

		now = self.clock()

		return {
			"state": self.state.value,
			"current_pattern": {
				"id": self._now_playing.id,
				"pattern": self._now_playing.content,
				"bars": self._now_playing.bars,
				"remaining_ms": max(0.0, self._now_playing.ends_at - now)
			},
			"queue": [
				{"id": item.id, "bars": item.bars, "preview": _preview(item.content)}
				for item in self.queue
			],
			"queue_length": len(self.queue),
			"tempo": self.tempo.as_dict()
		}
