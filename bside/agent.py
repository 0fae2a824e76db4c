"""The agent that keeps the queue stocked and reacts to listeners.

Two triggers lead to the same action, *ask the generator for queue edits and
apply them*:

- **Maintenance.** Every ``maintenance_interval`` seconds, if the queue has
  fewer than ``min_queue_length`` patterns, the agent asks for more.
- **Major change.** Each feedback item is scored into the
  :class:`~bside.style_memory.StyleMemory`. If enough feedback has arrived
  since the last major change and it is negative (more dislikes than likes)
  or directive (two or more suggestions), the agent asks for a new
  direction, clears the queue and refills it from the answer.

The generator call is the slow part and runs without holding the scheduler
lock. The lock is taken twice: once to snapshot the context and once to apply
the edits. Whatever happened to the queue in between, the edits still apply
in order, with missing ids treated as no-ops.

A failing generator is logged and the attempt is dropped. The queue and the
now-playing pattern are left exactly as they were and playback carries on,
looping the current pattern if the queue runs dry.
"""

import asyncio
import logging
import typing

import bside.clock
import bside.constants
import bside.edits
import bside.event_emitter
import bside.feedback
import bside.generator
import bside.scheduler
import bside.style_memory


logger = logging.getLogger(__name__)


class Agent:

	"""Regeneration policy for a :class:`~bside.scheduler.QueueScheduler`."""

	def __init__ (
		self,
		scheduler: bside.scheduler.QueueScheduler,
		generator: bside.generator.PatternGenerator,
		style_memory: typing.Optional[bside.style_memory.StyleMemory] = None,
		events: typing.Optional[bside.event_emitter.EventEmitter] = None,
		clock: typing.Optional[bside.clock.Clock] = None,
		min_queue_length: int = bside.constants.MIN_QUEUE_LENGTH,
		target_queue_length: int = bside.constants.TARGET_QUEUE_LENGTH,
		maintenance_interval: float = bside.constants.MAINTENANCE_INTERVAL_SECONDS,
		major_change_threshold: int = bside.constants.MAJOR_CHANGE_THRESHOLD
	) -> None:

		"""
		Parameters:
			scheduler: Owner of the queue and the now-playing slot.
			generator: Source of queue edits.
			style_memory: Preference model (a new one when omitted).
			events: Emitter for ``"major_change"`` events; defaults to the
				scheduler's.
			clock: Millisecond clock; defaults to the scheduler's.
			min_queue_length: Maintenance tops up below this length.
			target_queue_length: Length the generator is asked to reach.
			maintenance_interval: Seconds between maintenance checks.
			major_change_threshold: Feedback items since the last major
				change needed before one is considered.
		"""

		if min_queue_length < 0 or target_queue_length < min_queue_length:
			raise ValueError("Queue bounds must satisfy 0 <= min_queue_length <= target_queue_length")

		if maintenance_interval <= 0:
			raise ValueError("maintenance_interval must be positive")

		self.scheduler = scheduler
		self.generator = generator
		self.style_memory = style_memory if style_memory is not None else bside.style_memory.StyleMemory()
		self.events = events if events is not None else scheduler.events
		self.clock = clock if clock is not None else scheduler.clock

		self.min_queue_length = min_queue_length
		self.target_queue_length = target_queue_length
		self.maintenance_interval = maintenance_interval
		self.major_change_threshold = major_change_threshold

		self.feedback: typing.List[bside.feedback.FeedbackItem] = []
		self.last_major_change: float = self.clock()
		self.running = False

		self._task: typing.Optional[asyncio.Task] = None
		self._first_run = True
		self._in_flight: typing.Set[asyncio.Task] = set()

	# Lifecycle

	def start (self) -> None:

		"""Start periodic maintenance. Must be called from a running event loop."""

		if self.running:
			logger.info("Agent already running")
			return

		self.running = True
		self._task = asyncio.create_task(self._run())

		logger.info(f"Agent started (maintenance every {self.maintenance_interval:g}s)")

	async def stop (self) -> None:

		"""Stop periodic maintenance.

		Generator calls already in flight are not cancelled and still apply
		their edits when they complete.
		"""

		self.running = False

		if self._task is not None:
			self._task.cancel()

			try:
				await self._task
			except asyncio.CancelledError:
				pass

			self._task = None

		logger.info("Agent stopped")

	async def shutdown (self) -> None:

		"""Stop maintenance and cancel every in-flight regeneration."""

		await self.stop()

		pending = list(self._in_flight)

		for task in pending:
			task.cancel()

		if pending:
			await asyncio.gather(*pending, return_exceptions=True)

	@property
	def in_flight (self) -> int:

		"""Number of regenerations waiting on the generator."""

		return len(self._in_flight)

	async def _run (self) -> None:

		while self.running:

			try:
				await self.maintain()
			except Exception as exc:
				logger.warning(f"Queue maintenance failed: {exc}")

			await asyncio.sleep(self.maintenance_interval)

	# Feedback

	def recent_feedback (self, count: int = bside.constants.MAJOR_CHANGE_FEEDBACK_WINDOW) -> typing.List[bside.feedback.FeedbackItem]:

		"""The last ``count`` feedback items, oldest first."""

		if count <= 0:
			return []

		return self.feedback[-count:]

	def record_feedback (self, item: bside.feedback.FeedbackItem) -> None:

		"""Append to the feedback log without acting on it."""

		self.feedback.append(item)

	async def process_feedback (self, item: bside.feedback.FeedbackItem) -> bool:

		"""Log ``item``, fold it into the style memory and maybe regenerate.

		While the agent is stopped the item is only logged. Returns True when
		a major change was triggered.
		"""

		self.record_feedback(item)

		if not self.running:
			return False

		self.style_memory.process_feedback(item, self.scheduler.now_playing.content)

		window = [f for f in self.recent_feedback() if f.timestamp > self.last_major_change]

		if not self.should_make_major_change(window):
			return False

		logger.info("Major change triggered by feedback")
		await self.major_change()

		return True

	def should_make_major_change (self, window: typing.Sequence[bside.feedback.FeedbackItem]) -> bool:

		"""Decide whether ``window`` calls for clearing and refilling the queue."""

		if len(window) < self.major_change_threshold:
			return False

		counts = bside.feedback.count_kinds(window)

		return (
			counts[bside.constants.FEEDBACK_DISLIKE] > counts[bside.constants.FEEDBACK_LIKE]
			or counts[bside.constants.FEEDBACK_SUGGESTION] >= 2
		)

	# Regeneration

	async def maintain (self) -> typing.Optional[int]:

		"""Top up the queue if it is short. Returns edits applied, or ``None``."""

		queue_length = len(self.scheduler.queue)
		first_run = self._first_run
		self._first_run = False

		if queue_length >= self.min_queue_length and not (first_run and queue_length == 0):
			return None

		logger.info(f"Queue has {queue_length} pattern(s), requesting more")

		return await self._track(self.regenerate(
			major_change = False,
			feedback_window = bside.constants.MAINTENANCE_FEEDBACK_WINDOW
		))

	async def major_change (self) -> typing.Optional[int]:

		"""Clear the queue and refill it in a new direction.

		``last_major_change`` only moves forward when the generator answered.
		"""

		applied = await self._track(self.regenerate(
			major_change = True,
			feedback_window = bside.constants.MAJOR_CHANGE_FEEDBACK_WINDOW
		))

		if applied is not None:
			self.last_major_change = self.clock()
			await self.events.emit("major_change", applied)

		return applied

	async def _track (self, coro: typing.Coroutine[typing.Any, typing.Any, typing.Optional[int]]) -> typing.Optional[int]:

		# Shielded so that stopping maintenance does not cancel a request
		# that is already waiting on the generator.
		task = asyncio.create_task(coro)
		self._in_flight.add(task)
		task.add_done_callback(self._in_flight.discard)

		return await asyncio.shield(task)

	async def regenerate (self, major_change: bool = False, feedback_window: int = bside.constants.MAINTENANCE_FEEDBACK_WINDOW) -> typing.Optional[int]:

		"""Request edits from the generator and apply them.

		With ``major_change`` the queue is cleared, in the same critical section,
		just before the edits are applied. Returns the number of edits that took
		effect, or ``None`` if the generator failed.
		"""

		context = await self.scheduler.snapshot_context(self.target_queue_length)

		request = bside.generator.GenerationRequest(
			context = context,
			feedback = tuple(self.recent_feedback(feedback_window)),
			style_summary = self.style_memory.summary(),
			major_change = major_change
		)

		try:
			raw = await self.generator.generate(request)

		except asyncio.CancelledError:
			raise

		except Exception as exc:
			logger.warning(f"Pattern generation failed, keeping the current queue: {exc}")
			return None

		edits = bside.edits.parse_operations(raw)

		async with self.scheduler.lock:

			if major_change:
				self.scheduler.queue.clear()

			applied = bside.edits.apply_operations(self.scheduler.queue, edits, self.clock)
			queue_length = len(self.scheduler.queue)

		kind = "major change" if major_change else "maintenance"
		logger.info(f"Applied {applied}/{len(edits)} edit(s) ({kind}) - Queue: {queue_length}")

		return applied

	# Introspection

	def style_summary (self) -> typing.Dict[str, typing.Any]:
		return self.style_memory.summary()

	def export_style_profile (self) -> typing.Dict[str, typing.Any]:
		return self.style_memory.export_profile()
