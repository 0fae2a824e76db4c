import asyncio
import logging
import signal
import typing

import bside.agent
import bside.clock
import bside.constants
import bside.event_emitter
import bside.feedback
import bside.generator
import bside.osc
import bside.scheduler
import bside.style_memory
import bside.tempo
import bside.web_ui


logger = logging.getLogger(__name__)


async def run_until_stopped (station: "Station") -> None:

	"""
	Run the station until a stop signal is received.
	"""

	logger.info("Station on air. Press Ctrl+C to stop.")

	await station.start()

	stop_event = asyncio.Event()
	loop = asyncio.get_running_loop()

	def _request_stop () -> None:

		"""
		Signal handler to request a clean shutdown.
		"""

		stop_event.set()

	for sig in (signal.SIGINT, signal.SIGTERM):
		loop.add_signal_handler(sig, _request_stop)

	try:
		await stop_event.wait()
	finally:
		await station.stop()


class Station:

	"""
	The top-level controller for a stream.

	The ``Station`` owns the tempo, the :class:`~bside.scheduler.QueueScheduler`
	that plays patterns, and the :class:`~bside.agent.Agent` that keeps the
	queue stocked from a pattern generator and listener feedback. Optional
	transports (WebSocket listeners, OSC) are attached before playing.

	Typical workflow:
	1. Create a ``Station`` with a tempo and a generator.
	2. Enable transports with ``web_ui()`` and/or ``osc()`` (optional).
	3. Call ``play()``.
	"""

	def __init__ (
		self,
		bpm: float = bside.constants.DEFAULT_BPM,
		beats_per_bar: int = bside.constants.DEFAULT_BEATS_PER_BAR,
		initial_pattern: str = bside.constants.DEFAULT_PATTERN,
		initial_bars: int = bside.constants.DEFAULT_PATTERN_BARS,
		generator: typing.Optional[bside.generator.PatternGenerator] = None,
		min_queue_length: int = bside.constants.MIN_QUEUE_LENGTH,
		target_queue_length: int = bside.constants.TARGET_QUEUE_LENGTH,
		maintenance_interval: float = bside.constants.MAINTENANCE_INTERVAL_SECONDS,
		major_change_threshold: int = bside.constants.MAJOR_CHANGE_THRESHOLD,
		ticks_per_bar: int = 1,
		clock: bside.clock.Clock = bside.clock.wall_clock_ms
	) -> None:

		"""
		Initialize a new station.

		Parameters:
			bpm: Tempo in beats per minute (default 120).
			beats_per_bar: Beats in one bar (default 4).
			initial_pattern: Pattern played until the queue has something.
			initial_bars: Its length in bars.
			generator: Source of queue edits. When omitted an
				:class:`~bside.generator.AnthropicGenerator` is created, which
				needs ``ANTHROPIC_API_KEY``.
			min_queue_length: Maintenance tops up below this length.
			target_queue_length: Length the generator is asked to reach.
			maintenance_interval: Seconds between maintenance checks.
			major_change_threshold: Feedback items needed before a major change.
			ticks_per_bar: Boundary checks per bar.
			clock: Millisecond clock.

		Example:
			```python
			station = bside.Station(bpm=124, generator=bside.StaticGenerator(patterns))
			station.web_ui(port=8765)
			station.play()
			```
		"""

		self.events = bside.event_emitter.EventEmitter()
		self.clock = clock

		self.scheduler = bside.scheduler.QueueScheduler(
			initial_content = initial_pattern,
			initial_bars = initial_bars,
			tempo = bside.tempo.Tempo(bpm=bpm, beats_per_bar=beats_per_bar),
			events = self.events,
			clock = clock,
			ticks_per_bar = ticks_per_bar
		)

		self.agent = bside.agent.Agent(
			scheduler = self.scheduler,
			generator = generator if generator is not None else bside.generator.AnthropicGenerator(),
			style_memory = bside.style_memory.StyleMemory(),
			events = self.events,
			clock = clock,
			min_queue_length = min_queue_length,
			target_queue_length = target_queue_length,
			maintenance_interval = maintenance_interval,
			major_change_threshold = major_change_threshold
		)

		self._web_ui: typing.Optional[bside.web_ui.WebUI] = None
		self._osc_bridge: typing.Optional[bside.osc.OscBridge] = None

	@property
	def tempo (self) -> bside.tempo.Tempo:
		return self.scheduler.tempo

	def on_event (self, event_name: str, callback: typing.Callable[..., typing.Any]) -> None:

		"""
		Register a callback for ``"pattern"``, ``"feedback"`` or ``"major_change"``.
		"""

		self.events.on(event_name, callback)

	def web_ui (self, port: int = bside.constants.DEFAULT_WS_PORT, host: str = "0.0.0.0") -> None:

		"""
		Enable the listener WebSocket.

		Parameters:
			port: TCP port (default 8765).
			host: Interface to bind (default all).
		"""

		self._web_ui = bside.web_ui.WebUI(self, host=host, port=port)

	def osc (self, receive_port: int = 9000, send_port: int = bside.constants.DEFAULT_OSC_PORT, send_host: str = bside.constants.DEFAULT_OSC_HOST) -> None:

		"""
		Enable the OSC bridge.

		Pattern changes are sent to ``send_host:send_port``; controllers can
		send ``/like``, ``/dislike``, ``/suggestion`` and ``/bpm`` to
		``receive_port``.
		"""

		self._osc_bridge = bside.osc.OscBridge(
			self,
			receive_port = receive_port,
			send_port = send_port,
			send_host = send_host
		)

	def set_bpm (self, bpm: float) -> None:

		"""
		Change the tempo for every pattern that starts from now on.

		The pattern already playing keeps its end time.
		"""

		self.scheduler.set_tempo(self.scheduler.tempo.with_bpm(bpm))

	async def submit_feedback (self, source_id: str, kind: str, text: typing.Optional[str] = None) -> bside.feedback.FeedbackItem:

		"""
		Accept one piece of listener feedback.

		The item is broadcast as a ``"feedback"`` event and handed to the
		agent, which may trigger a major change before this returns.

		Raises:
			ValueError: If ``kind`` is not like, dislike or suggestion.
		"""

		item = bside.feedback.FeedbackItem.create(source_id, kind, text, clock=self.clock)

		logger.info(f"Feedback from {source_id}: {kind}{': ' + text if text else ''}")

		await self.events.emit("feedback", item)
		await self.agent.process_feedback(item)

		return item

	def status (self) -> typing.Dict[str, typing.Any]:

		"""Playback snapshot: now playing, queue previews, tempo."""

		return self.scheduler.get_queue_info()

	def health (self) -> typing.Dict[str, typing.Any]:

		return {
			"status": "ok",
			"scheduler": self.scheduler.state.value,
			"agent_running": self.agent.running,
			"feedback": len(self.agent.feedback),
			"listeners": self._web_ui.client_count if self._web_ui is not None else 0,
			"pending_generations": self.agent.in_flight
		}

	def style_summary (self) -> typing.Dict[str, typing.Any]:
		return self.agent.style_summary()

	def export_style_profile (self) -> typing.Dict[str, typing.Any]:
		return self.agent.export_style_profile()

	async def start (self) -> None:

		"""Start transports, then the scheduler, then the agent."""

		if self._web_ui is not None:
			await self._web_ui.start()

		if self._osc_bridge is not None:
			await self._osc_bridge.start()

		await self.scheduler.start()
		self.agent.start()

	async def stop (self) -> None:

		"""Stop everything started by :meth:`start`, in reverse order."""

		await self.agent.shutdown()
		await self.scheduler.stop()

		if self._osc_bridge is not None:
			await self._osc_bridge.stop()

		if self._web_ui is not None:
			await self._web_ui.stop()

	def play (self) -> None:

		"""
		Start the station.

		This call blocks until the program is interrupted (e.g., via Ctrl+C).
		"""

		try:
			asyncio.run(run_until_stopped(self))

		except KeyboardInterrupt:
			pass
