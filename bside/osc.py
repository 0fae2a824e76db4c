"""OSC bridge to an audio engine and hardware controllers.

Enable it with ``station.osc()`` before ``station.play()``. Every pattern
change is sent to the audio engine at the send host/port (default
127.0.0.1:9001); the bridge also listens on a UDP port (default 9000) so
controllers can leave feedback or change tempo.

Built-in Receive Handlers
─────────────────────────
- ``/like``: Register a like
- ``/dislike``: Register a dislike
- ``/suggestion <string>``: Register a suggestion
- ``/bpm <float>``: Set tempo

Built-in Send Events
────────────────────
- ``/pattern <string> <int>``: Pattern content and bar count on every advance or loop
- ``/queue <int>``: Remaining queue length after each change
"""

import asyncio
import logging
import typing

import pythonosc.dispatcher
import pythonosc.osc_server
import pythonosc.udp_client

import bside.constants
import bside.scheduler

if typing.TYPE_CHECKING:
	from bside.station import Station


logger = logging.getLogger(__name__)


class OscBridge:

	"""Async OSC server/client wired to a station."""

	def __init__ (
		self,
		station: "Station",
		receive_port: int = 9000,
		send_port: int = bside.constants.DEFAULT_OSC_PORT,
		send_host: str = bside.constants.DEFAULT_OSC_HOST
	) -> None:

		self._station = station
		self._receive_port = receive_port
		self._send_port = send_port
		self._send_host = send_host

		self._transport: typing.Optional[asyncio.BaseTransport] = None
		self._client: typing.Optional[pythonosc.udp_client.SimpleUDPClient] = None
		self._dispatcher = pythonosc.dispatcher.Dispatcher()
		self._pending: typing.Set[asyncio.Task] = set()

		self._dispatcher.map("/like", self._handle_like)
		self._dispatcher.map("/dislike", self._handle_dislike)
		self._dispatcher.map("/suggestion", self._handle_suggestion)
		self._dispatcher.map("/bpm", self._handle_bpm)

	@property
	def port (self) -> typing.Optional[int]:

		"""The UDP port actually bound, once started."""

		if self._transport is None:
			return None

		return self._transport.get_extra_info("sockname")[1]

	async def start (self) -> None:

		"""Open the sending client and start listening."""

		self._client = pythonosc.udp_client.SimpleUDPClient(self._send_host, self._send_port)

		server = pythonosc.osc_server.AsyncIOOSCUDPServer(
			("0.0.0.0", self._receive_port),
			self._dispatcher,
			asyncio.get_running_loop()  # type: ignore[arg-type]
		)

		transport, _ = await server.create_serve_endpoint()
		self._transport = transport

		self._station.on_event("pattern", self.send_pattern)

		logger.info(f"OSC listening on :{self.port}, sending to {self._send_host}:{self._send_port}")

	async def stop (self) -> None:

		"""Stop listening and stop forwarding pattern changes."""

		if self._transport is None:
			return

		self._station.events.off("pattern", self.send_pattern)
		self._transport.close()
		self._transport = None

		logger.info("OSC bridge stopped")

	def send (self, address: str, *args: typing.Any) -> None:

		"""Send an OSC message to the audio engine."""

		if self._client is None:
			return

		try:
			self._client.send_message(address, list(args))
		except Exception as exc:
			logger.warning(f"OSC send error: {exc}")

	def send_pattern (self, event: bside.scheduler.PatternEvent) -> None:

		self.send("/pattern", event.content, event.bar_count)
		self.send("/queue", event.remaining_queue_length)

	# Handlers

	def _submit (self, kind: str, text: typing.Optional[str] = None) -> None:

		task = asyncio.ensure_future(self._station.submit_feedback("osc", kind, text))
		self._pending.add(task)
		task.add_done_callback(self._submitted)

	def _submitted (self, task: asyncio.Future) -> None:

		self._pending.discard(task)

		if task.cancelled():
			return

		exc = task.exception()

		if exc is not None:
			logger.warning(f"OSC feedback failed: {exc}")

	def _handle_like (self, address: str, *args: typing.Any) -> None:
		self._submit(bside.constants.FEEDBACK_LIKE)

	def _handle_dislike (self, address: str, *args: typing.Any) -> None:
		self._submit(bside.constants.FEEDBACK_DISLIKE)

	def _handle_suggestion (self, address: str, *args: typing.Any) -> None:

		if not args:
			return

		self._submit(bside.constants.FEEDBACK_SUGGESTION, " ".join(str(arg) for arg in args))

	def _handle_bpm (self, address: str, *args: typing.Any) -> None:

		if not args:
			return

		try:
			self._station.set_bpm(float(args[0]))
		except (ValueError, TypeError):
			logger.warning(f"Invalid OSC BPM argument: {args[0]}")
