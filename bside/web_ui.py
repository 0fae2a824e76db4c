"""WebSocket transport for listeners.

Enable with ``station.web_ui()`` before ``station.play()``. Every message is
a JSON object with a ``type`` field.

Server to client
────────────────
- ``pattern-update``: ``{pattern, bars, timestamp, queue_length, change}``,
  sent on every advance or loop and once on connect
- ``feedback-history``: ``{items: [...]}``, sent once on connect
- ``feedback-update``: one feedback item, sent to everyone when it arrives
- ``status``: the reply to a ``status`` request
- ``error``: the reply to a message that could not be handled

Client to server
────────────────
- ``{"type": "feedback", "kind": "like" | "dislike" | "suggestion", "text": "..."}``
- ``{"type": "status"}``
"""

import json
import logging
import typing

import websockets
import websockets.asyncio.server
import websockets.exceptions

import bside.constants
import bside.feedback
import bside.scheduler

if typing.TYPE_CHECKING:
	from bside.station import Station


logger = logging.getLogger(__name__)


class WebUI:

	"""
	Background WebSocket server that pushes pattern changes to listeners and
	collects their feedback without blocking playback.
	"""

	def __init__ (self, station: "Station", host: str = "0.0.0.0", port: int = bside.constants.DEFAULT_WS_PORT) -> None:

		self._station = station
		self.host = host
		self.port = port
		self._ws_server: typing.Optional[websockets.asyncio.server.Server] = None
		self._clients: typing.Set[websockets.asyncio.server.ServerConnection] = set()

	@property
	def client_count (self) -> int:
		return len(self._clients)

	@property
	def bound_port (self) -> typing.Optional[int]:

		"""The TCP port actually bound, once started."""

		if self._ws_server is None:
			return None

		for sock in self._ws_server.sockets:
			return sock.getsockname()[1]

		return None

	async def start (self) -> None:

		self._ws_server = await websockets.asyncio.server.serve(self._handle_client, self.host, self.port)

		self._station.on_event("pattern", self._broadcast_pattern)
		self._station.on_event("feedback", self._broadcast_feedback)

		logger.info(f"Listener WebSocket available at ws://{self.host}:{self.bound_port}")

	async def stop (self) -> None:

		if self._ws_server is None:
			return

		self._station.events.off("pattern", self._broadcast_pattern)
		self._station.events.off("feedback", self._broadcast_feedback)

		self._ws_server.close()
		await self._ws_server.wait_closed()
		self._ws_server = None

		logger.info("Listener WebSocket stopped")

	async def _handle_client (self, websocket: websockets.asyncio.server.ServerConnection) -> None:

		self._clients.add(websocket)
		source_id = str(websocket.id)
		logger.info(f"Listener connected: {source_id}")

		try:
			await websocket.send(self._encode("pattern-update", self._station.scheduler.current_event().as_dict()))
			await websocket.send(self._encode("feedback-history", {"items": [item.as_dict() for item in self._station.agent.feedback]}))

			async for message in websocket:
				reply = await self._handle_message(source_id, message)

				if reply is not None:
					await websocket.send(reply)

		except websockets.exceptions.ConnectionClosed:
			pass

		finally:
			self._clients.discard(websocket)
			logger.info(f"Listener disconnected: {source_id}")

	async def _handle_message (self, source_id: str, message: typing.Union[str, bytes]) -> typing.Optional[str]:

		"""Handle one client message, returning a reply to send back, if any."""

		try:
			data = json.loads(message)
		except ValueError:
			logger.warning(f"Ignoring non-JSON message from {source_id}")
			return self._encode("error", {"message": "Messages must be JSON"})

		if not isinstance(data, dict):
			return self._encode("error", {"message": "Messages must be JSON objects"})

		message_type = data.get("type")

		if message_type == "status":
			return self._encode("status", self._station.status())

		if message_type != "feedback":
			return self._encode("error", {"message": f"Unknown message type {message_type!r}"})

		text = data.get("text")

		try:
			await self._station.submit_feedback(source_id, str(data.get("kind")), text if isinstance(text, str) else None)
		except ValueError as exc:
			logger.warning(f"Rejected feedback from {source_id}: {exc}")
			return self._encode("error", {"message": str(exc)})

		return None

	def _encode (self, message_type: str, payload: typing.Dict[str, typing.Any]) -> str:
		return json.dumps({"type": message_type, **payload})

	def _broadcast_pattern (self, event: bside.scheduler.PatternEvent) -> None:

		if self._clients:
			websockets.broadcast(self._clients, self._encode("pattern-update", event.as_dict()))

	def _broadcast_feedback (self, item: bside.feedback.FeedbackItem) -> None:

		if self._clients:
			websockets.broadcast(self._clients, self._encode("feedback-update", item.as_dict()))
