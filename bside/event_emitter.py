"""Broadcast sinks for station events.

The scheduler and the agent publish through an :class:`EventEmitter`;
transports (the WebSocket UI, the OSC sink, tests) subscribe to it. Events:

- ``"pattern"``: a :class:`~bside.scheduler.PatternEvent` on every advance or loop
- ``"feedback"``: each accepted :class:`~bside.feedback.FeedbackItem`
- ``"major_change"``: the number of edits applied by a feedback-driven regeneration
"""

import asyncio
import inspect
import logging
import typing


logger = logging.getLogger(__name__)

CallbackType = typing.Callable[..., typing.Any]


class EventEmitter:

	"""
	Registry of sync and async listeners keyed by event name.

	A listener that raises is logged and skipped; the remaining listeners
	still run and the publisher never sees the error.
	"""

	def __init__ (self) -> None:

		self._listeners: typing.Dict[str, typing.List[CallbackType]] = {}


	def on (self, event_name: str, callback: CallbackType) -> None:

		"""Register a callback for an event name."""

		self._listeners.setdefault(event_name, []).append(callback)

	def off (self, event_name: str, callback: CallbackType) -> None:

		"""
		Unregister a previously registered callback.

		Raises ``ValueError`` if the callback is not registered for the event.
		"""

		if callback not in self._listeners.get(event_name, []):
			raise ValueError(f"Callback not registered for event {event_name!r}")

		self._listeners[event_name].remove(callback)

	def listener_count (self, event_name: str) -> int:
		return len(self._listeners.get(event_name, []))


	async def emit (self, event_name: str, *args: typing.Any, **kwargs: typing.Any) -> None:

		"""Call every listener for ``event_name``, awaiting async ones together."""

		pending: typing.List[typing.Awaitable[typing.Any]] = []

		for callback in list(self._listeners.get(event_name, [])):

			try:
				if inspect.iscoroutinefunction(callback):
					pending.append(callback(*args, **kwargs))
				else:
					callback(*args, **kwargs)

			except Exception as exc:
				logger.warning(f"Listener for {event_name!r} failed: {exc}")

		if not pending:
			return

		results = await asyncio.gather(*pending, return_exceptions=True)

		for result in results:
			if isinstance(result, Exception):
				logger.warning(f"Async listener for {event_name!r} failed: {result}")
