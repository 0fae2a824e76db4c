import asyncio
import typing

import pytest

import bside.generator
import bside.pattern_queue
import bside.scheduler
import bside.tempo


class ManualClock:

	"""Millisecond clock that only moves when a test moves it."""

	def __init__ (self, start: float = 1_000_000.0) -> None:

		"""Start at a fixed, non-zero time."""

		self.now = start

	def __call__ (self) -> float:

		"""Return the current time."""

		return self.now

	def advance (self, ms: float) -> None:

		"""Move time forward by ``ms`` milliseconds."""

		self.now += ms


class ScriptedGenerator:

	"""Generator stub that returns queued responses and records requests."""

	def __init__ (self, *responses: typing.Any) -> None:

		"""Store the responses to return, in order. An exception instance is raised instead."""

		self.responses: typing.List[typing.Any] = list(responses)
		self.requests: typing.List[bside.generator.GenerationRequest] = []
		self.gate: typing.Optional[asyncio.Event] = None

	async def generate (self, request: bside.generator.GenerationRequest) -> typing.Any:

		"""Record the request and hand back the next scripted response."""

		self.requests.append(request)

		if self.gate is not None:
			await self.gate.wait()

		response = self.responses.pop(0) if self.responses else []

		if isinstance(response, BaseException):
			raise response

		return response


class RecordingSink:

	"""Collects everything published on an event."""

	def __init__ (self) -> None:

		"""Start with nothing received."""

		self.received: typing.List[typing.Any] = []

	def __call__ (self, payload: typing.Any) -> None:

		"""Record one published payload."""

		self.received.append(payload)


def make_pattern (content: str, bars: int) -> bside.pattern_queue.QueuedPattern:

	"""Create a queued pattern with a fresh id."""

	return bside.pattern_queue.QueuedPattern.create(content, bars, clock=lambda: 0.0)


@pytest.fixture
def clock () -> ManualClock:

	"""A fresh manual clock."""

	return ManualClock()


@pytest.fixture
def tempo () -> bside.tempo.Tempo:

	"""120 BPM in 4/4, which makes a bar exactly 2000 ms."""

	return bside.tempo.Tempo(bpm=120, beats_per_bar=4)


@pytest.fixture
def scheduler (clock: ManualClock, tempo: bside.tempo.Tempo) -> bside.scheduler.QueueScheduler:

	"""A scheduler on the manual clock playing an 8-bar initial pattern."""

	return bside.scheduler.QueueScheduler(
		initial_content = "initial",
		initial_bars = 8,
		tempo = tempo,
		clock = clock
	)
