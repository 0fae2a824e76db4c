import time
import typing


Clock = typing.Callable[[], float]
"""A zero-argument callable returning the current time in milliseconds."""


def wall_clock_ms () -> float:

	"""Current wall-clock time in milliseconds since the epoch."""

	return time.time() * 1000.0
