"""The lookahead queue of patterns waiting to play.

The queue does no locking of its own. Every caller holds
:attr:`bside.scheduler.QueueScheduler.lock` around a logical operation, so a
tick's pop and an agent's clear-then-apply never interleave.
"""

import dataclasses
import logging
import typing
import uuid

import bside.clock


logger = logging.getLogger(__name__)


def new_pattern_id () -> str:

	"""Return a fresh, never reused pattern identifier."""

	return uuid.uuid4().hex


@dataclasses.dataclass(frozen=True)
class QueuedPattern:

	"""
	A pattern waiting in the queue.

	Attributes:
		id: Unique identifier, assigned at creation.
		content: The playable pattern string. Opaque to the scheduler.
		bars: Length in bars (positive).
		added_at: Creation time in milliseconds.
	"""

	id: str
	content: str
	bars: int
	added_at: float

	def __post_init__ (self) -> None:

		if self.bars <= 0:
			raise ValueError("Pattern length in bars must be positive")

	@classmethod
	def create (cls, content: str, bars: int, clock: bside.clock.Clock = bside.clock.wall_clock_ms) -> "QueuedPattern":

		"""Build a queued pattern with a new id."""

		return cls(id=new_pattern_id(), content=content, bars=bars, added_at=clock())


class PatternQueue:

	"""Ordered sequence of upcoming patterns. The front plays next."""

	def __init__ (self, patterns: typing.Optional[typing.Iterable[QueuedPattern]] = None) -> None:

		self._items: typing.List[QueuedPattern] = []

		for pattern in patterns or ():
			self.append(pattern)

	def __len__ (self) -> int:
		return len(self._items)

	def __iter__ (self) -> typing.Iterator[QueuedPattern]:
		return iter(list(self._items))

	def __contains__ (self, pattern_id: object) -> bool:
		return any(item.id == pattern_id for item in self._items)

	def _check_unique (self, pattern: QueuedPattern) -> None:

		if pattern.id in self:
			raise ValueError(f"Pattern {pattern.id!r} is already queued")

	def append (self, pattern: QueuedPattern) -> None:

		"""Add a pattern at the back of the queue."""

		self._check_unique(pattern)
		self._items.append(pattern)

	def insert_at (self, index: int, pattern: QueuedPattern) -> int:

		"""Insert a pattern at ``index``, clamped to ``[0, len]``.

		Returns the index actually used.
		"""

		self._check_unique(pattern)

		clamped = max(0, min(index, len(self._items)))

		if clamped != index:
			logger.debug(f"Insert index {index} clamped to {clamped}")

		self._items.insert(clamped, pattern)

		return clamped

	def _index_of (self, pattern_id: str) -> typing.Optional[int]:

		for index, item in enumerate(self._items):
			if item.id == pattern_id:
				return index

		return None

	def remove_by_id (self, pattern_id: str) -> bool:

		"""Remove the first pattern with ``pattern_id``. Absent ids are a no-op."""

		index = self._index_of(pattern_id)

		if index is None:
			return False

		del self._items[index]
		return True

	def replace_by_id (self, pattern_id: str, pattern: QueuedPattern) -> bool:

		"""Swap the pattern with ``pattern_id`` for ``pattern``, keeping its position.

		Absent ids are a no-op.
		"""

		index = self._index_of(pattern_id)

		if index is None:
			return False

		if pattern.id != pattern_id:
			self._check_unique(pattern)

		self._items[index] = pattern
		return True

	def clear (self) -> None:
		self._items.clear()

	def pop_front (self) -> typing.Optional[QueuedPattern]:

		"""Remove and return the next pattern, or ``None`` when empty."""

		if not self._items:
			return None

		return self._items.pop(0)

	def peek (self, count: int) -> typing.List[QueuedPattern]:

		"""Return the first ``count`` patterns without removing them."""

		return list(self._items[:max(0, count)])
