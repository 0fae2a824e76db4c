import dataclasses
import typing

import bside.clock
import bside.constants


@dataclasses.dataclass(frozen=True)
class FeedbackItem:

	"""
	One piece of listener feedback.

	Attributes:
		source_id: Identifies the sender (a WebSocket connection id, a user
			name, anything the transport chooses).
		kind: ``"like"``, ``"dislike"`` or ``"suggestion"``.
		text: Free text for suggestions, ``None`` otherwise.
		timestamp: Arrival time in milliseconds.
	"""

	source_id: str
	kind: str
	text: typing.Optional[str] = None
	timestamp: float = 0.0

	def __post_init__ (self) -> None:

		if self.kind not in bside.constants.FEEDBACK_KINDS:
			raise ValueError(f"Unknown feedback kind {self.kind!r}")

	@classmethod
	def create (
		cls,
		source_id: str,
		kind: str,
		text: typing.Optional[str] = None,
		clock: bside.clock.Clock = bside.clock.wall_clock_ms
	) -> "FeedbackItem":

		"""Build a feedback item stamped with the current time."""

		return cls(source_id=source_id, kind=kind, text=text, timestamp=clock())

	def as_dict (self) -> typing.Dict[str, typing.Any]:

		return {
			"source_id": self.source_id,
			"kind": self.kind,
			"text": self.text,
			"timestamp": self.timestamp
		}


def count_kinds (items: typing.Iterable[FeedbackItem]) -> typing.Dict[str, int]:

	"""Count likes, dislikes and suggestions in ``items``."""

	counts = {kind: 0 for kind in bside.constants.FEEDBACK_KINDS}

	for item in items:
		counts[item.kind] += 1

	return counts
