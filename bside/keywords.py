"""Coarse keyword classification of listener suggestions.

This is a substring matcher over a fixed vocabulary, not a
language model. ``"not adding more bass"`` still reads as *more bass*.
The classifier is a pure function so :class:`~bside.style_memory.StyleMemory`
only has to accumulate the signals it returns.
"""

import dataclasses
import typing

import bside.constants


@dataclasses.dataclass(frozen=True)
class Vocabulary:

	"""
	The fixed word lists the classifier matches against.

	Attributes:
		faster: Phrases that ask for a faster tempo.
		slower: Phrases that ask for a slower tempo.
		instruments: Instrument names matched in ``"more X"``/``"add X"``
			(liked) and ``"less X"``/``"remove X"`` (disliked) phrases.
		genres: Genre names; any mention counts as liked.
	"""

	faster: typing.Tuple[str, ...] = bside.constants.TEMPO_FASTER_WORDS
	slower: typing.Tuple[str, ...] = bside.constants.TEMPO_SLOWER_WORDS
	instruments: typing.Tuple[str, ...] = bside.constants.INSTRUMENTS
	genres: typing.Tuple[str, ...] = bside.constants.GENRES


DEFAULT_VOCABULARY = Vocabulary()


@dataclasses.dataclass(frozen=True)
class Signals:

	"""What a single suggestion said, in vocabulary terms."""

	tempo: typing.Tuple[str, ...] = ()
	liked: typing.FrozenSet[str] = frozenset()
	disliked: typing.FrozenSet[str] = frozenset()

	@property
	def empty (self) -> bool:
		return not (self.tempo or self.liked or self.disliked)


def extract_signals (text: str, vocabulary: Vocabulary = DEFAULT_VOCABULARY) -> Signals:

	"""Classify a suggestion into tempo, liked and disliked signals.

	Matching is case-insensitive. An instrument mentioned with both a positive
	and a negative phrase counts as liked only.

	Example:
		```python
		signals = extract_signals("More bass and go faster, techno please")
		signals.tempo    # ("faster",)
		signals.liked    # frozenset({"bass", "techno"})
		```
	"""

	lowered = text.lower()

	tempo: typing.List[str] = []

	if any(word in lowered for word in vocabulary.faster):
		tempo.append("faster")

	if any(word in lowered for word in vocabulary.slower):
		tempo.append("slower")

	liked: typing.Set[str] = set()
	disliked: typing.Set[str] = set()

	for instrument in vocabulary.instruments:

		if instrument not in lowered:
			continue

		if f"more {instrument}" in lowered or f"add {instrument}" in lowered:
			liked.add(instrument)

		elif f"less {instrument}" in lowered or f"remove {instrument}" in lowered:
			disliked.add(instrument)

	for genre in vocabulary.genres:
		if genre in lowered:
			liked.add(genre)

	return Signals(tempo=tuple(tempo), liked=frozenset(liked), disliked=frozenset(disliked))
