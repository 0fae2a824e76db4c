"""Audience preference model built from listener feedback.

:class:`StyleMemory` is a bounded accumulator. Likes and dislikes score the
pattern that was playing when they arrived; suggestions are kept in a short
log and classified into liked/disliked elements and tempo wishes by
:func:`bside.keywords.extract_signals`. Everything is bounded: at most
``MAX_PATTERN_SCORES`` pattern scores (oldest dropped first) and
``MAX_SUGGESTIONS`` suggestions, so older opinions fade out as new ones arrive.

The agent passes :meth:`StyleMemory.summary` to the pattern generator with
every request.
"""

import collections
import dataclasses
import datetime
import logging
import typing

import bside.constants
import bside.feedback
import bside.keywords


logger = logging.getLogger(__name__)


@dataclasses.dataclass
class PatternScore:

	"""Running score for one pattern's content."""

	score: int = 0
	play_count: int = 0


@dataclasses.dataclass(frozen=True)
class Suggestion:

	text: str
	timestamp: float


class StyleMemory:

	"""Accumulate feedback into a bounded preference profile."""

	def __init__ (
		self,
		vocabulary: bside.keywords.Vocabulary = bside.keywords.DEFAULT_VOCABULARY,
		max_pattern_scores: int = bside.constants.MAX_PATTERN_SCORES,
		max_suggestions: int = bside.constants.MAX_SUGGESTIONS
	) -> None:

		self.vocabulary = vocabulary
		self.max_pattern_scores = max_pattern_scores
		self.max_suggestions = max_suggestions

		self.reset()

	def reset (self) -> None:

		"""Forget everything."""

		self.liked_elements: typing.Set[str] = set()
		self.disliked_elements: typing.Set[str] = set()
		self.tempo_preferences: typing.List[str] = []
		self.like_count: int = 0
		self.dislike_count: int = 0
		self.suggestion_count: int = 0

		# Insertion-ordered so the first key is always the oldest entry.
		self.pattern_scores: typing.Dict[str, PatternScore] = {}
		self.suggestions: typing.Deque[Suggestion] = collections.deque(maxlen=self.max_suggestions)

	def process_feedback (self, item: bside.feedback.FeedbackItem, current_content: str) -> None:

		"""Fold one feedback item into the profile.

		``current_content`` is the pattern that was playing when the feedback
		arrived; likes and dislikes are credited to it.
		"""

		if item.kind == bside.constants.FEEDBACK_LIKE:
			self.like_count += 1
			self._record_score(current_content, 1)

		elif item.kind == bside.constants.FEEDBACK_DISLIKE:
			self.dislike_count += 1
			self._record_score(current_content, -1)

		elif item.kind == bside.constants.FEEDBACK_SUGGESTION:
			self._record_suggestion(item.text or "", item.timestamp)

	def _record_score (self, content: str, delta: int) -> None:

		entry = self.pattern_scores.get(content)

		if entry is None:
			entry = PatternScore()
			self.pattern_scores[content] = entry

		entry.score += delta
		entry.play_count += 1

		while len(self.pattern_scores) > self.max_pattern_scores:
			oldest = next(iter(self.pattern_scores))
			del self.pattern_scores[oldest]

	def _record_suggestion (self, text: str, timestamp: float) -> None:

		self.suggestion_count += 1
		self.suggestions.append(Suggestion(text=text, timestamp=timestamp))

		signals = bside.keywords.extract_signals(text, self.vocabulary)

		if signals.empty:
			return

		self.tempo_preferences.extend(signals.tempo)
		self.liked_elements.update(signals.liked)
		self.disliked_elements.update(signals.disliked)

		logger.debug(f"Suggestion signals: tempo={list(signals.tempo)} liked={sorted(signals.liked)} disliked={sorted(signals.disliked)}")

	@property
	def net_score (self) -> int:
		return self.like_count - self.dislike_count

	@property
	def total_feedback (self) -> int:
		return self.like_count + self.dislike_count + self.suggestion_count

	def preferred_tempo (self) -> str:

		"""Describe the tempo listeners have asked for."""

		faster = self.tempo_preferences.count("faster")
		slower = self.tempo_preferences.count("slower")

		if faster > slower:
			return "Fast (130-150 BPM)"

		if slower > faster:
			return "Slow (90-110 BPM)"

		return "Moderate (120-130 BPM)"

	def vibe (self) -> str:

		"""Describe the overall mood of the feedback."""

		if self.net_score > 5:
			return "Crowd is loving it!"

		if self.net_score < -3:
			return "Need to switch things up"

		return "Exploratory"

	def summary (self) -> typing.Dict[str, typing.Any]:

		"""Return the profile summary sent to the generator with each request."""

		return {
			"liked_elements": sorted(self.liked_elements),
			"disliked_elements": sorted(self.disliked_elements),
			"preferred_tempo": self.preferred_tempo(),
			"vibe": self.vibe(),
			"total_feedback": self.total_feedback,
			"net_score": self.net_score
		}

	def top_patterns (self, count: int = bside.constants.EXPORT_TOP_PATTERNS) -> typing.List[typing.Tuple[str, PatternScore]]:

		"""Best scoring patterns, highest first. Ties keep insertion order."""

		ranked = sorted(self.pattern_scores.items(), key=lambda pair: pair[1].score, reverse=True)

		return ranked[:count]

	def export_profile (self) -> typing.Dict[str, typing.Any]:

		"""Return the summary plus recent suggestions and the top patterns."""

		recent = list(self.suggestions)[-bside.constants.EXPORT_SUGGESTIONS:]

		return {
			"summary": self.summary(),
			"recent_suggestions": [{"text": s.text, "timestamp": s.timestamp} for s in recent],
			"top_patterns": [
				{
					"score": entry.score,
					"play_count": entry.play_count,
					"content": content[:bside.constants.EXPORT_PREVIEW_LENGTH]
				}
				for content, entry in self.top_patterns()
			],
			"exported": datetime.datetime.now(datetime.timezone.utc).isoformat()
		}
