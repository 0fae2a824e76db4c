import pytest

import bside.feedback
import bside.style_memory


def _item (kind: str, text: str | None = None, timestamp: float = 0.0) -> bside.feedback.FeedbackItem:
	return bside.feedback.FeedbackItem(source_id="listener", kind=kind, text=text, timestamp=timestamp)


def test_like_and_dislike_score_current_pattern () -> None:

	"""Likes add one and dislikes subtract one from the playing pattern's score."""

	memory = bside.style_memory.StyleMemory()

	memory.process_feedback(_item("like"), "p1")
	memory.process_feedback(_item("like"), "p1")
	memory.process_feedback(_item("dislike"), "p1")
	memory.process_feedback(_item("dislike"), "p2")

	assert memory.like_count == 2
	assert memory.dislike_count == 2
	assert memory.pattern_scores["p1"] == bside.style_memory.PatternScore(score=1, play_count=3)
	assert memory.pattern_scores["p2"] == bside.style_memory.PatternScore(score=-1, play_count=1)


def test_pattern_scores_bounded_oldest_evicted () -> None:

	"""Never more than 100 scored patterns; the oldest one goes first."""

	memory = bside.style_memory.StyleMemory()

	for i in range(250):
		memory.process_feedback(_item("like" if i % 2 else "dislike"), f"pattern-{i}")
		assert len(memory.pattern_scores) <= 100

	assert len(memory.pattern_scores) == 100
	assert "pattern-149" not in memory.pattern_scores
	assert next(iter(memory.pattern_scores)) == "pattern-150"


def test_rescoring_existing_pattern_does_not_evict () -> None:

	"""Scoring a pattern that is already tracked does not grow the table."""

	memory = bside.style_memory.StyleMemory(max_pattern_scores=2)

	memory.process_feedback(_item("like"), "a")
	memory.process_feedback(_item("like"), "b")
	memory.process_feedback(_item("like"), "a")

	assert list(memory.pattern_scores) == ["a", "b"]


def test_suggestions_bounded () -> None:

	"""Only the last 20 suggestions are kept, but every one is counted."""

	memory = bside.style_memory.StyleMemory()

	for i in range(35):
		memory.process_feedback(_item("suggestion", f"idea {i}", timestamp=float(i)), "p")
		assert len(memory.suggestions) <= 20

	assert len(memory.suggestions) == 20
	assert memory.suggestions[0].text == "idea 15"
	assert memory.total_feedback == 35


def test_suggestion_signals_accumulate () -> None:

	"""Suggestions feed liked/disliked elements and the tempo tally."""

	memory = bside.style_memory.StyleMemory()

	memory.process_feedback(_item("suggestion", "more bass, faster!"), "p")
	memory.process_feedback(_item("suggestion", "less snare, techno"), "p")
	memory.process_feedback(_item("suggestion", "go faster"), "p")

	summary = memory.summary()

	assert summary["liked_elements"] == ["bass", "techno"]
	assert summary["disliked_elements"] == ["snare"]
	assert summary["preferred_tempo"] == "Fast (130-150 BPM)"


@pytest.mark.parametrize("faster, slower, expected", [
	(0, 0, "Moderate (120-130 BPM)"),
	(2, 2, "Moderate (120-130 BPM)"),
	(3, 1, "Fast (130-150 BPM)"),
	(1, 2, "Slow (90-110 BPM)"),
])
def test_preferred_tempo (faster: int, slower: int, expected: str) -> None:

	"""Preferred tempo follows the larger tally; ties are moderate."""

	memory = bside.style_memory.StyleMemory()
	memory.tempo_preferences = ["faster"] * faster + ["slower"] * slower

	assert memory.preferred_tempo() == expected


@pytest.mark.parametrize("likes, dislikes, expected", [
	(6, 0, "Crowd is loving it!"),
	(5, 0, "Exploratory"),
	(0, 3, "Exploratory"),
	(0, 4, "Need to switch things up"),
	(2, 8, "Need to switch things up"),
])
def test_vibe_thresholds (likes: int, dislikes: int, expected: str) -> None:

	"""Vibe is positive above +5 net, negative below -3, neutral otherwise."""

	memory = bside.style_memory.StyleMemory()

	for _ in range(likes):
		memory.process_feedback(_item("like"), "p")

	for _ in range(dislikes):
		memory.process_feedback(_item("dislike"), "p")

	summary = memory.summary()

	assert summary["vibe"] == expected
	assert summary["net_score"] == likes - dislikes
	assert summary["total_feedback"] == likes + dislikes


def test_export_profile () -> None:

	"""The export has the summary, the last 10 suggestions and the top 5 patterns."""

	memory = bside.style_memory.StyleMemory()

	for i in range(12):
		memory.process_feedback(_item("suggestion", f"s{i}"), "p")

	scores = {"a": 3, "b": 1, "c": 3, "d": -2, "e": 2, "f": 1, "g" * 150: 5}

	for content, score in scores.items():
		kind = "like" if score > 0 else "dislike"
		for _ in range(abs(score)):
			memory.process_feedback(_item(kind), content)

	profile = memory.export_profile()

	assert profile["summary"] == memory.summary()
	assert [s["text"] for s in profile["recent_suggestions"]] == [f"s{i}" for i in range(2, 12)]

	top = profile["top_patterns"]
	assert [p["score"] for p in top] == [5, 3, 3, 2, 1]
	assert top[0]["content"] == "g" * 100
	# Equal scores keep the order the patterns were first scored in.
	assert [p["content"] for p in top[1:]] == ["a", "c", "e", "b"]
	assert "exported" in profile


def test_reset () -> None:

	"""reset forgets every count, score and suggestion."""

	memory = bside.style_memory.StyleMemory()
	memory.process_feedback(_item("like"), "p")
	memory.process_feedback(_item("suggestion", "more bass"), "p")

	memory.reset()

	assert memory.total_feedback == 0
	assert memory.pattern_scores == {}
	assert len(memory.suggestions) == 0
	assert memory.summary()["liked_elements"] == []
