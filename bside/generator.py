"""Pattern generators: the external source of new queue edits.

The agent talks to any object satisfying :class:`PatternGenerator`: an async
``generate()`` that receives a :class:`GenerationRequest` and returns raw
output. The output is handed to :func:`bside.edits.parse_operations`, which
copes with a list of edit dicts, a JSON document in text, a bare pattern in a
code block, or garbage.

:class:`AnthropicGenerator` is the bundled implementation. It asks the
Anthropic Messages API for a JSON list of edits and returns the response text.
"""

import dataclasses
import json
import logging
import os
import typing

import anthropic
import dotenv

import bside.constants
import bside.feedback


logger = logging.getLogger(__name__)


class GenerationError (RuntimeError):

	"""Raised when a generator cannot produce a response."""


@dataclasses.dataclass(frozen=True)
class GenerationRequest:

	"""
	Everything a generator is told about the station.

	Attributes:
		context: ``current_pattern``, ``queue_preview``, ``queue_length``,
			``target_queue_length`` and ``tempo``.
		feedback: Recent feedback, oldest first.
		style_summary: :meth:`bside.style_memory.StyleMemory.summary`.
		major_change: True when feedback asked for a new direction and the
			queue will be cleared before the edits are applied.
	"""

	context: typing.Dict[str, typing.Any]
	feedback: typing.Sequence[bside.feedback.FeedbackItem] = ()
	style_summary: typing.Dict[str, typing.Any] = dataclasses.field(default_factory=dict)
	major_change: bool = False


@typing.runtime_checkable
class PatternGenerator (typing.Protocol):

	"""Anything that can answer a :class:`GenerationRequest`."""

	async def generate (self, request: GenerationRequest) -> typing.Any:
		...


SYSTEM_PROMPT = """You are an expert live coding musician specializing in Strudel, a JavaScript-based music live coding environment.

You curate a queue of upcoming patterns for a continuous stream heard by many listeners. Create engaging, danceable patterns that respond to community feedback.

Key principles:
- Every pattern must be valid Strudel code that can be evaluated immediately
- Evolve gradually from pattern to pattern unless a new direction is requested
- Balance complexity with listenability
- Use Strudel's mini-notation for rhythm

Use ONLY pure synthesis (no samples):
- Use note() with the built-in synths "triangle", "square", "sawtooth", "sine"
- Never use sound() or .s() with drum kit names
- Build drums with synthesis: note("<c1 c2>").s("square").lpf(100)
- Effects: .lpf(), .hpf(), .room(), .delay(), .vowel()
- Layer parts with stack()

Examples:
note("c3 e3 g3 c4").s("triangle").slow(2)
note("<c1 c2 c1 c2>*4").s("square").lpf(200)
stack(note("c1*4").s("square"), note("c4 e4 g4").s("sawtooth").slow(2))

Answer with a JSON array of queue operations and nothing else. Each operation is one of:
{"action": "add", "pattern": "<strudel code>", "bars": <int>}
{"action": "insert", "index": <int>, "pattern": "<strudel code>", "bars": <int>}
{"action": "remove", "id": "<queued pattern id>"}
{"action": "replace", "id": "<queued pattern id>", "pattern": "<strudel code>", "bars": <int>}
{"action": "clear"}
Patterns are usually 4, 8 or 16 bars long."""


def build_system_prompt (style_summary: typing.Optional[typing.Dict[str, typing.Any]] = None) -> str:

	"""Return the system prompt, with the community's preferences appended."""

	if not style_summary:
		return SYSTEM_PROMPT

	liked = ", ".join(style_summary.get("liked_elements") or []) or "None yet"
	disliked = ", ".join(style_summary.get("disliked_elements") or []) or "None yet"

	return (
		f"{SYSTEM_PROMPT}\n\n"
		f"Current community preferences:\n"
		f"- Tempo preference: {style_summary.get('preferred_tempo') or 'Not established yet'}\n"
		f"- Liked elements: {liked}\n"
		f"- Disliked elements: {disliked}\n"
		f"- Overall vibe: {style_summary.get('vibe') or 'Exploratory'}"
	)


def build_user_prompt (request: GenerationRequest) -> str:

	"""Describe the playback state and recent feedback to the model."""

	context = request.context
	lines: typing.List[str] = [
		"Currently playing:",
		"```javascript",
		str(context.get("current_pattern", "")),
		"```",
		"",
		f"Queue: {context.get('queue_length', 0)} pattern(s), target {context.get('target_queue_length', bside.constants.TARGET_QUEUE_LENGTH)}.",
	]

	preview = context.get("queue_preview") or []

	if preview:
		lines.append("Upcoming:")
		lines.extend(f"- id {item['id']} ({item['bars']} bars): {item['pattern']}" for item in preview)

	tempo = context.get("tempo")

	if tempo:
		lines.append(f"Tempo: {tempo.get('bpm')} BPM, {tempo.get('beats_per_bar')} beats per bar.")

	lines.append("")

	if request.feedback:

		counts = bside.feedback.count_kinds(request.feedback)
		lines.append(f"Recent feedback from {len(request.feedback)} listener(s):")

		if counts[bside.constants.FEEDBACK_LIKE]:
			lines.append(f"- {counts[bside.constants.FEEDBACK_LIKE]} likes")

		if counts[bside.constants.FEEDBACK_DISLIKE]:
			lines.append(f"- {counts[bside.constants.FEEDBACK_DISLIKE]} dislikes")

		suggestions = [item.text for item in request.feedback if item.kind == bside.constants.FEEDBACK_SUGGESTION and item.text]

		if suggestions:
			lines.append("Suggestions:")
			lines.extend(f'- "{text}"' for text in suggestions)

		lines.append("")

	if request.major_change:
		lines.append("The queue is being cleared. Take the music in a NEW direction based on the feedback:")
		lines.append("- You can change genre, tempo feel and structure")
		lines.append("- Incorporate the suggestions meaningfully")
		lines.append("- Fill the queue up to the target length")
	else:
		lines.append("Top up the queue with VARIATIONS of what is playing:")
		lines.append("- Keep the general structure and vibe")
		lines.append("- Small adjustments: rhythm, one element added or removed, effect tweaks")
		lines.append("- Bring the queue up to the target length")

	return "\n".join(lines)


class AnthropicGenerator:

	"""
	Generator backed by Anthropic's Messages API.

	Reads ``ANTHROPIC_API_KEY`` from the environment (a ``.env`` file is
	honoured) unless ``api_key`` is given. Returns the response text; parsing
	is left to the caller.

	Satisfies the ``PatternGenerator`` protocol.
	"""

	def __init__ (
		self,
		model: str = "claude-sonnet-4-5",
		max_tokens: int = 2000,
		*,
		api_key: typing.Optional[str] = None,
		client: typing.Optional[typing.Any] = None
	) -> None:

		if client is None:
			dotenv.load_dotenv()
			resolved_key = api_key or os.environ.get("ANTHROPIC_API_KEY", "")

			if not resolved_key:
				raise ValueError("ANTHROPIC_API_KEY must be set in the environment or passed explicitly")

			client = anthropic.AsyncAnthropic(api_key=resolved_key)

		self._client = client
		self.model = model
		self.max_tokens = max_tokens

	async def generate (self, request: GenerationRequest) -> str:

		"""Ask the model for queue operations and return its text.

		Raises:
			GenerationError: If the API call fails.
		"""

		try:
			response = await self._client.messages.create(
				model = self.model,
				max_tokens = self.max_tokens,
				system = build_system_prompt(request.style_summary),
				messages = [{"role": "user", "content": build_user_prompt(request)}]
			)
		except Exception as exc:
			raise GenerationError(f"Anthropic generation failed: {exc}") from exc

		text = "".join(block.text for block in response.content if getattr(block, "type", None) == "text")

		logger.debug(f"Generator response: {text[:200]!r}")

		return text


class StaticGenerator:

	"""
	Generator that cycles through a fixed list of patterns.

	Useful offline and in demos: each request adds enough patterns to reach
	the target queue length.
	"""

	def __init__ (self, patterns: typing.Sequence[str], bars: int = bside.constants.DEFAULT_GENERATED_BARS) -> None:

		if not patterns:
			raise ValueError("StaticGenerator needs at least one pattern")

		self.patterns = list(patterns)
		self.bars = bars
		self._index = 0

	async def generate (self, request: GenerationRequest) -> str:

		target = int(request.context.get("target_queue_length", bside.constants.TARGET_QUEUE_LENGTH))
		queued = 0 if request.major_change else int(request.context.get("queue_length", 0))

		operations = []

		for _ in range(max(1, target - queued)):
			operations.append({"action": "add", "pattern": self.patterns[self._index % len(self.patterns)], "bars": self.bars})
			self._index += 1

		return json.dumps(operations)
