"""Queue edit operations requested by the pattern generator.

The generator answers with a batch of edits, each tagged by an ``action``:

- ``{"action": "add", "pattern": str, "bars": int}``
- ``{"action": "insert", "index": int, "pattern": str, "bars": int}``
- ``{"action": "remove", "id": str}``
- ``{"action": "replace", "id": str, "pattern": str, "bars": int}``
- ``{"action": "clear"}``

:func:`parse_operations` turns whatever came back into a list of typed edits,
dropping malformed entries one by one. Tags it does not recognise become
:class:`UnknownEdit` so they can be reported and skipped when applied. If
nothing usable can be read from the output at all, a single
:class:`AddEdit` of ``FALLBACK_PATTERN`` is returned so the queue still grows.

:func:`apply_operations` applies edits strictly in order. Each edit stands
alone: a ``remove`` or ``replace`` whose id has already gone (another
regeneration got there first) is a no-op, not an error.
"""

import dataclasses
import json
import logging
import re
import typing

import bside.clock
import bside.constants
import bside.pattern_queue


logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class AddEdit:
	pattern: str
	bars: int


@dataclasses.dataclass(frozen=True)
class InsertEdit:
	index: int
	pattern: str
	bars: int


@dataclasses.dataclass(frozen=True)
class RemoveEdit:
	id: str


@dataclasses.dataclass(frozen=True)
class ReplaceEdit:
	id: str
	pattern: str
	bars: int


@dataclasses.dataclass(frozen=True)
class ClearEdit:
	pass


@dataclasses.dataclass(frozen=True)
class UnknownEdit:

	"""An edit whose action tag is not one we know. Skipped when applied."""

	action: str


Edit = typing.Union[AddEdit, InsertEdit, RemoveEdit, ReplaceEdit, ClearEdit, UnknownEdit]


_CODE_BLOCK = re.compile(r"```[a-zA-Z]*\s*([\s\S]*?)```")
_PATTERN_MARKERS = ("sound(", "note(", "s(")


def fallback_operations () -> typing.List[Edit]:

	"""The single filler add used when generator output is unreadable."""

	return [AddEdit(pattern=bside.constants.FALLBACK_PATTERN, bars=bside.constants.FALLBACK_BARS)]


def _as_bars (value: typing.Any) -> typing.Optional[int]:

	if isinstance(value, bool):
		return None

	if isinstance(value, float) and value.is_integer():
		value = int(value)

	if isinstance(value, str) and value.strip().isdecimal():
		value = int(value.strip())

	if isinstance(value, int) and value > 0:
		return value

	return None


def _as_index (value: typing.Any) -> typing.Optional[int]:

	if isinstance(value, bool):
		return None

	if isinstance(value, int):
		return value

	if isinstance(value, float) and value.is_integer():
		return int(value)

	return None


def _as_text (value: typing.Any) -> typing.Optional[str]:

	if isinstance(value, str) and value.strip():
		return value

	return None


def parse_operation (raw: typing.Any) -> typing.Optional[Edit]:

	"""Parse one raw edit, or return ``None`` if it is malformed."""

	if not isinstance(raw, dict):
		return None

	action = raw.get("action")

	if not isinstance(action, str):
		return None

	action = action.strip().lower()

	if action == "clear":
		return ClearEdit()

	if action == "remove":
		pattern_id = _as_text(raw.get("id"))
		return RemoveEdit(id=pattern_id) if pattern_id else None

	if action not in ("add", "insert", "replace"):
		return UnknownEdit(action=action)

	pattern = _as_text(raw.get("pattern"))
	bars = _as_bars(raw.get("bars"))

	if pattern is None or bars is None:
		return None

	if action == "add":
		return AddEdit(pattern=pattern, bars=bars)

	if action == "insert":
		index = _as_index(raw.get("index"))
		return InsertEdit(index=index, pattern=pattern, bars=bars) if index is not None else None

	pattern_id = _as_text(raw.get("id"))
	return ReplaceEdit(id=pattern_id, pattern=pattern, bars=bars) if pattern_id else None


def _parse_list (items: typing.List[typing.Any]) -> typing.List[Edit]:

	edits: typing.List[Edit] = []

	for raw in items:

		edit = parse_operation(raw)

		if edit is None:
			logger.warning(f"Dropping malformed edit operation: {raw!r}")
			continue

		edits.append(edit)

	return edits


def _load_json (text: str) -> typing.Any:

	"""Try the whole text, then the outermost ``[...]`` or ``{...}`` span."""

	try:
		return json.loads(text)
	except ValueError:
		pass

	for opening, closing in (("[", "]"), ("{", "}")):

		start = text.find(opening)
		end = text.rfind(closing)

		if start == -1 or end <= start:
			continue

		try:
			return json.loads(text[start:end + 1])
		except ValueError:
			continue

	raise ValueError("No JSON found")


def _find_pattern_line (text: str) -> typing.Optional[str]:

	"""First line of unfenced output that looks like pattern code."""

	for line in text.splitlines():

		line = line.strip()

		# Broken JSON is not a pattern.
		if line.startswith(("{", "[")):
			continue

		if any(marker in line for marker in _PATTERN_MARKERS):
			return line

	return None


def _parse_text (text: str) -> typing.List[Edit]:

	match = _CODE_BLOCK.search(text)
	block = match.group(1).strip() if match else None

	for candidate in (block, text.strip()):

		if not candidate:
			continue

		try:
			data = _load_json(candidate)
		except ValueError:
			continue

		if isinstance(data, (list, dict)):
			return parse_operations(data)

	# A code block that is not JSON is a single bare pattern.
	if block:
		return [AddEdit(pattern=block, bars=bside.constants.DEFAULT_GENERATED_BARS)]

	line = _find_pattern_line(text)

	if line is not None:
		return [AddEdit(pattern=line, bars=bside.constants.DEFAULT_GENERATED_BARS)]

	logger.warning("Generator output could not be parsed, using the fallback pattern")
	return fallback_operations()


def parse_operations (raw: typing.Any) -> typing.List[Edit]:

	"""Turn raw generator output into typed edits.

	Accepts a list of edit dicts, a dict holding a single edit or an
	``"operations"`` list, or text containing JSON (optionally in a fenced
	code block). A fenced block holding anything other than JSON is read as
	one pattern to add.
	"""

	if isinstance(raw, list):
		return _parse_list(raw)

	if isinstance(raw, dict):

		operations = raw.get("operations")

		if isinstance(operations, list):
			return _parse_list(operations)

		if "action" in raw:
			return _parse_list([raw])

	if isinstance(raw, str):
		return _parse_text(raw)

	logger.warning(f"Generator output of type {type(raw).__name__} could not be parsed, using the fallback pattern")
	return fallback_operations()


def apply_operations (
	queue: bside.pattern_queue.PatternQueue,
	edits: typing.Iterable[Edit],
	clock: bside.clock.Clock = bside.clock.wall_clock_ms
) -> int:

	"""Apply ``edits`` to ``queue`` in order and return how many took effect.

	The caller must hold the scheduler lock.
	"""

	applied = 0

	for edit in edits:

		if isinstance(edit, AddEdit):
			queue.append(bside.pattern_queue.QueuedPattern.create(edit.pattern, edit.bars, clock))
			applied += 1

		elif isinstance(edit, InsertEdit):
			queue.insert_at(edit.index, bside.pattern_queue.QueuedPattern.create(edit.pattern, edit.bars, clock))
			applied += 1

		elif isinstance(edit, RemoveEdit):

			if queue.remove_by_id(edit.id):
				applied += 1
			else:
				logger.debug(f"Remove skipped, pattern {edit.id!r} is not queued")

		elif isinstance(edit, ReplaceEdit):

			replacement = bside.pattern_queue.QueuedPattern.create(edit.pattern, edit.bars, clock)

			if queue.replace_by_id(edit.id, replacement):
				applied += 1
			else:
				logger.debug(f"Replace skipped, pattern {edit.id!r} is not queued")

		elif isinstance(edit, ClearEdit):
			queue.clear()
			applied += 1

		else:
			logger.warning(f"Skipping unknown edit operation {getattr(edit, 'action', edit)!r}")

	return applied
