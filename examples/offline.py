"""
B-Side: Offline Station

A station that runs without network access. Patterns come from a fixed
list instead of a language model, so the whole loop can be tried on a
laptop: the queue advances on bar boundaries, the agent tops it up, and
listener feedback still steers it.

How it works
────────────
The StaticGenerator cycles through PATTERNS, adding enough of them to reach
the target queue length on every request. Two dislikes in a row trigger a
major change: the queue is cleared and refilled from the next patterns in
the list.

How to run
──────────
1. Run: python examples/offline.py
2. Open a WebSocket client on ws://localhost:8765 and send
   {"type": "feedback", "kind": "dislike"}
3. Press Ctrl+C to stop.
"""

import logging

import bside


logging.basicConfig(level=logging.INFO)

PATTERNS = [
	'note("c3 e3 g3 c4").s("triangle").slow(2)',
	'note("<c1 c2 c1 c2>*4").s("square").lpf(200)',
	'stack(note("c1*4").s("square").lpf(100), note("c4 e4 g4").s("sawtooth").slow(2))',
	'note("a2 c3 e3 a3").s("sawtooth").lpf(800).room(0.3)',
]

station = bside.Station(
	bpm = 124,
	generator = bside.StaticGenerator(PATTERNS, bars=4),
	maintenance_interval = 5,
)

station.on_event("major_change", lambda applied: logging.info(f"New direction: {applied} pattern(s) queued"))

station.web_ui()
station.play()
