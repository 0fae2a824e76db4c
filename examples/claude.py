"""
B-Side: Listener-Steered Station

The full setup: Claude writes the patterns, listeners steer them over the
WebSocket, and every pattern change is forwarded over OSC to whatever is
making the sound.

How to run
──────────
1. Put ANTHROPIC_API_KEY in the environment or a .env file.
2. Point an OSC-capable Strudel host at 127.0.0.1:9001 (/pattern <code> <bars>).
3. Run: python examples/claude.py
4. Press Ctrl+C to stop. The collected style profile is printed on exit.
"""

import json
import logging

import bside


logging.basicConfig(level=logging.INFO)

station = bside.Station(bpm=120, generator=bside.AnthropicGenerator())

station.web_ui(port=8765)
station.osc(receive_port=9000, send_port=9001)

station.play()

print(json.dumps(station.export_style_profile(), indent=2))
