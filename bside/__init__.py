"""
B-Side - an always-on pattern stream steered by its listeners.

A station plays a never-ending sequence of live-coding patterns (Strudel
expressions by default) to everyone connected. Each pattern has a length in
bars; when it runs out the next one in a short lookahead queue takes over,
and if the queue is empty the current pattern simply loops.

An agent keeps that queue stocked by asking a pattern generator (an LLM, by
default Anthropic's Messages API) for queue edits. Listener feedback steers
it:

- **Likes and dislikes** score whatever was playing when they arrived.
- **Suggestions** are kept and scanned for instruments, genres and tempo
  wishes ("more bass", "add pads", "faster", "techno").
- **A new direction** is taken when the recent feedback turns negative or
  carries several suggestions: the queue is cleared and refilled.

Playback never depends on the generator. If it is slow, broken or returns
nonsense, the station keeps playing what it has.

Integration:

- **WebSocket listeners.** ``station.web_ui()`` pushes pattern updates to
  browsers and accepts their feedback.
- **OSC.** ``station.osc()`` forwards each pattern to an audio engine and
  accepts feedback and tempo changes from controllers.

Minimal example:

	```python
	import bside

	station = bside.Station(bpm=124)
	station.web_ui()
	station.play()
	```

Package-level exports: ``Station``, ``Tempo``, ``QueueScheduler``, ``Agent``,
``StyleMemory``, ``FeedbackItem``, ``AnthropicGenerator``, ``StaticGenerator``.
"""

import bside.agent
import bside.feedback
import bside.generator
import bside.scheduler
import bside.station
import bside.style_memory
import bside.tempo


Station = bside.station.Station
Tempo = bside.tempo.Tempo
QueueScheduler = bside.scheduler.QueueScheduler
Agent = bside.agent.Agent
StyleMemory = bside.style_memory.StyleMemory
FeedbackItem = bside.feedback.FeedbackItem
AnthropicGenerator = bside.generator.AnthropicGenerator
StaticGenerator = bside.generator.StaticGenerator
