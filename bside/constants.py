"""Station defaults.

Timing values are in **milliseconds** unless the name says otherwise. The
scheduler works on wall-clock milliseconds so that pattern boundaries can be
compared directly against ``time.time() * 1000``.

Queue sizing:
- `MIN_QUEUE_LENGTH = 3`: periodic maintenance asks for more patterns below this
- `TARGET_QUEUE_LENGTH = 6`: the queue length the generator is asked to reach

Feedback handling:
- `MAJOR_CHANGE_THRESHOLD = 2`: feedback items since the last major change
  needed before a full regeneration is considered
"""

# Tempo

DEFAULT_BPM = 120
DEFAULT_BEATS_PER_BAR = 4

# Patterns

DEFAULT_PATTERN = 'note("<c1 c2>*4").s("square").lpf(200).room(.4).delay(.25)'
DEFAULT_PATTERN_BARS = 8

# Used when the generator output cannot be parsed at all.
FALLBACK_PATTERN = 'note("c2 e2 g2").s("sine").room(0.5).delay(0.25)'
FALLBACK_BARS = 4

# Bar count for a bare pattern returned without an explicit length.
DEFAULT_GENERATED_BARS = 8

# Queue sizing

MIN_QUEUE_LENGTH = 3
TARGET_QUEUE_LENGTH = 6

QUEUE_PREVIEW_LENGTH = 60
QUEUE_CONTEXT_PREVIEW = 5

# Agent

MAINTENANCE_INTERVAL_SECONDS = 15.0
MAJOR_CHANGE_THRESHOLD = 2
MAINTENANCE_FEEDBACK_WINDOW = 5
MAJOR_CHANGE_FEEDBACK_WINDOW = 10

# Style memory bounds

MAX_PATTERN_SCORES = 100
MAX_SUGGESTIONS = 20
EXPORT_SUGGESTIONS = 10
EXPORT_TOP_PATTERNS = 5
EXPORT_PREVIEW_LENGTH = 100

# Feedback kinds

FEEDBACK_LIKE = "like"
FEEDBACK_DISLIKE = "dislike"
FEEDBACK_SUGGESTION = "suggestion"
FEEDBACK_KINDS = (FEEDBACK_LIKE, FEEDBACK_DISLIKE, FEEDBACK_SUGGESTION)

# Keyword vocabularies

TEMPO_FASTER_WORDS = ("faster", "speed up", "quick")
TEMPO_SLOWER_WORDS = ("slower", "slow down", "chill")

INSTRUMENTS = (
	"bass", "drum", "kick", "snare", "hihat", "synth", "pad",
	"lead", "piano", "guitar", "strings", "brass"
)

GENRES = (
	"techno", "house", "ambient", "jazz", "funk", "dnb", "drum and bass",
	"breakbeat", "trap", "dubstep", "minimal", "acid"
)

# Transport

DEFAULT_WS_PORT = 8765
DEFAULT_OSC_HOST = "127.0.0.1"
DEFAULT_OSC_PORT = 9001
