import dataclasses

import bside.constants


@dataclasses.dataclass(frozen=True)
class Tempo:

	"""
	Tempo of the station: beats per minute and beats per bar.

	A ``Tempo`` is a value. Changing the tempo means building a new one
	(see :meth:`with_bpm`) and handing it to the scheduler, which uses it for
	every pattern that starts afterwards. A pattern already playing keeps the
	end time it was given when it started.

	Example:
		```python
		tempo = bside.Tempo(bpm=120, beats_per_bar=4)
		tempo.bar_duration_ms   # 2000.0
		```
	"""

	bpm: float = bside.constants.DEFAULT_BPM
	beats_per_bar: int = bside.constants.DEFAULT_BEATS_PER_BAR

	def __post_init__ (self) -> None:

		if self.bpm <= 0:
			raise ValueError("BPM must be positive")

		if int(self.beats_per_bar) != self.beats_per_bar or self.beats_per_bar <= 0:
			raise ValueError("Beats per bar must be a positive integer")

	@property
	def beat_duration_ms (self) -> float:

		"""Length of one beat in milliseconds."""

		return 60000.0 / self.bpm

	@property
	def bar_duration_ms (self) -> float:

		"""Length of one bar in milliseconds."""

		return self.beat_duration_ms * self.beats_per_bar

	def bars_to_ms (self, bars: int) -> float:

		"""Duration of ``bars`` bars in milliseconds."""

		return bars * self.bar_duration_ms

	def with_bpm (self, bpm: float) -> "Tempo":

		"""Return a copy of this tempo at a different BPM."""

		return dataclasses.replace(self, bpm=bpm)

	def as_dict (self) -> dict:

		return {"bpm": self.bpm, "beats_per_bar": self.beats_per_bar}
