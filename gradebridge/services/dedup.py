from typing import Dict, Optional


class DedupGuard:
	"""Suppresses repeated triggers of the same operation inside a short window.

	A drop event that fires twice, or a double click on "upload", would
	otherwise start two identical batches. Keys are free-form strings such as
	``enqueue:homework`` or ``poll:<submission id>``.
	"""

	def __init__(self, window: float) -> None:
		self.window = window
		self._last_accepted: Dict[str, float] = {}

	def should_allow(self, key: str, now: float) -> bool:
		if self.is_suppressed(key, now):
			return False
		self.record(key, now)
		return True

	def is_suppressed(self, key: str, now: float) -> bool:
		last = self._last_accepted.get(key)
		return last is not None and now - last < self.window

	def record(self, key: str, now: float) -> None:
		"""Open a new window for ``key`` starting at ``now``."""
		self._last_accepted[key] = now

	def reset(self, key: Optional[str] = None) -> None:
		if key is None:
			self._last_accepted.clear()
		else:
			self._last_accepted.pop(key, None)
