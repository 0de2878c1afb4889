"""
Callback registry used to publish task and session changes to the UI layer.
"""
import logging
from collections import defaultdict
from typing import Any, Callable, DefaultDict, List

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class EventHub:
	def __init__(self) -> None:
		self._handlers: DefaultDict[str, List[Handler]] = defaultdict(list)

	def subscribe(self, event: str, handler: Handler) -> Callable[[], None]:
		"""Register ``handler`` for ``event``; returns a function that unregisters it."""
		self._handlers[event].append(handler)

		def _unsubscribe() -> None:
			if handler in self._handlers[event]:
				self._handlers[event].remove(handler)

		return _unsubscribe

	def emit(self, event: str, payload: Any) -> None:
		for handler in list(self._handlers.get(event, ())):
			try:
				handler(payload)
			except Exception:
				# One failing handler must not stop the others
				logger.exception("event handler failed", extra={"event": event})
