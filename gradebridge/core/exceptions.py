"""Exception classes raised by the submission orchestrator."""

from typing import Optional


class GradebridgeError(Exception):
	"""Base exception for all orchestrator errors."""
	pass


class FileRejectedError(GradebridgeError):
	"""A candidate file failed validation before any network call."""

	def __init__(self, filename: str, reason: str):
		super().__init__(f"{filename}: {reason}")
		self.filename = filename
		self.reason = reason


class TransportError(GradebridgeError):
	"""The request never produced a response (connection failure, abort)."""
	pass


class RequestTimeoutError(TransportError):
	"""The request did not finish before its deadline."""

	def __init__(self, message: str, timeout: Optional[float] = None):
		super().__init__(message)
		self.timeout = timeout


class ServerError(GradebridgeError):
	"""The backend answered with a non-success response."""

	def __init__(self, message: str, status_code: Optional[int] = None):
		super().__init__(message)
		self.status_code = status_code


class MalformedResponseError(GradebridgeError):
	"""The backend answered with a payload of an unexpected shape."""
	pass


class TaskNotFoundError(GradebridgeError, KeyError):
	"""No upload task with the given id is queued."""

	def __str__(self) -> str:
		return f"Upload task not found: {self.args[0]}"


class TaskStateError(GradebridgeError):
	"""The operation is not legal for the task's current status."""
	pass
