"""
Core settings, constants and exceptions.
"""

from .config import Settings, settings, setup_logging
from .exceptions import (
	GradebridgeError,
	FileRejectedError,
	TransportError,
	RequestTimeoutError,
	ServerError,
	MalformedResponseError,
	TaskNotFoundError,
	TaskStateError,
)

__all__ = [
	"Settings",
	"settings",
	"setup_logging",
	"GradebridgeError",
	"FileRejectedError",
	"TransportError",
	"RequestTimeoutError",
	"ServerError",
	"MalformedResponseError",
	"TaskNotFoundError",
	"TaskStateError",
]
