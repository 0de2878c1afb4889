"""
Services package for the gradebridge submission orchestrator.
"""

from .dedup import DedupGuard
from .validation import FileValidator, ValidationResult
from .uploads import UploadQueueManager
from .poller import PollerSlot, SubmissionStatusPoller
from .orchestrator import SubmissionOrchestrator

__all__ = [
    "DedupGuard",
    "FileValidator",
    "ValidationResult",
    "UploadQueueManager",
    "PollerSlot",
    "SubmissionStatusPoller",
    "SubmissionOrchestrator",
]
