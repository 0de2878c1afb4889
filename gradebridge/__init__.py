"""
gradebridge: client-side upload and grading-progress orchestrator for the
homework grading assistant.
"""

from gradebridge.core.config import Settings
from gradebridge.models import BatchUploadResult, FileDescriptor, ProcessingSession, UploadTask
from gradebridge.services import SubmissionOrchestrator

__version__ = "1.0.0"

__all__ = [
    "Settings",
    "BatchUploadResult",
    "FileDescriptor",
    "ProcessingSession",
    "UploadTask",
    "SubmissionOrchestrator",
]
