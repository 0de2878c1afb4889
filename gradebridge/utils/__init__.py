"""
Utility functions for gradebridge.
"""

from .clock import Clock
from .file_helpers import (
    compute_upload_timeout,
    get_safe_filename,
    guess_media_type,
    normalize_media_type,
)

__all__ = [
    "Clock",
    "compute_upload_timeout",
    "get_safe_filename",
    "guess_media_type",
    "normalize_media_type",
]
