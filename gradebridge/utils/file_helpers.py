"""
File handling utilities.
"""
import mimetypes


BYTES_PER_MB = 1024 * 1024


def size_in_mb(size_bytes: int) -> float:
    return size_bytes / BYTES_PER_MB


def compute_upload_timeout(size_bytes: int, min_seconds: float, seconds_per_mb: float) -> float:
    """
    Adaptive deadline for one upload attempt.

    Args:
        size_bytes: Declared file size
        min_seconds: Floor applied to small files
        seconds_per_mb: Budget granted per megabyte

    Returns:
        Timeout in seconds, ``max(min_seconds, size_mb * seconds_per_mb)``
    """
    return max(min_seconds, size_in_mb(size_bytes) * seconds_per_mb)


def guess_media_type(filename: str) -> str:
    """
    Guess a media type from the file extension.

    Args:
        filename: File name or path

    Returns:
        Media type, ``application/octet-stream`` when unknown
    """
    media_type, _ = mimetypes.guess_type(filename)
    return media_type or "application/octet-stream"


def normalize_media_type(media_type: str) -> str:
    # "text/plain; charset=utf-8" -> "text/plain"
    return (media_type or "").split(";", 1)[0].strip().lower()


def get_safe_filename(filename: str) -> str:
    """
    Get safe filename by removing potentially dangerous characters.

    Args:
        filename: Original filename

    Returns:
        Safe filename
    """
    # Remove or replace dangerous characters
    dangerous_chars = ['<', '>', ':', '"', '|', '?', '*', '\\', '/']
    safe_name = filename

    for char in dangerous_chars:
        safe_name = safe_name.replace(char, '_')

    return safe_name
