from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from gradebridge.core import constants
from gradebridge.core.config import Settings, settings as default_settings
from gradebridge.core.exceptions import FileRejectedError
from gradebridge.models import FileDescriptor, FileRejection
from gradebridge.utils.file_helpers import normalize_media_type


@dataclass(frozen=True)
class ValidationResult:
	ok: bool
	reason: Optional[str] = None

	@classmethod
	def accepted(cls) -> "ValidationResult":
		return cls(ok=True)

	@classmethod
	def rejected(cls, reason: str) -> "ValidationResult":
		return cls(ok=False, reason=reason)


class FileValidator:
	"""Admits or rejects a candidate file by media type and size. Never touches the network."""

	def __init__(self, settings: Optional[Settings] = None) -> None:
		settings = settings or default_settings
		self.allowed_types = frozenset(normalize_media_type(ct) for ct in settings.ALLOWED_CONTENT_TYPES)
		self.max_bytes = settings.max_upload_bytes
		self.max_mb = settings.MAX_UPLOAD_MB

	def validate(self, file: FileDescriptor) -> ValidationResult:
		media_type = normalize_media_type(file.media_type)
		if media_type not in self.allowed_types:
			return ValidationResult.rejected(f"Unsupported file type: {file.media_type or 'unknown'}")
		if file.size < constants.MIN_FILE_SIZE_BYTES:
			return ValidationResult.rejected("File is empty")
		if file.size > self.max_bytes:
			return ValidationResult.rejected(f"File size exceeds the {self.max_mb} MB limit")
		if len(file.name) > constants.MAX_FILENAME_LENGTH:
			return ValidationResult.rejected(
				f"File name is longer than {constants.MAX_FILENAME_LENGTH} characters"
			)
		return ValidationResult.accepted()

	def ensure(self, file: FileDescriptor) -> None:
		result = self.validate(file)
		if not result.ok:
			raise FileRejectedError(file.name, result.reason)

	def partition(self, files: Iterable[FileDescriptor]) -> Tuple[List[FileDescriptor], List[FileRejection]]:
		accepted: List[FileDescriptor] = []
		rejected: List[FileRejection] = []
		for file in files:
			result = self.validate(file)
			if result.ok:
				accepted.append(file)
			else:
				rejected.append(FileRejection(file=file, reason=result.reason))
		return accepted, rejected
