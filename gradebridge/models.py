import os
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from gradebridge.core import constants
from gradebridge.utils.file_helpers import guess_media_type


@dataclass
class FileDescriptor:
	name: str
	size: int
	media_type: str
	content: Optional[bytes] = None
	path: Optional[str] = None

	@classmethod
	def from_path(cls, path: str, media_type: Optional[str] = None) -> "FileDescriptor":
		return cls(
			name=os.path.basename(path),
			size=os.path.getsize(path),
			media_type=media_type or guess_media_type(path),
			path=path,
		)

	@classmethod
	def from_bytes(cls, name: str, content: bytes, media_type: Optional[str] = None) -> "FileDescriptor":
		return cls(name=name, size=len(content), media_type=media_type or guess_media_type(name), content=content)

	def read(self) -> bytes:
		if self.content is not None:
			return self.content
		if self.path is None:
			raise ValueError(f"File {self.name} has neither content nor path")
		with open(self.path, "rb") as fb:
			return fb.read()


@dataclass
class UploadTask:
	file: FileDescriptor
	category: str
	id: str = field(default_factory=lambda: uuid.uuid4().hex)
	status: str = constants.STATUS_PENDING
	progress: int = 0
	message: str = "Waiting to upload"
	retry_count: int = 0
	backend_file_id: Optional[str] = None
	submission_id: Optional[str] = None
	assignment_id: Optional[str] = None

	@property
	def is_terminal(self) -> bool:
		return self.status in constants.TERMINAL_TASK_STATUSES


@dataclass
class FileRejection:
	file: FileDescriptor
	reason: str


@dataclass
class BatchUploadResult:
	task_ids: List[str] = field(default_factory=list)
	succeeded: int = 0
	failed: int = 0
	rejected: int = 0
	# True when the call landed inside the dedup window and was ignored
	suppressed: bool = False

	@property
	def total(self) -> int:
		return self.succeeded + self.failed + self.rejected


@dataclass
class RecognitionOutcome:
	text: str
	confidence: Optional[float] = None


@dataclass
class GradingOutcome:
	score: Optional[float] = None
	max_score: Optional[float] = None
	feedback: Optional[str] = None
	suggestions: List[str] = field(default_factory=list)
	strengths: List[str] = field(default_factory=list)


@dataclass
class ProcessingSession:
	submission_id: str
	started_at: float
	deadline: float
	stage: str = constants.STAGE_QUEUED
	progress: int = 0
	message: str = "Queued"
	timed_out: bool = False
	visible: bool = True
	recognition: Optional[RecognitionOutcome] = None
	grading: Optional[GradingOutcome] = None

	@property
	def is_terminal(self) -> bool:
		return self.stage in constants.TERMINAL_STAGES
