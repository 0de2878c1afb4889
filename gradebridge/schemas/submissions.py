"""
Status payloads of the submission pipeline.

Each stage record is tagged by its ``status`` field and parsed into exactly one
of three variants (processing, completed with payload, failed with reason).
Records of any other shape fail validation at the client boundary.
"""
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from typing import Annotated, Any, List, Literal, Optional, Union


class _StageRecord(BaseModel):
	model_config = ConfigDict(populate_by_name=True)


class StageProcessing(_StageRecord):
	status: Literal["processing"]


class StageFailed(_StageRecord):
	status: Literal["failed"]
	error: Optional[str] = None

	@property
	def reason(self) -> Optional[str]:
		return self.error.strip() if self.error and self.error.strip() else None


class RecognitionCompleted(_StageRecord):
	status: Literal["completed"]
	recognized_text: str = Field(default="", alias="recognizedText")
	confidence: Optional[float] = None


class GradingCompleted(_StageRecord):
	status: Literal["completed"]
	score: Optional[float] = None
	max_score: Optional[float] = Field(default=None, alias="maxScore")
	feedback: Optional[str] = None
	suggestions: List[str] = Field(default_factory=list)
	strengths: List[str] = Field(default_factory=list)


RecognitionStage = Annotated[
	Union[StageProcessing, RecognitionCompleted, StageFailed],
	Field(discriminator="status"),
]
GradingStage = Annotated[
	Union[StageProcessing, GradingCompleted, StageFailed],
	Field(discriminator="status"),
]


class SubmissionStatus(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	submission_id: str = Field(validation_alias=AliasChoices("submissionId", "sessionId", "id"))
	status: str
	ocr_result: Optional[RecognitionStage] = Field(default=None, alias="ocrResult")
	grading_result: Optional[GradingStage] = Field(default=None, alias="gradingResult")

	@field_validator("submission_id", mode="before")
	@classmethod
	def _coerce_id(cls, value: Any) -> Any:
		return str(value) if isinstance(value, int) else value

	@field_validator("status", mode="before")
	@classmethod
	def _normalize_status(cls, value: Any) -> Any:
		# Backend mixes "COMPLETED" and "completed"
		return value.strip().lower() if isinstance(value, str) else value


class SubmissionSummary(BaseModel):
	model_config = ConfigDict(populate_by_name=True, extra="ignore")

	id: str
	status: str
	submitted_at: Optional[str] = Field(default=None, alias="submittedAt")
	completed_at: Optional[str] = Field(default=None, alias="completedAt")

	@field_validator("id", mode="before")
	@classmethod
	def _coerce_id(cls, value: Any) -> Any:
		return str(value) if isinstance(value, int) else value
