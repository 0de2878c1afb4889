from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from typing import Any, Optional


class ApiEnvelope(BaseModel):
	success: bool = True
	data: Any = None
	error: Optional[str] = None
	message: Optional[str] = None


class UploadedFile(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	id: str
	filename: Optional[str] = None
	original_name: Optional[str] = Field(default=None, alias="originalName")
	size: Optional[int] = None
	type: Optional[str] = None

	@field_validator("id", mode="before")
	@classmethod
	def _coerce_id(cls, value: Any) -> Any:
		# Backend ids are integers in some deployments
		return str(value) if isinstance(value, int) else value


class CreatedSubmission(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	id: str = Field(validation_alias=AliasChoices("id", "sessionId", "submissionId"))
	status: Optional[str] = None

	@field_validator("id", mode="before")
	@classmethod
	def _coerce_id(cls, value: Any) -> Any:
		return str(value) if isinstance(value, int) else value
