from .files import ApiEnvelope, UploadedFile, CreatedSubmission
from .submissions import (
	StageProcessing,
	StageFailed,
	RecognitionCompleted,
	GradingCompleted,
	SubmissionStatus,
	SubmissionSummary,
)
