"""
Constants for the gradebridge submission orchestrator.
"""

# Backend defaults
DEFAULT_API_URL = "http://localhost:3000/api"
DEFAULT_REQUEST_TIMEOUT = 30.0

# File upload constants
DEFAULT_MAX_UPLOAD_MB = 100
DEFAULT_ALLOWED_CONTENT_TYPES = ["application/pdf", "text/plain", "image/jpeg", "image/png"]
DEFAULT_UPLOAD_MIN_TIMEOUT = 60.0
DEFAULT_UPLOAD_SECONDS_PER_MB = 30.0

# Dedup / polling / display constants
DEFAULT_DEDUP_WINDOW = 3.0
DEFAULT_POLL_INTERVAL = 3.0
DEFAULT_POLL_TIMEOUT = 300.0
DEFAULT_TASK_DISPLAY_SECONDS = 3.0
DEFAULT_PROGRESS_CLEAR_SECONDS = 1.0
DEFAULT_HISTORY_LIMIT = 10

# Validation constants
MAX_FILENAME_LENGTH = 255
MIN_FILE_SIZE_BYTES = 1

# Upload task status constants
STATUS_PENDING = "pending"
STATUS_UPLOADING = "uploading"
STATUS_COMPLETED = "completed"
STATUS_ERROR = "error"
TERMINAL_TASK_STATUSES = (STATUS_COMPLETED, STATUS_ERROR)

# Upload categories
CATEGORY_HOMEWORK = "homework"
CATEGORY_PRACTICE = "practice"
CATEGORY_ASSIGNMENT = "assignment"
UPLOAD_CATEGORIES = (CATEGORY_HOMEWORK, CATEGORY_PRACTICE, CATEGORY_ASSIGNMENT)

# Upload progress checkpoints
UPLOAD_STARTED_PROGRESS = 0
UPLOAD_SENT_PROGRESS = 50
SUBMISSION_CREATED_PROGRESS = 80

# Processing session stages, in forward order
STAGE_QUEUED = "queued"
STAGE_RECOGNIZING = "recognizing"
STAGE_GRADING = "grading"
STAGE_COMPLETED = "completed"
STAGE_FAILED = "failed"
STAGE_ORDER = {
	STAGE_QUEUED: 0,
	STAGE_RECOGNIZING: 1,
	STAGE_GRADING: 2,
	STAGE_COMPLETED: 3,
	STAGE_FAILED: 3,
}
TERMINAL_STAGES = (STAGE_COMPLETED, STAGE_FAILED)

# Processing progress checkpoints
RECOGNIZING_PROGRESS = 10
GRADING_ENTRY_PROGRESS = 30
GRADING_PROGRESS = 60
COMPLETED_PROGRESS = 100

# Event names
EVENT_FILE_REJECTED = "file_rejected"
EVENT_TASK_UPDATED = "task_updated"
EVENT_TASK_COMPLETED = "task_completed"
EVENT_TASK_FAILED = "task_failed"
EVENT_TASK_REMOVED = "task_removed"
EVENT_SESSION_UPDATED = "session_updated"
EVENT_SESSION_COMPLETED = "session_completed"
EVENT_SESSION_FAILED = "session_failed"
EVENT_SESSION_CLEARED = "session_cleared"
