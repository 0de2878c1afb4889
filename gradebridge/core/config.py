import os
import logging
from typing import List

from dotenv import load_dotenv

from gradebridge.core import constants

load_dotenv()


def _split_content_types(raw: str) -> List[str]:
	"""Parse a comma separated allow-list into normalized media types."""
	return [ct.strip().lower() for ct in raw.split(",") if ct.strip()]


def setup_logging() -> None:
	"""Setup logging configuration."""
	logging.basicConfig(
		level=os.getenv("LOG_LEVEL", "INFO").upper(),
		format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
		handlers=[
			logging.StreamHandler(),
		]
	)

	# Quiet the HTTP stack
	logging.getLogger('httpx').setLevel(logging.WARNING)
	logging.getLogger('httpcore').setLevel(logging.WARNING)


class Settings:
	def __init__(self) -> None:
		# Backend contract
		self.API_URL = os.getenv("GRADEBRIDGE_API_URL", constants.DEFAULT_API_URL).rstrip("/")
		self.API_TOKEN = os.getenv("GRADEBRIDGE_API_TOKEN") or None
		self.REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", str(constants.DEFAULT_REQUEST_TIMEOUT)))

		# Upload constraints
		self.MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", str(constants.DEFAULT_MAX_UPLOAD_MB)))
		self.ALLOWED_CONTENT_TYPES = _split_content_types(
			os.getenv("ALLOWED_CONTENT_TYPES", ",".join(constants.DEFAULT_ALLOWED_CONTENT_TYPES))
		)

		# Adaptive upload deadline: max(min, size_mb * per_mb)
		self.UPLOAD_MIN_TIMEOUT = float(os.getenv("UPLOAD_MIN_TIMEOUT", str(constants.DEFAULT_UPLOAD_MIN_TIMEOUT)))
		self.UPLOAD_SECONDS_PER_MB = float(os.getenv("UPLOAD_SECONDS_PER_MB", str(constants.DEFAULT_UPLOAD_SECONDS_PER_MB)))

		# Duplicate trigger suppression
		self.DEDUP_WINDOW = float(os.getenv("DEDUP_WINDOW", str(constants.DEFAULT_DEDUP_WINDOW)))

		# Status polling
		self.POLL_INTERVAL = float(os.getenv("POLL_INTERVAL", str(constants.DEFAULT_POLL_INTERVAL)))
		self.POLL_TIMEOUT = float(os.getenv("POLL_TIMEOUT", str(constants.DEFAULT_POLL_TIMEOUT)))

		# Display grace periods
		self.TASK_DISPLAY_SECONDS = float(os.getenv("TASK_DISPLAY_SECONDS", str(constants.DEFAULT_TASK_DISPLAY_SECONDS)))
		self.PROGRESS_CLEAR_SECONDS = float(os.getenv("PROGRESS_CLEAR_SECONDS", str(constants.DEFAULT_PROGRESS_CLEAR_SECONDS)))
		self.HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", str(constants.DEFAULT_HISTORY_LIMIT)))

	@property
	def max_upload_bytes(self) -> int:
		return self.MAX_UPLOAD_MB * 1024 * 1024


# Setup logging when module is imported
setup_logging()
settings = Settings()
