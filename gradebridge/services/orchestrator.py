import asyncio
import copy
import logging
from collections import deque
from typing import Any, Callable, Deque, Iterable, List, Optional

import httpx

from gradebridge.api.client import GradingApiClient
from gradebridge.core import constants
from gradebridge.core.config import Settings, settings as default_settings
from gradebridge.events import EventHub
from gradebridge.models import BatchUploadResult, FileDescriptor, ProcessingSession, UploadTask
from gradebridge.schemas import SubmissionSummary
from gradebridge.services.dedup import DedupGuard
from gradebridge.services.poller import PollerSlot, SubmissionStatusPoller
from gradebridge.services.uploads import UploadQueueManager
from gradebridge.services.validation import FileValidator
from gradebridge.utils.clock import Clock

logger = logging.getLogger(__name__)


class SubmissionOrchestrator:
	"""Entry point used by the UI: upload files, then follow the resulting submission.

	Only one submission is monitored at a time. Each new submission id
	retires the poller of the previous one before its own poller starts.
	"""

	def __init__(
		self,
		settings: Optional[Settings] = None,
		*,
		client: Optional[GradingApiClient] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
		clock: Optional[Clock] = None,
		events: Optional[EventHub] = None,
	) -> None:
		self.settings = settings or default_settings
		self.clock = clock or Clock()
		self.events = events or EventHub()
		self.client = client or GradingApiClient(self.settings, transport=transport)
		self.dedup = DedupGuard(self.settings.DEDUP_WINDOW)
		self.validator = FileValidator(self.settings)
		self.uploads = UploadQueueManager(
			self.client,
			self.settings,
			clock=self.clock,
			events=self.events,
			validator=self.validator,
			dedup=self.dedup,
			on_submission=self._on_submission_created,
		)
		self._slot = PollerSlot()
		self._history: Deque[ProcessingSession] = deque(maxlen=self.settings.HISTORY_LIMIT)
		self.events.subscribe(constants.EVENT_SESSION_COMPLETED, self._record_history)
		self.events.subscribe(constants.EVENT_SESSION_FAILED, self._record_history)

	async def __aenter__(self) -> "SubmissionOrchestrator":
		return self

	async def __aexit__(self, *exc_info: Any) -> None:
		await self.aclose()

	def subscribe(self, event: str, handler: Callable[[Any], None]) -> Callable[[], None]:
		return self.events.subscribe(event, handler)

	def submit(
		self,
		files: Iterable[FileDescriptor],
		category: str = constants.CATEGORY_HOMEWORK,
		assignment_id: Optional[str] = None,
	) -> List[str]:
		return self.uploads.enqueue(files, category, assignment_id=assignment_id)

	async def submit_and_wait(
		self,
		files: Iterable[FileDescriptor],
		category: str = constants.CATEGORY_HOMEWORK,
		assignment_id: Optional[str] = None,
	) -> BatchUploadResult:
		return await self.uploads.submit_batch(files, category, assignment_id=assignment_id)

	def retry(self, task_id: str) -> None:
		self.uploads.retry(task_id)

	def remove(self, task_id: str) -> None:
		self.uploads.remove(task_id)

	def list_status(self) -> List[UploadTask]:
		return self.uploads.list_status()

	def start_monitoring(self, submission_id: str) -> Optional[SubmissionStatusPoller]:
		"""Poll ``submission_id`` until it finishes; returns None for a duplicate trigger."""
		if not self.dedup.should_allow(f"poll:{submission_id}", self.clock.now()):
			logger.info("ignoring duplicate monitor start", extra={"submission_id": submission_id})
			return None
		poller = SubmissionStatusPoller(
			submission_id,
			self.client.get_submission_status,
			clock=self.clock,
			events=self.events,
			interval=self.settings.POLL_INTERVAL,
			timeout=self.settings.POLL_TIMEOUT,
			clear_delay=self.settings.PROGRESS_CLEAR_SECONDS,
			on_finished=self._slot.release,
		)
		self._slot.replace(poller)
		return poller

	def stop_monitoring(self) -> None:
		self._slot.stop()

	@property
	def active_poller(self) -> Optional[SubmissionStatusPoller]:
		return self._slot.current

	@property
	def current_session(self) -> Optional[ProcessingSession]:
		poller = self._slot.current
		return copy.copy(poller.session) if poller is not None else None

	@property
	def history(self) -> List[ProcessingSession]:
		return list(self._history)

	async def load_history(self, limit: Optional[int] = None) -> List[SubmissionSummary]:
		return await self.client.list_submissions(limit=limit or self.settings.HISTORY_LIMIT)

	async def aclose(self) -> None:
		self._slot.stop()
		await self.uploads.close()
		await self.client.aclose()
		# Let cancelled pollers unwind before the loop goes away
		await asyncio.sleep(0)

	def _on_submission_created(self, task: UploadTask, submission_id: str) -> None:
		self.start_monitoring(submission_id)

	def _record_history(self, session: ProcessingSession) -> None:
		self._history.appendleft(session)
