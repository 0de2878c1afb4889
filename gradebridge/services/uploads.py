import asyncio
import copy
import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from gradebridge.api.client import GradingApiClient
from gradebridge.core import constants
from gradebridge.core.config import Settings, settings as default_settings
from gradebridge.core.exceptions import (
	MalformedResponseError,
	RequestTimeoutError,
	ServerError,
	TaskNotFoundError,
	TaskStateError,
	TransportError,
)
from gradebridge.events import EventHub
from gradebridge.models import BatchUploadResult, FileDescriptor, FileRejection, UploadTask
from gradebridge.services.dedup import DedupGuard
from gradebridge.services.validation import FileValidator
from gradebridge.utils.clock import Clock
from gradebridge.utils.file_helpers import compute_upload_timeout

logger = logging.getLogger(__name__)

SubmissionCallback = Callable[[UploadTask, str], None]


class UploadQueueManager:
	def __init__(
		self,
		client: GradingApiClient,
		settings: Optional[Settings] = None,
		*,
		clock: Optional[Clock] = None,
		events: Optional[EventHub] = None,
		validator: Optional[FileValidator] = None,
		dedup: Optional[DedupGuard] = None,
		on_submission: Optional[SubmissionCallback] = None,
	) -> None:
		self.client = client
		self.settings = settings or default_settings
		self.clock = clock or Clock()
		self.events = events or EventHub()
		self.validator = validator or FileValidator(self.settings)
		self.dedup = dedup or DedupGuard(self.settings.DEDUP_WINDOW)
		self.on_submission = on_submission
		self._tasks: Dict[str, UploadTask] = {}
		self._running: Dict[str, asyncio.Task] = {}
		self._expiry_timers: Dict[str, asyncio.Task] = {}

	def enqueue(
		self,
		files: Iterable[FileDescriptor],
		category: str,
		assignment_id: Optional[str] = None,
	) -> List[str]:
		"""Start one concurrent upload per valid file; returns the new task ids immediately."""
		task_ids, _, _ = self._enqueue(files, category, assignment_id)
		return task_ids

	async def submit_batch(
		self,
		files: Iterable[FileDescriptor],
		category: str,
		assignment_id: Optional[str] = None,
	) -> BatchUploadResult:
		task_ids, rejections, suppressed = self._enqueue(files, category, assignment_id)
		if suppressed:
			return BatchUploadResult(suppressed=True)
		result = await self.wait(task_ids)
		result.rejected = len(rejections)
		return result

	async def wait(self, task_ids: Optional[Sequence[str]] = None) -> BatchUploadResult:
		"""Wait for the given (default: all running) tasks and count their outcomes."""
		ids = list(task_ids) if task_ids is not None else list(self._running)
		pending = [self._running[tid] for tid in ids if tid in self._running]
		if pending:
			await asyncio.gather(*pending, return_exceptions=True)

		result = BatchUploadResult(task_ids=ids)
		for tid in ids:
			task = self._tasks.get(tid)
			if task is None:
				continue
			if task.status == constants.STATUS_COMPLETED:
				result.succeeded += 1
			elif task.status == constants.STATUS_ERROR:
				result.failed += 1
		return result

	def retry(self, task_id: str) -> None:
		task = self._get(task_id)
		if task.status != constants.STATUS_ERROR:
			raise TaskStateError(f"Only failed uploads can be retried (task {task_id} is {task.status})")
		task.retry_count += 1
		task.status = constants.STATUS_PENDING
		task.progress = 0
		task.backend_file_id = None
		task.message = "Waiting to retry"
		logger.info("retrying upload", extra={"task_id": task_id, "retry_count": task.retry_count})
		self._emit(constants.EVENT_TASK_UPDATED, task)
		self._launch(task)

	def remove(self, task_id: str) -> None:
		task = self._get(task_id)
		if not task.is_terminal:
			raise TaskStateError(f"Task {task_id} is still {task.status} and cannot be removed")
		self._drop(task)

	def list_status(self) -> List[UploadTask]:
		return [copy.copy(task) for task in self._tasks.values()]

	def get(self, task_id: str) -> UploadTask:
		return copy.copy(self._get(task_id))

	def aggregate_progress(self) -> float:
		if not self._tasks:
			return 0.0
		return sum(task.progress for task in self._tasks.values()) / len(self._tasks)

	async def close(self) -> None:
		workers = list(self._running.values()) + list(self._expiry_timers.values())
		for worker in workers:
			worker.cancel()
		if workers:
			await asyncio.gather(*workers, return_exceptions=True)
		self._running.clear()
		self._expiry_timers.clear()

	def _enqueue(
		self,
		files: Iterable[FileDescriptor],
		category: str,
		assignment_id: Optional[str],
	) -> Tuple[List[str], List[FileRejection], bool]:
		"""Returns (task ids, rejections, suppressed)."""
		if category not in constants.UPLOAD_CATEGORIES:
			raise ValueError(f"Unknown upload category: {category}")
		dedup_key = f"enqueue:{category}"
		now = self.clock.now()
		if self.dedup.is_suppressed(dedup_key, now):
			logger.info(f"Ignoring duplicate {category} upload inside the dedup window")
			return [], [], True

		accepted, rejections = self.validator.partition(files)
		for rejection in rejections:
			logger.info(f"Rejected {rejection.file.name}: {rejection.reason}")
			self.events.emit(constants.EVENT_FILE_REJECTED, rejection)
		# A batch with nothing to upload leaves the window closed for a corrected retry
		if accepted:
			self.dedup.record(dedup_key, now)

		task_ids = []
		for file in accepted:
			task = UploadTask(file=file, category=category, assignment_id=assignment_id)
			self._tasks[task.id] = task
			task_ids.append(task.id)
			logger.info("enqueued upload", extra={"task_id": task.id, "file_name": file.name, "category": category})
			self._launch(task)
		return task_ids, rejections, False

	def _launch(self, task: UploadTask) -> None:
		worker = asyncio.create_task(self._process_task(task), name=f"upload-{task.id}")
		self._running[task.id] = worker
		worker.add_done_callback(lambda _w, tid=task.id: self._forget_worker(tid, _w))

	def _forget_worker(self, task_id: str, worker: asyncio.Task) -> None:
		if self._running.get(task_id) is worker:
			del self._running[task_id]

	async def _process_task(self, task: UploadTask) -> None:
		timeout = compute_upload_timeout(
			task.file.size, self.settings.UPLOAD_MIN_TIMEOUT, self.settings.UPLOAD_SECONDS_PER_MB
		)
		task.status = constants.STATUS_UPLOADING
		self._set_progress(task, constants.UPLOAD_STARTED_PROGRESS, f"Uploading {task.file.name}...")

		try:
			try:
				uploaded = await self._with_deadline(
					self.client.upload_file(task.file, task.category, timeout=timeout), timeout
				)
			except RequestTimeoutError as e:
				raise RequestTimeoutError(f"Upload timed out after {timeout:.0f} seconds", timeout=timeout) from e
			task.backend_file_id = uploaded.id
			self._set_progress(task, constants.UPLOAD_SENT_PROGRESS, "Creating submission...")

			submission = await self.client.create_submission(
				uploaded.id, task.category, assignment_id=task.assignment_id
			)
			self._set_progress(task, constants.SUBMISSION_CREATED_PROGRESS, "Submission created")
		except RequestTimeoutError as e:
			self._fail(task, str(e))
		except ServerError as e:
			self._fail(task, str(e) or f"Server error ({e.status_code})")
		except TransportError as e:
			self._fail(task, f"Network error: {e}")
		except MalformedResponseError as e:
			self._fail(task, f"Unexpected response from server: {e}")
		except Exception as e:
			logger.exception("upload worker error", extra={"task_id": task.id})
			self._fail(task, f"Upload failed: {e}")
		else:
			self._complete(task, submission.id)

	async def _with_deadline(self, operation: Awaitable, timeout: float):
		"""Run ``operation`` unless ``timeout`` clock-seconds pass first."""
		work = asyncio.ensure_future(operation)
		timer = asyncio.ensure_future(self.clock.sleep(timeout))
		try:
			done, _ = await asyncio.wait({work, timer}, return_when=asyncio.FIRST_COMPLETED)
		except asyncio.CancelledError:
			work.cancel()
			timer.cancel()
			raise
		if work in done:
			timer.cancel()
			return work.result()
		work.cancel()
		await asyncio.gather(work, return_exceptions=True)
		raise RequestTimeoutError(f"Upload exceeded {timeout:.0f} seconds", timeout=timeout)

	def _set_progress(self, task: UploadTask, progress: int, message: str) -> None:
		task.progress = max(task.progress, progress)
		task.message = message
		self._emit(constants.EVENT_TASK_UPDATED, task)

	def _complete(self, task: UploadTask, submission_id: str) -> None:
		task.status = constants.STATUS_COMPLETED
		task.progress = 100
		task.submission_id = submission_id
		task.message = "Upload complete, grading started"
		logger.info("upload completed", extra={"task_id": task.id, "submission_id": submission_id})
		self._emit(constants.EVENT_TASK_COMPLETED, task)

		if self.on_submission is not None:
			try:
				self.on_submission(copy.copy(task), submission_id)
			except Exception:
				logger.exception("submission hand-off failed", extra={"task_id": task.id})
		self._schedule_expiry(task)

	def _fail(self, task: UploadTask, message: str) -> None:
		task.status = constants.STATUS_ERROR
		task.message = message or "Upload failed"
		logger.warning(f"Upload of {task.file.name} failed: {task.message}", extra={"task_id": task.id})
		self._emit(constants.EVENT_TASK_FAILED, task)

	def _schedule_expiry(self, task: UploadTask) -> None:
		timer = asyncio.create_task(self._expire(task.id), name=f"expire-{task.id}")
		self._expiry_timers[task.id] = timer

	async def _expire(self, task_id: str) -> None:
		await self.clock.sleep(self.settings.TASK_DISPLAY_SECONDS)
		self._expiry_timers.pop(task_id, None)
		task = self._tasks.get(task_id)
		if task is not None and task.status == constants.STATUS_COMPLETED:
			self._drop(task)

	def _drop(self, task: UploadTask) -> None:
		timer = self._expiry_timers.pop(task.id, None)
		if timer is not None and timer is not asyncio.current_task():
			timer.cancel()
		del self._tasks[task.id]
		self._emit(constants.EVENT_TASK_REMOVED, task)

	def _get(self, task_id: str) -> UploadTask:
		task = self._tasks.get(task_id)
		if task is None:
			raise TaskNotFoundError(task_id)
		return task

	def _emit(self, event: str, task: UploadTask) -> None:
		self.events.emit(event, copy.copy(task))
