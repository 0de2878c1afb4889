"""
Grading monitor: follows one submission through recognition and grading.

The backend is polled on a fixed cadence until it reports a terminal stage or
the absolute deadline fixed at construction passes. Raw stage records are
mapped onto the local ``ProcessingSession`` state machine::

    queued -> recognizing -> grading -> completed
    (any non-terminal stage) -> failed

Stages never move backwards and progress never decreases, whatever order the
backend reports things in.
"""
import asyncio
import copy
import logging
from typing import Awaitable, Callable, Optional

from gradebridge.core import constants
from gradebridge.core.exceptions import GradebridgeError, MalformedResponseError
from gradebridge.events import EventHub
from gradebridge.models import GradingOutcome, ProcessingSession, RecognitionOutcome
from gradebridge.schemas import GradingCompleted, RecognitionCompleted, StageFailed, StageProcessing, SubmissionStatus
from gradebridge.utils.clock import Clock

logger = logging.getLogger(__name__)

StatusFetcher = Callable[[str], Awaitable[SubmissionStatus]]


class SubmissionStatusPoller:
	def __init__(
		self,
		submission_id: str,
		fetch_status: StatusFetcher,
		*,
		clock: Optional[Clock] = None,
		events: Optional[EventHub] = None,
		interval: float = constants.DEFAULT_POLL_INTERVAL,
		timeout: float = constants.DEFAULT_POLL_TIMEOUT,
		clear_delay: float = constants.DEFAULT_PROGRESS_CLEAR_SECONDS,
		on_finished: Optional[Callable[["SubmissionStatusPoller"], None]] = None,
	) -> None:
		self.clock = clock or Clock()
		self.events = events or EventHub()
		self.interval = interval
		self.timeout = timeout
		self.clear_delay = clear_delay
		self.on_finished = on_finished
		self._fetch_status = fetch_status
		self._task: Optional[asyncio.Task] = None
		self._finished = False

		started_at = self.clock.now()
		self.session = ProcessingSession(
			submission_id=submission_id,
			started_at=started_at,
			deadline=started_at + timeout,
		)
		self.session.stage = constants.STAGE_RECOGNIZING
		self.session.progress = constants.RECOGNIZING_PROGRESS
		self.session.message = "Recognizing handwriting..."

	@property
	def submission_id(self) -> str:
		return self.session.submission_id

	@property
	def active(self) -> bool:
		return self._task is not None and not self._finished and not self.session.is_terminal

	def start(self) -> None:
		if self._task is not None:
			return
		logger.info("polling submission status", extra={"submission_id": self.submission_id})
		self._emit(constants.EVENT_SESSION_UPDATED)
		self._task = asyncio.create_task(self._run(), name=f"poll-{self.submission_id}")

	def stop(self) -> None:
		"""Cancel the poll loop. The session keeps whatever state it had reached."""
		if self._task is not None and not self._task.done():
			logger.info("stopping status poller", extra={"submission_id": self.submission_id})
			self._task.cancel()
		self._finish()

	async def wait(self) -> ProcessingSession:
		if self._task is not None:
			await asyncio.gather(self._task, return_exceptions=True)
		return self.session

	async def _run(self) -> None:
		try:
			while not self.session.is_terminal:
				remaining = self.session.deadline - self.clock.now()
				if remaining <= 0:
					self._time_out()
					break
				await self.clock.sleep(min(self.interval, remaining))
				if self.clock.now() >= self.session.deadline or not await self._tick():
					self._time_out()
					break
		finally:
			self._finish()

		if self.session.stage == constants.STAGE_COMPLETED:
			await self.clock.sleep(self.clear_delay)
			self.session.visible = False
			self._emit(constants.EVENT_SESSION_CLEARED)

	async def _tick(self) -> bool:
		"""Fetch and apply one status reply. Returns False if the deadline passed first."""
		work = asyncio.ensure_future(self._fetch_status(self.submission_id))
		timer = asyncio.ensure_future(self.clock.sleep(self.session.deadline - self.clock.now()))
		try:
			done, _ = await asyncio.wait({work, timer}, return_when=asyncio.FIRST_COMPLETED)
		except asyncio.CancelledError:
			work.cancel()
			timer.cancel()
			raise
		timer.cancel()
		if work not in done:
			logger.warning(f"Status request for {self.submission_id} still pending at the deadline")
			work.cancel()
			await asyncio.gather(work, return_exceptions=True)
			return False

		try:
			status = work.result()
		except MalformedResponseError as e:
			logger.warning(f"Ignoring malformed status for {self.submission_id}: {e}")
			return True
		except GradebridgeError as e:
			# Keep polling; the deadline bounds how long we retry
			logger.warning(f"Status request for {self.submission_id} failed: {e}")
			return True
		self._apply(status)
		return True

	def _apply(self, status: SubmissionStatus) -> None:
		ocr = status.ocr_result
		grading = status.grading_result

		if isinstance(ocr, RecognitionCompleted):
			self.session.recognition = RecognitionOutcome(text=ocr.recognized_text, confidence=ocr.confidence)

		if isinstance(ocr, StageFailed):
			self._fail(ocr.reason or "Handwriting recognition failed")
		elif isinstance(grading, StageFailed):
			self._fail(grading.reason or "Grading failed")
		elif isinstance(grading, GradingCompleted) or status.status == constants.STAGE_COMPLETED:
			self._complete(grading if isinstance(grading, GradingCompleted) else None)
		elif status.status == constants.STAGE_FAILED:
			self._fail("Submission processing failed")
		elif isinstance(ocr, RecognitionCompleted) or isinstance(grading, StageProcessing):
			checkpoint = (
				constants.GRADING_PROGRESS
				if self.session.stage == constants.STAGE_GRADING
				else constants.GRADING_ENTRY_PROGRESS
			)
			self._advance(constants.STAGE_GRADING, checkpoint, "Grading with AI...")
		else:
			self._advance(constants.STAGE_RECOGNIZING, constants.RECOGNIZING_PROGRESS, "Recognizing handwriting...")

	def _advance(self, stage: str, progress: int, message: str) -> None:
		before = (self.session.stage, self.session.progress)
		if constants.STAGE_ORDER[stage] >= constants.STAGE_ORDER[self.session.stage]:
			self.session.stage = stage
			self.session.message = message
		self.session.progress = max(self.session.progress, progress)
		if (self.session.stage, self.session.progress) != before:
			self._emit(constants.EVENT_SESSION_UPDATED)

	def _complete(self, grading: Optional[GradingCompleted]) -> None:
		if grading is not None:
			self.session.grading = GradingOutcome(
				score=grading.score,
				max_score=grading.max_score,
				feedback=grading.feedback,
				suggestions=list(grading.suggestions),
				strengths=list(grading.strengths),
			)
		self.session.stage = constants.STAGE_COMPLETED
		self.session.progress = constants.COMPLETED_PROGRESS
		self.session.message = "Grading complete"
		logger.info("submission graded", extra={"submission_id": self.submission_id})
		self._emit(constants.EVENT_SESSION_UPDATED)
		self._emit(constants.EVENT_SESSION_COMPLETED)

	def _fail(self, message: str) -> None:
		self.session.stage = constants.STAGE_FAILED
		self.session.message = message
		logger.warning(f"Submission {self.submission_id} failed: {message}")
		self._emit(constants.EVENT_SESSION_UPDATED)
		self._emit(constants.EVENT_SESSION_FAILED)

	def _time_out(self) -> None:
		self.session.timed_out = True
		self._fail(f"Processing timed out after {self.timeout:.0f} seconds")

	def _finish(self) -> None:
		if self._finished:
			return
		self._finished = True
		if self.on_finished is not None:
			self.on_finished(self)

	def _emit(self, event: str) -> None:
		self.events.emit(event, copy.copy(self.session))


class PollerSlot:
	"""Holds the one live poller. Replacing it always stops the previous one first."""

	def __init__(self) -> None:
		self._current: Optional[SubmissionStatusPoller] = None

	@property
	def current(self) -> Optional[SubmissionStatusPoller]:
		return self._current

	def replace(self, poller: SubmissionStatusPoller) -> None:
		previous, self._current = self._current, None
		if previous is not None:
			previous.stop()
		self._current = poller
		poller.start()

	def release(self, poller: SubmissionStatusPoller) -> None:
		if self._current is poller:
			self._current = None

	def stop(self) -> None:
		previous, self._current = self._current, None
		if previous is not None:
			previous.stop()
