import asyncio
import heapq
import itertools
import json
import re
from collections import Counter
from typing import Any, Dict, List, Optional

import httpx
import pytest

from gradebridge.core.config import Settings
from gradebridge.api.client import GradingApiClient
from gradebridge.events import EventHub
from gradebridge.models import FileDescriptor
from gradebridge.services.orchestrator import SubmissionOrchestrator
from gradebridge.services.uploads import UploadQueueManager
from gradebridge.utils.clock import Clock

MB = 1024 * 1024


async def settle(rounds: int = 50) -> None:
	"""Give every runnable task a chance to reach its next suspension point."""
	for _ in range(rounds):
		await asyncio.sleep(0)


class FakeClock(Clock):
	"""Virtual time: sleepers only wake when the test advances the clock."""

	def __init__(self) -> None:
		self._now = 1000.0
		self._seq = itertools.count()
		self._sleepers: List[tuple] = []

	def now(self) -> float:
		return self._now

	async def sleep(self, seconds: float) -> None:
		future = asyncio.get_running_loop().create_future()
		heapq.heappush(self._sleepers, (self._now + max(0.0, seconds), next(self._seq), future))
		await future

	async def advance(self, seconds: float = 0.0) -> None:
		target = self._now + seconds
		await settle()
		while self._sleepers and self._sleepers[0][0] <= target:
			deadline, _, future = heapq.heappop(self._sleepers)
			if future.done():
				continue
			self._now = max(self._now, deadline)
			future.set_result(None)
			await settle()
		self._now = target
		await settle()


class FakeBackend:
	"""In-memory stand-in for the upload, submission and status endpoints."""

	def __init__(self) -> None:
		self.requests: List[tuple] = []
		self.uploads: List[Dict[str, Any]] = []
		self.created: List[Dict[str, Any]] = []
		self.failing_uploads: Dict[str, str] = {}
		self.rejected_uploads: Dict[str, str] = {}
		self.rejected_submissions: List[str] = []
		self.hanging_uploads: set = set()
		self.status_scripts: Dict[str, List[Dict[str, Any]]] = {}
		self.submission_list: List[Dict[str, Any]] = []
		self._file_ids = itertools.count(1)
		self._submission_ids = itertools.count(1)

	def transport(self) -> httpx.MockTransport:
		return httpx.MockTransport(self.handle)

	def status_calls(self, submission_id: Optional[str] = None) -> int:
		counts = Counter(
			path for method, path in self.requests if method == "GET" and path.endswith("/status")
		)
		if submission_id is None:
			return sum(counts.values())
		return counts[f"/api/submissions/{submission_id}/status"]

	@staticmethod
	def status(submission_id: str, overall: str = "processing", ocr: Any = None, grading: Any = None) -> Dict[str, Any]:
		return {"submissionId": submission_id, "status": overall, "ocrResult": ocr, "gradingResult": grading}

	def script_status(self, submission_id: str, *payloads: Dict[str, Any]) -> None:
		self.status_scripts[submission_id] = list(payloads)

	async def handle(self, request: httpx.Request) -> httpx.Response:
		path = request.url.path
		self.requests.append((request.method, path))

		if request.method == "POST" and path == "/api/files/upload":
			return await self._upload(request)
		if request.method == "POST" and path == "/api/submissions":
			return self._create(request)
		match = re.fullmatch(r"/api/submissions/([^/]+)/status", path)
		if request.method == "GET" and match:
			return self._status(match.group(1))
		if request.method == "GET" and path == "/api/submissions":
			return httpx.Response(200, json={"success": True, "data": {"submissions": self.submission_list}})
		if request.method == "GET" and path == "/api/health":
			return httpx.Response(200, json={"success": True, "data": {"status": "ok"}})
		return httpx.Response(404, json={"success": False, "error": "Not found"})

	async def _upload(self, request: httpx.Request) -> httpx.Response:
		body = await request.aread()
		name_match = re.search(rb'filename="([^"]+)"', body)
		category_match = re.search(rb'name="category"\r\n\r\n([^\r]+)', body)
		name = name_match.group(1).decode() if name_match else ""
		self.uploads.append({
			"name": name,
			"category": category_match.group(1).decode() if category_match else None,
			"authorization": request.headers.get("authorization"),
		})

		if name in self.hanging_uploads:
			await asyncio.Event().wait()
		if name in self.failing_uploads:
			raise httpx.ConnectError(self.failing_uploads[name], request=request)
		if name in self.rejected_uploads:
			return httpx.Response(422, json={"success": False, "error": self.rejected_uploads[name]})

		file_id = f"file-{next(self._file_ids)}"
		return httpx.Response(200, json={
			"success": True,
			"data": {"id": file_id, "filename": f"{file_id}.bin", "originalName": name, "size": len(body)},
		})

	def _create(self, request: httpx.Request) -> httpx.Response:
		payload = json.loads(request.content)
		self.created.append(payload)
		if not payload.get("fileUploadId"):
			return httpx.Response(400, json={"success": False, "error": "fileUploadId is required"})
		if self.rejected_submissions:
			return httpx.Response(503, json={"success": False, "error": self.rejected_submissions.pop(0)})
		submission_id = f"sub-{next(self._submission_ids)}"
		return httpx.Response(200, json={"success": True, "data": {"id": submission_id, "status": "uploaded"}})

	def _status(self, submission_id: str) -> httpx.Response:
		script = self.status_scripts.get(submission_id)
		if not script:
			data = self.status(submission_id, ocr={"status": "processing"})
		elif len(script) > 1:
			data = script.pop(0)
		else:
			data = script[0]
		return httpx.Response(200, json={"success": True, "data": data})


def make_file(name: str, size_mb: float = 1.0, media_type: str = "application/pdf") -> FileDescriptor:
	return FileDescriptor(name=name, size=int(size_mb * MB), media_type=media_type, content=b"%PDF-1.4 test")


@pytest.fixture
def test_settings():
	settings = Settings()
	settings.API_URL = "http://test/api"
	settings.API_TOKEN = "test-token"
	settings.MAX_UPLOAD_MB = 100
	settings.ALLOWED_CONTENT_TYPES = ["application/pdf", "text/plain", "image/jpeg", "image/png"]
	settings.UPLOAD_MIN_TIMEOUT = 60.0
	settings.UPLOAD_SECONDS_PER_MB = 30.0
	settings.DEDUP_WINDOW = 3.0
	settings.POLL_INTERVAL = 3.0
	settings.POLL_TIMEOUT = 300.0
	settings.TASK_DISPLAY_SECONDS = 3.0
	settings.PROGRESS_CLEAR_SECONDS = 1.0
	settings.HISTORY_LIMIT = 10
	return settings


@pytest.fixture
def clock():
	return FakeClock()


@pytest.fixture
def backend():
	return FakeBackend()


@pytest.fixture
def events():
	return EventHub()


@pytest.fixture
async def client(test_settings, backend):
	api = GradingApiClient(test_settings, transport=backend.transport())
	yield api
	await api.aclose()


@pytest.fixture
async def manager(client, test_settings, clock, events):
	"""Queue manager that records submission hand-offs instead of polling."""
	handed_off: List[tuple] = []
	queue = UploadQueueManager(
		client,
		test_settings,
		clock=clock,
		events=events,
		on_submission=lambda task, submission_id: handed_off.append((task.id, submission_id)),
	)
	queue.handed_off = handed_off
	yield queue
	await queue.close()


@pytest.fixture
async def orchestrator(test_settings, backend, clock):
	orch = SubmissionOrchestrator(test_settings, transport=backend.transport(), clock=clock)
	yield orch
	await orch.aclose()


@pytest.fixture
def file_factory():
	return make_file
