import asyncio

import httpx
import pytest

from gradebridge.api.client import GradingApiClient
from gradebridge.core.exceptions import MalformedResponseError, RequestTimeoutError, ServerError, TransportError
from gradebridge.models import FileDescriptor
from gradebridge.schemas import GradingCompleted, RecognitionCompleted, StageFailed, StageProcessing


def _client(test_settings, handler):
	return GradingApiClient(test_settings, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_upload_sends_file_category_and_token(client, backend, file_factory):
	"""Upload is multipart with the category tag and the bearer token."""
	uploaded = await client.upload_file(file_factory("week1.pdf"), "practice", timeout=60)

	assert uploaded.id == "file-1"
	assert uploaded.original_name == "week1.pdf"
	assert backend.uploads == [{"name": "week1.pdf", "category": "practice", "authorization": "Bearer test-token"}]


@pytest.mark.asyncio
async def test_upload_reads_files_from_disk_in_a_thread(client, backend, tmp_path, monkeypatch):
	path = tmp_path / "scan.pdf"
	path.write_bytes(b"%PDF-1.4 scanned page")
	offloaded = []
	real_to_thread = asyncio.to_thread

	async def recording_to_thread(func, *args, **kwargs):
		offloaded.append(func)
		return await real_to_thread(func, *args, **kwargs)

	monkeypatch.setattr(asyncio, "to_thread", recording_to_thread)

	uploaded = await client.upload_file(FileDescriptor.from_path(str(path)), "homework")

	assert uploaded.original_name == "scan.pdf"
	assert len(offloaded) == 1
	assert backend.uploads[0]["name"] == "scan.pdf"


@pytest.mark.asyncio
async def test_in_memory_content_is_not_offloaded(client, file_factory, monkeypatch):
	async def unexpected(*args, **kwargs):
		raise AssertionError("in-memory content must not go through a thread")

	monkeypatch.setattr(asyncio, "to_thread", unexpected)

	uploaded = await client.upload_file(file_factory("notes.txt", 1, "text/plain"), "practice")

	assert uploaded.original_name == "notes.txt"


@pytest.mark.asyncio
async def test_create_submission_includes_assignment_reference(client, backend):
	created = await client.create_submission("file-9", "assignment", assignment_id="hw-42")

	assert created.id == "sub-1"
	assert backend.created == [{"fileUploadId": "file-9", "workMode": "assignment", "assignmentId": "hw-42"}]


@pytest.mark.asyncio
async def test_create_submission_accepts_session_id_alias(test_settings):
	def handler(request):
		return httpx.Response(200, json={"success": True, "data": {"sessionId": 17, "status": "UPLOADED"}})

	async with _client(test_settings, handler) as api:
		created = await api.create_submission("file-1", "practice")
	assert created.id == "17"


@pytest.mark.asyncio
async def test_status_stage_records_become_tagged_variants(client, backend):
	backend.script_status("sub-3", backend.status(
		"sub-3",
		ocr={"status": "completed", "recognizedText": "x^2 + 1", "confidence": 0.93},
		grading={"status": "processing"},
	))

	status = await client.get_submission_status("sub-3")

	assert status.submission_id == "sub-3"
	assert isinstance(status.ocr_result, RecognitionCompleted)
	assert status.ocr_result.recognized_text == "x^2 + 1"
	assert isinstance(status.grading_result, StageProcessing)


@pytest.mark.asyncio
async def test_status_parses_grading_payload_and_failures(client, backend):
	backend.script_status("sub-4", backend.status(
		"sub-4",
		overall="COMPLETED",
		ocr={"status": "completed", "recognizedText": "∫x dx"},
		grading={"status": "completed", "score": 85, "maxScore": 100, "feedback": "Mostly right", "strengths": ["notation"]},
	))
	status = await client.get_submission_status("sub-4")
	assert status.status == "completed"
	assert isinstance(status.grading_result, GradingCompleted)
	assert status.grading_result.max_score == 100
	assert status.grading_result.strengths == ["notation"]

	backend.script_status("sub-5", backend.status("sub-5", ocr={"status": "failed", "error": "Image unreadable"}))
	status = await client.get_submission_status("sub-5")
	assert isinstance(status.ocr_result, StageFailed)
	assert status.ocr_result.reason == "Image unreadable"


@pytest.mark.asyncio
async def test_unknown_stage_shape_is_rejected(client, backend):
	"""Stage records outside processing/completed/failed never reach the poller."""
	backend.script_status("sub-6", backend.status("sub-6", ocr={"status": "half-done", "recognizedText": "?"}))

	with pytest.raises(MalformedResponseError):
		await client.get_submission_status("sub-6")


@pytest.mark.asyncio
async def test_server_error_message_is_verbatim(test_settings):
	def handler(request):
		return httpx.Response(404, json={"success": False, "error": "File not found or access denied"})

	async with _client(test_settings, handler) as api:
		with pytest.raises(ServerError) as exc_info:
			await api.create_submission("file-1", "homework")
	assert str(exc_info.value) == "File not found or access denied"
	assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_success_false_with_200_is_a_server_error(test_settings):
	def handler(request):
		return httpx.Response(200, json={"success": False, "message": "Quota exceeded"})

	async with _client(test_settings, handler) as api:
		with pytest.raises(ServerError, match="Quota exceeded"):
			await api.get_submission_status("sub-1")


@pytest.mark.asyncio
async def test_non_json_error_body_uses_status_code(test_settings):
	def handler(request):
		return httpx.Response(502, text="<html>Bad gateway</html>")

	async with _client(test_settings, handler) as api:
		with pytest.raises(ServerError, match="HTTP 502"):
			await api.get_submission_status("sub-1")


@pytest.mark.asyncio
async def test_transport_failures_are_classified(test_settings):
	def refused(request):
		raise httpx.ConnectError("connection refused", request=request)

	def slow(request):
		raise httpx.ReadTimeout("read timed out", request=request)

	async with _client(test_settings, refused) as api:
		with pytest.raises(TransportError, match="connection refused"):
			await api.get_submission_status("sub-1")

	async with _client(test_settings, slow) as api:
		with pytest.raises(RequestTimeoutError):
			await api.get_submission_status("sub-1")


@pytest.mark.asyncio
async def test_list_submissions_and_health(client, backend):
	backend.submission_list = [
		{"id": 1, "status": "completed", "submittedAt": "2024-05-01T10:00:00Z"},
		{"id": "2", "status": "processing"},
	]

	summaries = await client.list_submissions(limit=5)

	assert [s.id for s in summaries] == ["1", "2"]
	assert summaries[0].submitted_at == "2024-05-01T10:00:00Z"
	assert ("GET", "/api/submissions") in backend.requests
	assert await client.health_check() is True
