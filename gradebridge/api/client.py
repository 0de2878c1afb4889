import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from gradebridge.core.config import Settings, settings as default_settings
from gradebridge.core.exceptions import (
	MalformedResponseError,
	RequestTimeoutError,
	ServerError,
	TransportError,
)
from gradebridge.models import FileDescriptor
from gradebridge.schemas import ApiEnvelope, CreatedSubmission, SubmissionStatus, SubmissionSummary, UploadedFile
from gradebridge.utils.file_helpers import get_safe_filename

logger = logging.getLogger(__name__)


class GradingApiClient:
	"""Async client for the upload, create-submission and submission-status contracts."""

	def __init__(
		self,
		settings: Optional[Settings] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.settings = settings or default_settings
		headers = {"Accept": "application/json"}
		if self.settings.API_TOKEN:
			headers["Authorization"] = f"Bearer {self.settings.API_TOKEN}"
		self._client = httpx.AsyncClient(
			base_url=self.settings.API_URL,
			headers=headers,
			timeout=self.settings.REQUEST_TIMEOUT,
			transport=transport,
		)

	async def aclose(self) -> None:
		await self._client.aclose()

	async def __aenter__(self) -> "GradingApiClient":
		return self

	async def __aexit__(self, *exc_info: Any) -> None:
		await self.aclose()

	async def upload_file(self, file: FileDescriptor, category: str, timeout: Optional[float] = None) -> UploadedFile:
		if file.content is not None:
			content = file.content
		else:
			# Disk reads stay off the event loop
			content = await asyncio.to_thread(file.read)
		files = {"file": (get_safe_filename(file.name), content, file.media_type)}
		data = await self._request(
			"POST",
			"/files/upload",
			files=files,
			data={"category": category},
			timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
		)
		return self._parse(UploadedFile, data, "upload")

	async def create_submission(
		self,
		file_id: str,
		category: str,
		assignment_id: Optional[str] = None,
		metadata: Optional[Dict[str, Any]] = None,
	) -> CreatedSubmission:
		body: Dict[str, Any] = {"fileUploadId": file_id, "workMode": category}
		if assignment_id is not None:
			body["assignmentId"] = assignment_id
		if metadata:
			body["metadata"] = metadata
		data = await self._request("POST", "/submissions", json=body)
		return self._parse(CreatedSubmission, data, "create-submission")

	async def get_submission_status(self, submission_id: str) -> SubmissionStatus:
		data = await self._request("GET", f"/submissions/{submission_id}/status")
		return self._parse(SubmissionStatus, data, "submission-status")

	async def list_submissions(self, limit: int = 10, offset: int = 0) -> List[SubmissionSummary]:
		data = await self._request("GET", "/submissions", params={"limit": limit, "offset": offset})
		items = data.get("submissions", []) if isinstance(data, dict) else data
		if not isinstance(items, list):
			raise MalformedResponseError("submission list: expected a list of submissions")
		return [self._parse(SubmissionSummary, item, "submission list") for item in items]

	async def health_check(self) -> bool:
		try:
			data = await self._request("GET", "/health")
		except (TransportError, ServerError, MalformedResponseError) as e:
			logger.warning(f"Health check failed: {e}")
			return False
		return isinstance(data, dict) and data.get("status") in ("ok", "healthy")

	async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
		try:
			response = await self._client.request(method, url, **kwargs)
		except httpx.TimeoutException as e:
			raise RequestTimeoutError(f"{method} {url} timed out") from e
		except httpx.HTTPError as e:
			raise TransportError(str(e) or type(e).__name__) from e

		try:
			envelope = ApiEnvelope.model_validate(response.json())
		except (ValueError, ValidationError) as e:
			if response.is_error:
				raise ServerError(f"HTTP {response.status_code}", status_code=response.status_code) from e
			raise MalformedResponseError(f"{method} {url}: response is not a JSON envelope") from e

		if response.is_error or not envelope.success:
			# Backend messages are surfaced verbatim
			message = envelope.error or envelope.message or f"HTTP {response.status_code}"
			raise ServerError(message, status_code=response.status_code)
		return envelope.data

	@staticmethod
	def _parse(model, data: Any, what: str):
		try:
			return model.model_validate(data)
		except ValidationError as e:
			logger.warning(f"Rejected {what} payload: {e.error_count()} validation error(s)")
			raise MalformedResponseError(f"{what}: unexpected payload shape") from e
