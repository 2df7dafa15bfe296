"""KIE AI jobs API client."""

import json
from collections.abc import Sequence
from dataclasses import dataclass, field

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from fabric_muse.domain.errors import RemoteServiceError
from fabric_muse.domain.generation import GenerationOptions, TaskState, TaskStatus
from fabric_muse.services.jobs import GenerationClient

_SUCCESS_CODE = 200


class _Envelope(BaseModel):
    """Common ``{code, msg, data}`` wrapper; code is non-200 on app errors."""

    code: int
    msg: str | None = None
    data: dict[str, object] | None = None


class _CreatedTask(BaseModel):
    taskId: str  # noqa: N815


class _RecordInfo(BaseModel):
    state: str
    resultJson: str | None = None  # noqa: N815
    failMsg: str | None = None  # noqa: N815


class _ResultPayload(BaseModel):
    resultUrls: list[str] = []  # noqa: N815


@dataclass
class HttpxKieClient(GenerationClient):
    """Generation client for the KIE AI createTask/recordInfo API."""

    api_key: str
    base_url: str
    http_client: httpx.AsyncClient
    options: GenerationOptions = field(default_factory=GenerationOptions)
    timeout_seconds: float = 15.0

    @classmethod
    def create(
        cls,
        api_key: str,
        base_url: str,
        options: GenerationOptions,
        timeout_seconds: float = 15.0,
    ) -> "HttpxKieClient":
        """Create a KIE client with a managed httpx session."""
        return cls(
            api_key=api_key,
            base_url=base_url.rstrip("/"),
            http_client=httpx.AsyncClient(),
            options=options,
            timeout_seconds=timeout_seconds,
        )

    async def create_task(self, prompt: str, image_urls: Sequence[str]) -> str:
        """Submit a generation task and return its task id."""
        payload = {
            "model": self.options.model,
            "input": {
                "prompt": prompt,
                "image_input": list(image_urls),
                "aspect_ratio": self.options.aspect_ratio,
                "resolution": self.options.resolution,
                "output_format": self.options.output_format,
            },
        }
        envelope = await self._request(
            "POST", f"{self.base_url}/createTask", json=payload
        )
        try:
            created = _CreatedTask.model_validate(envelope.data or {})
        except PydanticValidationError as exc:
            raise RemoteServiceError("KIE API returned no taskId") from exc
        return created.taskId

    async def get_task_status(self, task_id: str) -> TaskStatus:
        """Fetch and normalize the state of a task."""
        envelope = await self._request(
            "GET", f"{self.base_url}/recordInfo", params={"taskId": task_id}
        )
        try:
            record = _RecordInfo.model_validate(envelope.data or {})
        except PydanticValidationError as exc:
            raise RemoteServiceError("KIE API returned a malformed record") from exc
        return TaskStatus(
            task_id=task_id,
            state=_normalize_state(record.state),
            result_urls=_parse_result_urls(record.resultJson),
            failure_message=record.failMsg,
        )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _request(self, method: str, url: str, **kwargs: object) -> _Envelope:
        """Send a request and unwrap the vendor envelope."""
        try:
            response = await self.http_client.request(
                method,
                url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout_seconds,
                **kwargs,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RemoteServiceError(
                f"KIE API Error: HTTP {exc.response.status_code} {exc.response.text}",
                vendor_status=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise RemoteServiceError(f"KIE API unreachable: {exc}") from exc

        try:
            envelope = _Envelope.model_validate(response.json())
        except (ValueError, PydanticValidationError) as exc:
            raise RemoteServiceError("KIE API returned an unexpected payload") from exc
        if envelope.code != _SUCCESS_CODE:
            raise RemoteServiceError(
                f"KIE API Error: {envelope.msg}", vendor_status=envelope.code
            )
        return envelope


def _normalize_state(state: str) -> TaskState:
    """Map vendor states (waiting, queuing, generating, ...) onto ours."""
    if state == "success":
        return TaskState.SUCCESS
    if state == "fail":
        return TaskState.FAIL
    return TaskState.PENDING


def _parse_result_urls(result_json: str | None) -> tuple[str, ...]:
    """Decode the doubly-encoded ``resultJson`` string."""
    if not result_json:
        return ()
    try:
        payload = _ResultPayload.model_validate(json.loads(result_json))
    except (ValueError, PydanticValidationError) as exc:
        raise RemoteServiceError("KIE API returned malformed resultJson") from exc
    return tuple(url for url in payload.resultUrls if url)
