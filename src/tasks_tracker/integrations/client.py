"""HTTP client for a tasks-tracker server.

Used by services that create tasks and by the workers that report on them::

    client = TaskTrackerClient("http://127.0.0.1:8000")
    created = client.create_simple_task("billing", "monthly-export", token=creation_token)
    client.update_task_progress(created.location, created.update_token, 40)
    client.finish_task(created.location, created.update_token, description_result="42 rows")
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, List, Optional
from urllib.parse import urljoin

import httpx

from tasks_tracker.core.models import TaskStatus, encode_b64

logger = logging.getLogger("tasks_tracker.client")

DEFAULT_SIMPLE_DURATION = 3600


class TaskClientError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class HeaderNotFoundError(TaskClientError):
    def __init__(self, header: str) -> None:
        super().__init__(f"Header {header} is not present in response")
        self.header = header


@dataclass
class NewTaskRequest:
    scope: str
    name: str
    duration: int = DEFAULT_SIMPLE_DURATION
    description: str = ""
    push_address: List[str] = field(default_factory=list)
    payload: bytes = b""

    def to_json(self) -> dict[str, Any]:
        return {
            "duration": self.duration,
            "scope": self.scope,
            "name": self.name,
            "description": self.description,
            "push_address": list(self.push_address),
            "payload": encode_b64(self.payload),
        }


@dataclass
class NewTaskResponse:
    """Everything the server hands out on creation. The tokens cannot be fetched again."""
    location: str
    task_id: str
    view_token: str
    abort_token: str
    update_token: str


@dataclass
class TaskTrackerClient:
    base_url: str
    timeout: float = 15.0
    http: Optional[httpx.Client] = None
    _owned: Optional[httpx.Client] = field(default=None, init=False, repr=False)

    def _client(self) -> httpx.Client:
        if self.http is not None:
            return self.http
        if self._owned is None:
            self._owned = httpx.Client(timeout=self.timeout)
        return self._owned

    def close(self) -> None:
        # an injected client belongs to the caller
        if self._owned is not None:
            self._owned.close()
            self._owned = None

    def __enter__(self) -> TaskTrackerClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _url(self, location: str) -> str:
        return urljoin(self.base_url.rstrip("/") + "/", location.lstrip("/"))

    def _request(self, method: str, location: str, token: str, **kwargs: Any) -> httpx.Response:
        headers = {"Authorization": f"Bearer {token}"}
        try:
            resp = self._client().request(method, self._url(location), headers=headers, **kwargs)
        except httpx.RequestError as exc:
            raise TaskClientError(f"request to {location} failed: {exc}") from exc
        logger.debug("%s %s -> %s", method, location, resp.status_code)
        if resp.is_error:
            detail = resp.text
            try:
                detail = resp.json().get("detail", detail)
            except (ValueError, AttributeError):
                pass
            raise TaskClientError(f"{method} {location} -> {resp.status_code}: {detail}", resp.status_code)
        return resp

    # ── Creation ─────────────────────────────────────────────

    def create_task(self, new_task: NewTaskRequest, token: str) -> NewTaskResponse:
        resp = self._request("POST", "/tasks", token, json=new_task.to_json())
        location = _header(resp, "Content-Location")
        return NewTaskResponse(
            location=location,
            task_id=location.rstrip("/").rsplit("/", 1)[-1],
            view_token=_header(resp, "ViewToken"),
            abort_token=_header(resp, "AbortToken"),
            update_token=_header(resp, "UpdateToken"),
        )

    def create_simple_task(self, scope: str, name: str, token: str) -> NewTaskResponse:
        return self.create_task(NewTaskRequest(scope=scope, name=name), token)

    # ── Reporting ────────────────────────────────────────────

    def _mutate(self, method: str, location: str, token: str, body: dict[str, Any]) -> None:
        self._request(method, location, token, json=body)

    def update_task_progress(self, location: str, token: str, progress: int) -> None:
        self._mutate("PATCH", location, token, {"status": TaskStatus.ACTIVE.value, "progress": progress})

    def finish_task(
        self,
        location: str,
        token: str,
        description_result: Optional[str] = None,
        payload_result: bytes = b"",
    ) -> None:
        self._mutate("PATCH", location, token, {
            "status": TaskStatus.DONE.value,
            "progress": 100,
            "description_result": description_result,
            "payload_result": encode_b64(payload_result),
        })

    def abort_task(
        self,
        location: str,
        token: str,
        description_result: Optional[str] = None,
        payload_result: bytes = b"",
        *,
        use_abort_verb: bool = True,
    ) -> None:
        """Abort with the abort token (DELETE), or with the update token when ``use_abort_verb`` is False."""
        self._mutate("DELETE" if use_abort_verb else "PATCH", location, token, {
            "status": TaskStatus.ABORTED.value,
            "description_result": description_result,
            "payload_result": encode_b64(payload_result),
        })

    # ── Reading ──────────────────────────────────────────────

    def get_task(self, location: str, token: str) -> dict[str, Any]:
        return self._request("GET", location, token).json()

    def list_tasks(self, token: str) -> list[dict[str, Any]]:
        return self._request("GET", "/tasks", token).json()


def _header(resp: httpx.Response, key: str) -> str:
    value = resp.headers.get(key)
    if value is None:
        raise HeaderNotFoundError(key)
    return value
