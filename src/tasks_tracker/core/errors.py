"""Outcomes a single operation can fail with.

Every class carries the HTTP status the gateway answers with; none of them
is fatal to the process.
"""
from __future__ import annotations

from typing import Dict, Optional


class TaskTrackerError(Exception):
    status_code = 500
    detail = "internal error"

    def __init__(self, detail: Optional[str] = None) -> None:
        super().__init__(detail or self.detail)
        self.detail = detail or self.detail

    @property
    def headers(self) -> Dict[str, str]:
        return {}


class UnauthenticatedError(TaskTrackerError):
    """No credential, or a credential that is valid for nothing known."""
    status_code = 401
    detail = "missing or unknown bearer token"

    @property
    def headers(self) -> Dict[str, str]:
        return {"WWW-Authenticate": "Bearer"}


class MalformedCredentialError(TaskTrackerError):
    status_code = 400
    detail = "authorization header is not valid visible ASCII"


class MalformedBodyError(TaskTrackerError):
    status_code = 400
    detail = "request body could not be decoded"


class ForbiddenError(TaskTrackerError):
    """The credential is known but grants a different capability."""
    status_code = 403
    detail = "token does not grant this capability"


class TaskNotFoundError(TaskTrackerError):
    status_code = 404
    detail = "task not found"

    def __init__(self, task_id: str) -> None:
        super().__init__(f"task {task_id} not found")
        self.task_id = task_id


class ReadOnlyTaskError(TaskTrackerError):
    """The task is terminal. Reading it is still allowed."""
    status_code = 405
    detail = "task is finished and read-only"
    allowed_methods = ("GET",)

    @property
    def headers(self) -> Dict[str, str]:
        return {"Allow": ", ".join(self.allowed_methods)}


class InvalidTransitionError(TaskTrackerError):
    """The capability used may not drive the task to the requested state."""
    status_code = 403
    detail = "capability does not allow this transition"
