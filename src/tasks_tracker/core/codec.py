"""Wire format for request bodies.

Bodies are JSON; binary fields travel as standard base64 strings. Any
decoding failure surfaces as :class:`MalformedBodyError` so it stays
distinct from business-logic failures.
"""
from __future__ import annotations

import base64
import binascii
from typing import Annotated, List, Optional

from pydantic import AnyHttpUrl, BaseModel, BeforeValidator, Field, ValidationError

from tasks_tracker.core.errors import MalformedBodyError
from tasks_tracker.core.models import MAX_DURATION, MutationRequest, NewTask, TaskResult, TaskStatus


def _decode_b64(value: object) -> object:
    if isinstance(value, str):
        try:
            return base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError(f"invalid base64: {exc}") from exc
    return value


Base64Bytes = Annotated[bytes, BeforeValidator(_decode_b64)]


class NewTaskBody(BaseModel):
    duration: int = Field(ge=0, le=MAX_DURATION)
    scope: str
    name: str
    description: str = ""
    push_address: List[AnyHttpUrl] = Field(default_factory=list)
    payload: Base64Bytes = b""

    def to_new_task(self) -> NewTask:
        return NewTask(
            scope=self.scope,
            name=self.name,
            duration=self.duration,
            description=self.description,
            payload=self.payload,
            push_address=[str(url) for url in self.push_address],
        )


class MutationBody(BaseModel):
    """One change per request: ``progress`` counts only while ``status`` is active."""
    status: TaskStatus
    progress: int = Field(default=0, ge=0, le=100)
    description_result: Optional[str] = None
    payload_result: Base64Bytes = b""

    def to_request(self) -> MutationRequest:
        return MutationRequest(
            status=self.status,
            progress=self.progress,
            result=TaskResult(description=self.description_result, payload=self.payload_result),
        )


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    where = ".".join(str(p) for p in err.get("loc", ())) or "body"
    return f"{where}: {err.get('msg', 'invalid')}"


def decode_new_task(raw: bytes) -> NewTask:
    try:
        return NewTaskBody.model_validate_json(raw).to_new_task()
    except ValidationError as exc:
        raise MalformedBodyError(_first_error(exc)) from exc


def decode_mutation(raw: bytes) -> MutationRequest:
    try:
        return MutationBody.model_validate_json(raw).to_request()
    except ValidationError as exc:
        raise MalformedBodyError(_first_error(exc)) from exc
