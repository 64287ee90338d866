"""Task data model: status state machine, task entity, creation and mutation requests."""
from __future__ import annotations

import base64
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
import uuid

from tasks_tracker.core.tokens import TaskTokens


# Retention is an unsigned 32-bit count of seconds.
MAX_DURATION = 2**32 - 1


def encode_b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TaskStatus(str, Enum):
    ACTIVE = "active"
    ABORTED = "aborted"
    DONE = "done"

    @property
    def is_terminal(self) -> bool:
        return self is not TaskStatus.ACTIVE


# Legal transitions; terminal states are absorbing.
TRANSITIONS = {
    TaskStatus.ACTIVE: {TaskStatus.ACTIVE, TaskStatus.ABORTED, TaskStatus.DONE},
    TaskStatus.ABORTED: set(),
    TaskStatus.DONE: set(),
}


@dataclass
class TaskResult:
    """Result metadata attached on the terminal transition."""
    description: Optional[str] = None
    payload: bytes = b""


@dataclass
class MutationRequest:
    """A single requested change: a progress value while active, or a terminal status."""
    status: TaskStatus
    progress: int = 0
    result: TaskResult = field(default_factory=TaskResult)


@dataclass
class NewTask:
    """Creator-supplied metadata for a new task."""
    scope: str
    name: str
    duration: int
    description: str = ""
    payload: bytes = b""
    push_address: List[str] = field(default_factory=list)

    def to_task(self) -> Task:
        return Task(
            id=str(uuid.uuid4()),
            scope=self.scope,
            name=self.name,
            description=self.description,
            payload=self.payload,
            duration=self.duration,
            tokens=TaskTokens.mint(),
            push_address=list(self.push_address),
        )


@dataclass
class Task:
    """A tracked background task.

    ``id``, metadata, ``payload``, ``duration`` and ``tokens`` never change
    after creation. ``progress`` moves only while the task is active.
    """
    id: str
    scope: str
    name: str
    duration: int                       # seconds retained once terminal
    tokens: TaskTokens
    description: str = ""
    payload: bytes = b""
    progress: int = 0
    status: TaskStatus = TaskStatus.ACTIVE
    push_address: List[str] = field(default_factory=list)
    description_result: str = ""
    payload_result: bytes = b""
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    finished_at: Optional[datetime] = None

    @property
    def location(self) -> str:
        return f"/tasks/{self.id}"

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def copy(self) -> Task:
        return replace(self, push_address=list(self.push_address))

    def apply_result(self, result: TaskResult) -> None:
        # Blank values keep whatever is already stored.
        if result.description:
            self.description_result = result.description
        if result.payload:
            self.payload_result = result.payload

    def to_dict(self) -> dict:
        """Public view of the task. Tokens are never part of it."""
        return {
            "id": self.id,
            "scope": self.scope,
            "name": self.name,
            "description": self.description,
            "payload": encode_b64(self.payload),
            "duration": self.duration,
            "progress": self.progress,
            "status": self.status.value,
            "push_address": list(self.push_address),
            "description_result": self.description_result,
            "payload_result": encode_b64(self.payload_result),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }
