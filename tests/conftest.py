from __future__ import annotations

from typing import Iterable

import pytest
from fastapi.testclient import TestClient

from tasks_tracker.core.authorize import Authorizer
from tasks_tracker.core.config import Settings
from tasks_tracker.core.gateway import create_app
from tasks_tracker.core.lifecycle import TaskLifecycle
from tasks_tracker.core.models import NewTask
from tasks_tracker.core.notify import NotificationDispatcher
from tasks_tracker.core.registry import TaskRegistry
from tasks_tracker.core.tokens import CapabilityToken

CREATE_TOKEN = "create-secret-0001"
ADMIN_TOKEN = "admin-secret-0001"


class RecordingDispatcher(NotificationDispatcher):
    """Records dispatches instead of sending them."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[tuple[str, list[str]]] = []

    def dispatch(self, task_id: str, addresses: Iterable[str]) -> list:
        self.calls.append((task_id, list(addresses)))
        return []


class RecordingTimer:
    def __init__(self) -> None:
        self.armed: list[tuple[str, float]] = []

    def arm(self, task_id: str, duration: float) -> None:
        self.armed.append((task_id, duration))

    def cancel_all(self) -> int:
        return 0


def bearer(token: str) -> str:
    return f"Bearer {token}"


def new_task(**overrides) -> NewTask:
    values = {
        "scope": "billing",
        "name": "monthly-export",
        "duration": 60,
        "description": "export invoices",
        "push_address": ["http://hooks.local/done"],
    }
    values.update(overrides)
    return NewTask(**values)


@pytest.fixture
def registry() -> TaskRegistry:
    return TaskRegistry()


@pytest.fixture
def authorizer(registry) -> Authorizer:
    return Authorizer(
        registry,
        token_create=CapabilityToken(CREATE_TOKEN),
        token_admin=CapabilityToken(ADMIN_TOKEN),
    )


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def timer() -> RecordingTimer:
    return RecordingTimer()


@pytest.fixture
def lifecycle(registry, authorizer, dispatcher, timer) -> TaskLifecycle:
    return TaskLifecycle(registry, authorizer, dispatcher, timer)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        token_create=CREATE_TOKEN,
        token_admin=ADMIN_TOKEN,
        host="127.0.0.1",
        port=8000,
        log_level="debug",
        log_dir=str(tmp_path / "logs"),
        push_timeout=1.0,
        clear_logs_on_launch=False,
    )


@pytest.fixture
def client(settings, dispatcher):
    app = create_app(settings, dispatcher=dispatcher)
    with TestClient(app) as test_client:
        yield test_client
