"""Client SDK against the real app, through FastAPI's TestClient transport."""
from __future__ import annotations

import httpx
import pytest

from tasks_tracker.integrations.client import (
    HeaderNotFoundError,
    NewTaskRequest,
    TaskClientError,
    TaskTrackerClient,
)

from conftest import ADMIN_TOKEN, CREATE_TOKEN


@pytest.fixture
def sdk(client) -> TaskTrackerClient:
    return TaskTrackerClient(str(client.base_url), http=client)


def test_create_simple_task(sdk) -> None:
    created = sdk.create_simple_task("billing", "export", CREATE_TOKEN)
    assert created.location == f"/tasks/{created.task_id}"
    task = sdk.get_task(created.location, created.view_token)
    assert task["duration"] == 3600
    assert task["description"] == ""
    assert task["push_address"] == []


def test_full_worker_flow(sdk, dispatcher) -> None:
    created = sdk.create_task(
        NewTaskRequest(
            scope="billing",
            name="export",
            duration=120,
            push_address=["http://hooks.local/done"],
            payload=b"\x01\x02",
        ),
        CREATE_TOKEN,
    )
    sdk.update_task_progress(created.location, created.update_token, 60)
    assert sdk.get_task(created.location, created.view_token)["progress"] == 60

    sdk.finish_task(created.location, created.update_token, description_result="done", payload_result=b"out")
    task = sdk.get_task(created.location, created.view_token)
    assert task["status"] == "done"
    assert task["description_result"] == "done"
    assert dispatcher.calls == [(created.task_id, ["http://hooks.local/done"])]


def test_abort_with_abort_token(sdk) -> None:
    created = sdk.create_simple_task("s", "n", CREATE_TOKEN)
    sdk.abort_task(created.location, created.abort_token, description_result="stop")
    task = sdk.get_task(created.location, created.view_token)
    assert task["status"] == "aborted"
    assert task["description_result"] == "stop"


def test_abort_with_update_token(sdk) -> None:
    created = sdk.create_simple_task("s", "n", CREATE_TOKEN)
    sdk.abort_task(created.location, created.update_token, use_abort_verb=False)
    assert sdk.get_task(created.location, created.view_token)["status"] == "aborted"


def test_errors_carry_status(sdk) -> None:
    created = sdk.create_simple_task("s", "n", CREATE_TOKEN)
    with pytest.raises(TaskClientError) as excinfo:
        sdk.update_task_progress(created.location, created.abort_token, 10)
    assert excinfo.value.status_code == 403

    sdk.finish_task(created.location, created.update_token)
    with pytest.raises(TaskClientError) as excinfo:
        sdk.finish_task(created.location, created.update_token)
    assert excinfo.value.status_code == 405

    with pytest.raises(TaskClientError) as excinfo:
        sdk.list_tasks(CREATE_TOKEN)
    assert excinfo.value.status_code == 403


def test_list_tasks_admin(sdk) -> None:
    sdk.create_simple_task("s", "a", CREATE_TOKEN)
    sdk.create_simple_task("s", "b", CREATE_TOKEN)
    assert len(sdk.list_tasks(ADMIN_TOKEN)) == 2


def test_missing_token_header() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(201, headers={"Content-Location": "/tasks/abc"})

    http = httpx.Client(transport=httpx.MockTransport(handler))
    sdk = TaskTrackerClient("http://tracker.local", http=http)
    with pytest.raises(HeaderNotFoundError) as excinfo:
        sdk.create_simple_task("s", "n", "tok")
    assert excinfo.value.header == "ViewToken"


def test_connection_error_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    sdk = TaskTrackerClient("http://tracker.local", http=httpx.Client(transport=httpx.MockTransport(handler)))
    with pytest.raises(TaskClientError) as excinfo:
        sdk.get_task("/tasks/abc", "tok")
    assert excinfo.value.status_code is None


def test_close_leaves_injected_client_open() -> None:
    http = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200, json=[])))
    with TaskTrackerClient("http://tracker.local", http=http) as sdk:
        assert sdk.list_tasks("tok") == []
    assert not http.is_closed
    http.close()


def test_close_releases_own_client() -> None:
    sdk = TaskTrackerClient("http://tracker.local")
    own = sdk._client()
    assert sdk._client() is own
    sdk.close()
    assert own.is_closed
