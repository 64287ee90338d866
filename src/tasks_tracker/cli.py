from __future__ import annotations

import json
from typing import List, Optional

import typer
import uvicorn
from dotenv import load_dotenv

from tasks_tracker.core.config import ConfigError, Settings

app = typer.Typer(add_completion=False)

_server_url = typer.Option("http://127.0.0.1:8000", envvar="TASKS_TRACKER_URL", help="Server base URL")


def _load_env() -> None:
    load_dotenv()


@app.callback()
def main() -> None:
    """Track long-running background tasks with capability tokens."""
    # before option envvars are resolved
    _load_env()


def _setup_logging(settings: Settings) -> None:
    from tasks_tracker.core.logging_config import setup_logging

    setup_logging(log_dir=settings.log_dir, log_level=settings.log_level, clear_on_launch=settings.clear_logs_on_launch)


def _client(url: str):
    from tasks_tracker.integrations.client import TaskTrackerClient

    return TaskTrackerClient(url)


def _run_client(action):
    from tasks_tracker.integrations.client import TaskClientError

    try:
        return action()
    except TaskClientError as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


@app.command()
def serve(
    token_create: Optional[str] = typer.Argument(None, help="Token granting task creation"),
    token_admin: Optional[str] = typer.Argument(None, help="Admin token (all privileges)"),
    port: Optional[int] = typer.Argument(None, help="Bind port [default: 8000]"),
    host: Optional[str] = typer.Option(None, help="Bind host [default: 127.0.0.1]"),
    log_level: Optional[str] = typer.Option(None, help="Log level"),
) -> None:
    """Run the task tracker HTTP server."""
    try:
        settings = Settings.from_env().with_overrides(
            token_create=token_create,
            token_admin=token_admin,
            port=port,
            host=host,
            log_level=log_level,
        ).validate()
    except ConfigError as exc:
        typer.secho(f"Configuration error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)

    _setup_logging(settings)

    from tasks_tracker.core.gateway import create_app

    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)


@app.command()
def version() -> None:
    from tasks_tracker import __version__

    typer.echo(__version__)


@app.command()
def create(
    scope: str = typer.Argument(..., help="Name of the service creating the task"),
    name: str = typer.Argument(..., help="Human readable task name"),
    token: str = typer.Option(..., envvar="TASKS_TRACKER_TOKEN_CREATE", help="Creation token"),
    duration: int = typer.Option(3600, help="Seconds to keep the task once finished"),
    description: str = typer.Option("", help="Task description"),
    push: List[str] = typer.Option([], "--push", help="URL notified when the task finishes (repeatable)"),
    url: str = _server_url,
) -> None:
    """Create a task and print its location and tokens (shown only once)."""
    from tasks_tracker.integrations.client import NewTaskRequest

    request = NewTaskRequest(scope=scope, name=name, duration=duration, description=description, push_address=push)
    with _client(url) as client:
        created = _run_client(lambda: client.create_task(request, token))
    typer.echo(json.dumps({
        "location": created.location,
        "view_token": created.view_token,
        "abort_token": created.abort_token,
        "update_token": created.update_token,
    }, indent=2))


@app.command()
def show(
    location: str = typer.Argument(..., help="Task location, e.g. /tasks/<id>"),
    token: str = typer.Option(..., help="View (or admin) token"),
    url: str = _server_url,
) -> None:
    """Print one task."""
    with _client(url) as client:
        task = _run_client(lambda: client.get_task(location, token))
    typer.echo(json.dumps(task, indent=2))


@app.command("list")
def list_tasks(
    token: str = typer.Option(..., envvar="TASKS_TRACKER_TOKEN_ADMIN", help="Admin token"),
    url: str = _server_url,
) -> None:
    """Print every live task (admin only)."""
    with _client(url) as client:
        tasks = _run_client(lambda: client.list_tasks(token))
    for task in tasks:
        typer.echo(f"{task['id']}  {task['status']:<8} {task['progress']:>3}%  {task['scope']}/{task['name']}")


@app.command()
def progress(
    location: str = typer.Argument(...),
    value: int = typer.Argument(..., min=0, max=100),
    token: str = typer.Option(..., help="Update token"),
    url: str = _server_url,
) -> None:
    """Report progress (0-100) on an active task."""
    with _client(url) as client:
        _run_client(lambda: client.update_task_progress(location, token, value))
    typer.echo("accepted")


@app.command()
def finish(
    location: str = typer.Argument(...),
    token: str = typer.Option(..., help="Update token"),
    result: Optional[str] = typer.Option(None, help="Result description"),
    url: str = _server_url,
) -> None:
    """Mark a task done."""
    with _client(url) as client:
        _run_client(lambda: client.finish_task(location, token, description_result=result))
    typer.echo("accepted")


@app.command()
def abort(
    location: str = typer.Argument(...),
    token: str = typer.Option(..., help="Abort token (or update token with --with-update-token)"),
    result: Optional[str] = typer.Option(None, help="Reason for aborting"),
    with_update_token: bool = typer.Option(False, "--with-update-token", help="Abort via PATCH with the update token"),
    url: str = _server_url,
) -> None:
    """Abort a task."""
    with _client(url) as client:
        _run_client(lambda: client.abort_task(
            location, token, description_result=result, use_abort_verb=not with_update_token,
        ))
    typer.echo("accepted")


if __name__ == "__main__":
    app()
