from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import Optional
import uuid

from dotenv import load_dotenv
from fastapi import FastAPI, Header, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from tasks_tracker import __version__
from tasks_tracker.core.authorize import Authorizer, Privilege, PrivilegeKind
from tasks_tracker.core.codec import decode_mutation, decode_new_task
from tasks_tracker.core.config import Settings
from tasks_tracker.core.errors import TaskTrackerError
from tasks_tracker.core.lifecycle import TaskLifecycle
from tasks_tracker.core.notify import NotificationDispatcher
from tasks_tracker.core.registry import TaskRegistry
from tasks_tracker.core.retirement import RetirementTimer
from tasks_tracker.core.tokens import CapabilityToken

logger = logging.getLogger("tasks_tracker.gateway")

# Verb -> privilege resolution happens here, never inside the controller.
MUTATION_VERBS = {
    "PATCH": PrivilegeKind.UPDATE,
    "DELETE": PrivilegeKind.ABORT,
}


def build_lifecycle(
    settings: Settings,
    *,
    registry: Optional[TaskRegistry] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> TaskLifecycle:
    """Wire registry, authorizer, dispatcher and timer for one process."""
    registry = registry or TaskRegistry()
    authorizer = Authorizer(
        registry,
        token_create=CapabilityToken(settings.token_create),
        token_admin=CapabilityToken(settings.token_admin) if settings.token_admin else None,
    )
    return TaskLifecycle(
        registry=registry,
        authorizer=authorizer,
        dispatcher=dispatcher or NotificationDispatcher(timeout=settings.push_timeout),
        retirement=RetirementTimer(registry),
    )


def create_app(
    settings: Optional[Settings] = None,
    *,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> FastAPI:
    if settings is None:
        # Ensure .env is loaded before anything reads os.getenv
        load_dotenv(override=False)
        settings = Settings.from_env()
    settings.validate()

    lifecycle = build_lifecycle(settings, dispatcher=dispatcher)

    @asynccontextmanager
    async def lifespan(application: FastAPI):
        logger.info(
            "Task tracker ready (admin token %s)",
            "configured" if settings.token_admin else "not configured",
        )
        yield
        cancelled = lifecycle.retirement.cancel_all()
        if cancelled:
            logger.info("Shutdown: cancelled %d pending retirement timers", cancelled)

    app = FastAPI(title="tasks-tracker", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.lifecycle = lifecycle

    # ---- error mapping ----

    @app.exception_handler(TaskTrackerError)
    async def tracker_error(request: Request, exc: TaskTrackerError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": "malformed request"})

    # ---- routes ----

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/tasks")
    def list_tasks(authorization: Optional[str] = Header(default=None)) -> list:
        return [task.to_dict() for task in lifecycle.list_tasks(authorization)]

    @app.post("/tasks", status_code=201)
    async def create_task(request: Request, authorization: Optional[str] = Header(default=None)) -> JSONResponse:
        lifecycle.authorizer.require(authorization, Privilege.creation())
        new_task = decode_new_task(await request.body())
        task = lifecycle.create(new_task)
        return JSONResponse(
            status_code=201,
            content={"id": task.id, "location": task.location},
            headers={
                "Content-Location": task.location,
                "ViewToken": task.tokens.view.reveal(),
                "AbortToken": task.tokens.abort.reveal(),
                "UpdateToken": task.tokens.update.reveal(),
            },
        )

    @app.get("/tasks/{task_id}")
    def view_task(task_id: uuid.UUID, authorization: Optional[str] = Header(default=None)) -> dict:
        return lifecycle.view(str(task_id), authorization).to_dict()

    @app.api_route("/tasks/{task_id}", methods=list(MUTATION_VERBS))
    async def mutate_task(
        task_id: uuid.UUID,
        request: Request,
        authorization: Optional[str] = Header(default=None),
    ) -> Response:
        capability = MUTATION_VERBS[request.method]
        lifecycle.authorizer.require(authorization, Privilege(capability, str(task_id)))
        change = decode_mutation(await request.body())
        lifecycle.mutate(str(task_id), capability, change)
        return Response(status_code=202)

    return app
