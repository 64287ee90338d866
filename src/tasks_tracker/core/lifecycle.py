"""Task lifecycle controller.

Applies state transitions under the capability split:

* the update capability may set progress, finish (done) or abort;
* the abort capability may only abort;
* a terminal task (done or aborted) accepts no further mutation.

Terminal transitions fan out push notifications and arm the retirement
timer. Both happen after the registry lock is released.
"""
from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import List, Optional

from tasks_tracker.core.authorize import Authorizer, Privilege, PrivilegeKind
from tasks_tracker.core.errors import (
    InvalidTransitionError,
    MalformedBodyError,
    ReadOnlyTaskError,
    TaskNotFoundError,
)
from tasks_tracker.core.logging_config import log_lifecycle_event
from tasks_tracker.core.models import (
    MAX_DURATION,
    TRANSITIONS,
    MutationRequest,
    NewTask,
    Task,
    TaskResult,
    TaskStatus,
)
from tasks_tracker.core.notify import NotificationDispatcher
from tasks_tracker.core.registry import TaskRegistry
from tasks_tracker.core.retirement import RetirementTimer

logger = logging.getLogger("tasks_tracker.lifecycle")

# Target statuses each mutating capability may request.
CAPABILITY_TARGETS = {
    PrivilegeKind.UPDATE: {TaskStatus.ACTIVE, TaskStatus.DONE, TaskStatus.ABORTED},
    PrivilegeKind.ABORT: {TaskStatus.ABORTED},
}


class TaskLifecycle:
    def __init__(
        self,
        registry: TaskRegistry,
        authorizer: Authorizer,
        dispatcher: NotificationDispatcher,
        retirement: RetirementTimer,
    ) -> None:
        self.registry = registry
        self.authorizer = authorizer
        self.dispatcher = dispatcher
        self.retirement = retirement

    # ── Creation and reads ───────────────────────────────────

    def create(self, new_task: NewTask) -> Task:
        """Register a new active task.

        The returned task is the only place its tokens are ever handed out.
        """
        if not 0 <= new_task.duration <= MAX_DURATION:
            raise MalformedBodyError(f"duration must be between 0 and {MAX_DURATION}")
        task = new_task.to_task()
        self.registry.insert(task)
        logger.info("Created task %s (%s/%s)", task.id, task.scope, task.name)
        log_lifecycle_event(
            task.id, "created",
            scope=task.scope, name=task.name, duration=task.duration,
            push_addresses=len(task.push_address),
        )
        return task.copy()

    def view(self, task_id: str, authorization: Optional[str]) -> Task:
        self.authorizer.require(authorization, Privilege.view(task_id))
        task = self.registry.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def list_tasks(self, authorization: Optional[str]) -> List[Task]:
        self.authorizer.require(authorization, Privilege.list())
        return self.registry.snapshot()

    # ── Mutations ────────────────────────────────────────────

    def set_progress(
        self,
        task_id: str,
        value: int,
        authorization: Optional[str],
        capability: PrivilegeKind = PrivilegeKind.UPDATE,
    ) -> Task:
        change = MutationRequest(status=TaskStatus.ACTIVE, progress=value)
        return self.apply(task_id, capability, change, authorization)

    def finish(
        self,
        task_id: str,
        result: Optional[TaskResult],
        authorization: Optional[str],
        capability: PrivilegeKind = PrivilegeKind.UPDATE,
    ) -> Task:
        change = MutationRequest(status=TaskStatus.DONE, progress=100, result=result or TaskResult())
        return self.apply(task_id, capability, change, authorization)

    def abort(
        self,
        task_id: str,
        result: Optional[TaskResult],
        authorization: Optional[str],
        capability: PrivilegeKind = PrivilegeKind.ABORT,
    ) -> Task:
        change = MutationRequest(status=TaskStatus.ABORTED, result=result or TaskResult())
        return self.apply(task_id, capability, change, authorization)

    def apply(
        self,
        task_id: str,
        capability: PrivilegeKind,
        change: MutationRequest,
        authorization: Optional[str],
    ) -> Task:
        """Authorize ``authorization`` for ``capability`` on the task, then mutate."""
        self.authorizer.require(authorization, Privilege(_mutating(capability), task_id))
        return self.mutate(task_id, capability, change)

    def mutate(self, task_id: str, capability: PrivilegeKind, change: MutationRequest) -> Task:
        """Apply ``change`` on behalf of a caller already authorized for ``capability``.

        Returns a copy of the task as it stands after the change.
        """
        capability = _mutating(capability)
        if change.status is TaskStatus.ACTIVE and not 0 <= change.progress <= 100:
            raise MalformedBodyError("progress must be between 0 and 100")

        def _apply(task: Task) -> Task:
            if task.is_terminal:
                raise ReadOnlyTaskError(f"task {task.id} is {task.status.value} and read-only")
            if change.status not in TRANSITIONS[task.status]:
                raise InvalidTransitionError()
            if change.status not in CAPABILITY_TARGETS[capability]:
                raise InvalidTransitionError(
                    f"{capability.value} capability cannot set status {change.status.value}"
                    if change.status.is_terminal
                    else f"{capability.value} capability cannot update progress"
                )
            now = datetime.now(timezone.utc)
            if change.status.is_terminal:
                task.apply_result(change.result)
                task.status = change.status
                task.finished_at = now
            else:
                task.progress = change.progress
            task.updated_at = now
            return task.copy()

        updated = self.registry.update(task_id, _apply)

        if not updated.is_terminal:
            logger.debug("Task %s progress=%d", task_id, updated.progress)
            log_lifecycle_event(task_id, "progress", progress=updated.progress)
            return updated

        logger.info(
            "Task %s is %s (via %s); retiring in %ss",
            task_id, updated.status.value, capability.value, updated.duration,
        )
        log_lifecycle_event(
            task_id, updated.status.value,
            capability=capability.value, duration=updated.duration,
        )
        self.dispatcher.dispatch(task_id, updated.push_address)
        self.retirement.arm(task_id, updated.duration)
        return updated


def _mutating(capability: PrivilegeKind) -> PrivilegeKind:
    if capability not in CAPABILITY_TARGETS:
        raise ValueError(f"{capability.value} is not a mutating capability")
    return capability
