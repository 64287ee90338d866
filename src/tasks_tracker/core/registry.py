"""In-memory task registry.

A single lock guards the whole collection. It is held only for in-memory
reads and writes; callers do their I/O after the call returns.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Optional, TypeVar

from tasks_tracker.core.errors import TaskNotFoundError
from tasks_tracker.core.models import Task

logger = logging.getLogger("tasks_tracker.registry")

T = TypeVar("T")


class TaskRegistry:
    """Concurrency-safe store of live tasks keyed by id."""

    def __init__(self) -> None:
        self._tasks: Dict[str, Task] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def insert(self, task: Task) -> str:
        with self._lock:
            if task.id in self._tasks:
                raise ValueError(f"duplicate task id {task.id}")
            self._tasks[task.id] = task
        logger.debug("Registered task %s", task.id)
        return task.id

    def get(self, task_id: str) -> Optional[Task]:
        """Return a copy of the task, or None."""
        with self._lock:
            task = self._tasks.get(task_id)
            return task.copy() if task else None

    def update(self, task_id: str, mutator: Callable[[Task], T]) -> T:
        """Run ``mutator`` on the stored task with exclusive access.

        Exceptions raised by the mutator propagate after the lock is released.
        """
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                raise TaskNotFoundError(task_id)
            return mutator(task)

    def remove_if(self, predicate: Callable[[Task], bool]) -> int:
        with self._lock:
            doomed = [task_id for task_id, task in self._tasks.items() if predicate(task)]
            for task_id in doomed:
                del self._tasks[task_id]
        return len(doomed)

    def remove(self, task_id: str) -> bool:
        return self.remove_if(lambda t: t.id == task_id) > 0

    def any(self, predicate: Callable[[Task], bool]) -> bool:
        with self._lock:
            return any(predicate(task) for task in self._tasks.values())

    def snapshot(self) -> List[Task]:
        """Point-in-time copy of every task."""
        with self._lock:
            return [task.copy() for task in self._tasks.values()]
