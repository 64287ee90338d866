"""Deferred removal of finished tasks."""
from __future__ import annotations

import logging
import threading
from typing import Dict

from tasks_tracker.core.logging_config import log_lifecycle_event
from tasks_tracker.core.registry import TaskRegistry

logger = logging.getLogger("tasks_tracker.retirement")


class RetirementTimer:
    """Removes a task from the registry ``duration`` seconds after it finished.

    Each armed timer is a daemon ``threading.Timer``; the request that armed
    it never waits on it. Firing for a task that is already gone is a no-op.
    """

    def __init__(self, registry: TaskRegistry) -> None:
        self._registry = registry
        self._timers: Dict[str, threading.Timer] = {}
        self._lock = threading.Lock()

    def arm(self, task_id: str, duration: float) -> threading.Timer:
        delay = min(max(0.0, float(duration)), threading.TIMEOUT_MAX)
        timer = threading.Timer(delay, self._retire, args=(task_id,))
        timer.daemon = True
        timer.name = f"retire-{task_id[:8]}"
        with self._lock:
            self._timers[task_id] = timer
        timer.start()
        logger.debug("Retirement of %s armed in %ss", task_id, duration)
        return timer

    def _retire(self, task_id: str) -> None:
        with self._lock:
            self._timers.pop(task_id, None)
        if self._registry.remove(task_id):
            logger.info("Retired task %s", task_id)
            log_lifecycle_event(task_id, "retired")

    def pending(self) -> int:
        with self._lock:
            return len(self._timers)

    def cancel_all(self) -> int:
        """Disarm every pending timer (used on shutdown)."""
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()
        return len(timers)
