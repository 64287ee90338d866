"""Best-effort push notifications for finished tasks."""
from __future__ import annotations

import logging
import threading
from typing import Iterable, List, Optional

import httpx

from tasks_tracker.core.logging_config import log_lifecycle_event

logger = logging.getLogger("tasks_tracker.notify")

DEFAULT_PUSH_TIMEOUT = 5.0


class NotificationDispatcher:
    """Sends one GET to each push address, each on its own daemon thread.

    Delivery is unordered and never retried. Failures are logged and dropped.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_PUSH_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    def dispatch(self, task_id: str, addresses: Iterable[str]) -> List[threading.Thread]:
        threads = []
        for address in addresses:
            thread = threading.Thread(
                target=self._deliver,
                args=(task_id, address),
                daemon=True,
                name=f"push-{task_id[:8]}",
            )
            thread.start()
            threads.append(thread)
        return threads

    def _deliver(self, task_id: str, address: str) -> None:
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                resp = client.get(address)
            resp.raise_for_status()
            logger.debug("Push to %s for task %s: %s", address, task_id, resp.status_code)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Push notification to %s for task %s failed: %s", address, task_id, exc)
            log_lifecycle_event(task_id, "push_failed", address=address, error=str(exc))
