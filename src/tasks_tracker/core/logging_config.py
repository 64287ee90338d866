"""Centralized logging configuration for tasks-tracker.

Writes to stdout and to rotating files in the configured log directory,
and provides a dedicated JSONL stream of task lifecycle events.

Log directory structure::

    ~/.tasks-tracker/.logs/
    ├── tasks-tracker.log         # All Python logger output (rotating)
    └── lifecycle-events.log      # One JSON record per lifecycle event
"""
from __future__ import annotations

import glob
import json
import logging
import logging.handlers
import os
import time
from pathlib import Path
from typing import Any

lifecycle_logger = logging.getLogger("tasks_tracker._lifecycle")


def default_log_dir() -> str:
    return str(Path(os.path.expanduser("~")) / ".tasks-tracker" / ".logs")


def clear_logs(log_dir: str) -> None:
    """Remove ``*.log`` files (and rotated backups) from the log directory."""
    if not os.path.isdir(log_dir):
        return
    for pattern in ("*.log", "*.log.*"):
        for path in glob.glob(os.path.join(log_dir, pattern)):
            try:
                os.remove(path)
            except OSError:
                pass


def setup_logging(log_dir: str, log_level: str = "info", *, clear_on_launch: bool = False) -> None:
    """Configure the logging system with both stdout and file handlers.

    This should be called once at application startup.
    """
    if clear_on_launch:
        clear_logs(log_dir)

    os.makedirs(log_dir, exist_ok=True)

    level = getattr(logging, log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    fmt = logging.Formatter(
        "%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    stdout_handler = logging.StreamHandler()
    stdout_handler.setLevel(level)
    stdout_handler.setFormatter(fmt)
    root.addHandler(stdout_handler)

    file_handler = logging.handlers.RotatingFileHandler(
        os.path.join(log_dir, "tasks-tracker.log"),
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    _setup_jsonl_logger(lifecycle_logger, os.path.join(log_dir, "lifecycle-events.log"))

    logging.getLogger("tasks_tracker").info(
        "Logging initialized: log_dir=%s, level=%s", log_dir, log_level
    )


def _setup_jsonl_logger(logger_instance: logging.Logger, path: str) -> None:
    """Configure a logger to write raw JSONL messages to a rotating file."""
    logger_instance.setLevel(logging.INFO)
    logger_instance.propagate = False
    logger_instance.handlers.clear()

    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    # message is already JSON
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger_instance.addHandler(handler)


def log_lifecycle_event(task_id: str, event: str, **fields: Any) -> None:
    """Append one lifecycle record (created, progress, done, aborted, retired, ...).

    Never pass tokens here.
    """
    record: dict[str, Any] = {
        "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "task_id": task_id,
        "event": event,
    }
    record.update(fields)
    try:
        lifecycle_logger.info(json.dumps(record, default=str))
    except Exception:  # noqa: BLE001
        pass
