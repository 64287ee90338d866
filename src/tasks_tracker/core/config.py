from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional

from tasks_tracker.core.logging_config import default_log_dir

_TRUTHY = {"1", "true", "yes"}


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class Settings:
    token_create: str
    token_admin: Optional[str]
    host: str
    port: int
    log_level: str
    log_dir: str
    push_timeout: float
    clear_logs_on_launch: bool

    @staticmethod
    def from_env() -> "Settings":
        return Settings(
            token_create=os.getenv("TASKS_TRACKER_TOKEN_CREATE", ""),
            token_admin=os.getenv("TASKS_TRACKER_TOKEN_ADMIN") or None,
            host=os.getenv("TASKS_TRACKER_HOST", "127.0.0.1"),
            port=int(os.getenv("TASKS_TRACKER_PORT", "8000")),
            log_level=os.getenv("TASKS_TRACKER_LOG_LEVEL", "info"),
            log_dir=os.getenv("TASKS_TRACKER_LOG_DIR") or default_log_dir(),
            push_timeout=float(os.getenv("TASKS_TRACKER_PUSH_TIMEOUT", "5.0")),
            clear_logs_on_launch=os.getenv("TASKS_TRACKER_CLEAR_LOGS_ON_LAUNCH", "false").lower() in _TRUTHY,
        )

    def with_overrides(self, **overrides: object) -> "Settings":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def validate(self) -> "Settings":
        if not self.token_create:
            raise ConfigError("a creation token is required (TASKS_TRACKER_TOKEN_CREATE)")
        if self.token_admin is not None and self.token_admin == self.token_create:
            raise ConfigError("admin and creation tokens must differ")
        for label, token in (("creation", self.token_create), ("admin", self.token_admin or "")):
            if any(not 33 <= ord(ch) < 127 for ch in token):
                raise ConfigError(f"{label} token must be printable ASCII without spaces")
        if not 0 < self.port < 65536:
            raise ConfigError(f"invalid port {self.port}")
        if self.push_timeout <= 0:
            raise ConfigError("push timeout must be positive")
        return self
