"""Capability authorization for bearer tokens.

Decides whether a presented ``Authorization`` header grants a privilege.
A token that is valid for *something* but not for the requested privilege
is told apart from a token valid for nothing, so callers can distinguish
"wrong capability" from "bad credential" (403 vs 401).

Evaluation order:

1. no header                                  -> UNAUTHENTICATED
2. header is not visible ASCII (tab allowed)  -> MALFORMED
3. admin token (when configured)              -> AUTHORIZED for everything
4. the token expected for the privilege       -> AUTHORIZED
5. creation token or any live task's token    -> FORBIDDEN
6. anything else                              -> UNRECOGNIZED
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Optional

from tasks_tracker.core.errors import (
    ForbiddenError,
    MalformedCredentialError,
    UnauthenticatedError,
)
from tasks_tracker.core.registry import TaskRegistry
from tasks_tracker.core.tokens import CapabilityToken

logger = logging.getLogger("tasks_tracker.authorize")

BEARER_PREFIX = "Bearer "


class PrivilegeKind(str, Enum):
    CREATION = "creation"
    LIST = "list"
    VIEW = "view"
    ABORT = "abort"
    UPDATE = "update"


_TASK_SCOPED = {PrivilegeKind.VIEW, PrivilegeKind.ABORT, PrivilegeKind.UPDATE}


@dataclass(frozen=True)
class Privilege:
    kind: PrivilegeKind
    task_id: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.kind in _TASK_SCOPED) != (self.task_id is not None):
            raise ValueError(f"privilege {self.kind.value} task_id mismatch: {self.task_id!r}")

    @classmethod
    def creation(cls) -> Privilege:
        return cls(PrivilegeKind.CREATION)

    @classmethod
    def list(cls) -> Privilege:
        return cls(PrivilegeKind.LIST)

    @classmethod
    def view(cls, task_id: str) -> Privilege:
        return cls(PrivilegeKind.VIEW, task_id)

    @classmethod
    def abort(cls, task_id: str) -> Privilege:
        return cls(PrivilegeKind.ABORT, task_id)

    @classmethod
    def update(cls, task_id: str) -> Privilege:
        return cls(PrivilegeKind.UPDATE, task_id)


class AuthDecision(str, Enum):
    AUTHORIZED = "authorized"
    UNAUTHENTICATED = "unauthenticated"
    MALFORMED = "malformed"
    FORBIDDEN = "forbidden"
    UNRECOGNIZED = "unrecognized"


def is_visible_ascii(value: str) -> bool:
    return all(32 <= ord(ch) < 127 or ch == "\t" for ch in value)


def bearer_token(header: str) -> Optional[str]:
    if header.startswith(BEARER_PREFIX):
        return header[len(BEARER_PREFIX):]
    return None


class Authorizer:
    def __init__(
        self,
        registry: TaskRegistry,
        token_create: CapabilityToken,
        token_admin: Optional[CapabilityToken] = None,
    ) -> None:
        self._registry = registry
        self._token_create = token_create
        self._token_admin = token_admin

    def _expected(self, privilege: Privilege) -> Optional[CapabilityToken]:
        kind = privilege.kind
        if kind is PrivilegeKind.CREATION:
            return self._token_create
        if kind is PrivilegeKind.LIST:
            # listing is admin-only; the creation token never lists
            return self._token_admin
        task = self._registry.get(privilege.task_id)
        if task is None:
            return None
        if kind is PrivilegeKind.VIEW:
            return task.tokens.view
        if kind is PrivilegeKind.ABORT:
            return task.tokens.abort
        return task.tokens.update

    def _recognized(self, presented: str) -> bool:
        if self._token_create.matches(presented):
            return True
        return self._registry.any(lambda t: t.tokens.matches_any(presented))

    def check(self, authorization: Optional[str], privilege: Privilege) -> AuthDecision:
        if authorization is None:
            return AuthDecision.UNAUTHENTICATED
        if not is_visible_ascii(authorization):
            return AuthDecision.MALFORMED
        presented = bearer_token(authorization)
        if presented is None:
            return AuthDecision.UNRECOGNIZED
        if self._token_admin is not None and self._token_admin.matches(presented):
            return AuthDecision.AUTHORIZED
        expected = self._expected(privilege)
        if expected is not None and expected.matches(presented):
            return AuthDecision.AUTHORIZED
        if self._recognized(presented):
            return AuthDecision.FORBIDDEN
        return AuthDecision.UNRECOGNIZED

    def require(self, authorization: Optional[str], privilege: Privilege) -> None:
        """Raise the matching error unless ``authorization`` grants ``privilege``."""
        decision = self.check(authorization, privilege)
        if decision is AuthDecision.AUTHORIZED:
            return
        logger.info(
            "Denied %s privilege (task=%s): %s",
            privilege.kind.value, privilege.task_id or "-", decision.value,
        )
        if decision is AuthDecision.MALFORMED:
            raise MalformedCredentialError()
        if decision is AuthDecision.FORBIDDEN:
            raise ForbiddenError()
        raise UnauthenticatedError()
