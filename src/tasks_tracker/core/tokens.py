"""Capability tokens.

Each task carries three bearer secrets (view, abort, update). They are
minted once when the task is created and never reissued.
"""
from __future__ import annotations

from dataclasses import dataclass
import hmac
import secrets
import string

TOKEN_LENGTH = 32
_ALPHABET = string.ascii_letters + string.digits


class CapabilityToken:
    """Opaque bearer secret compared in constant time."""

    __slots__ = ("_secret",)

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("capability token must not be empty")
        self._secret = secret

    @classmethod
    def generate(cls, length: int = TOKEN_LENGTH) -> CapabilityToken:
        return cls("".join(secrets.choice(_ALPHABET) for _ in range(length)))

    def matches(self, presented: str | None) -> bool:
        if presented is None:
            return False
        return hmac.compare_digest(self._secret.encode("utf-8"), presented.encode("utf-8"))

    def reveal(self) -> str:
        return self._secret

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CapabilityToken):
            return self.matches(other._secret)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._secret)

    def __repr__(self) -> str:
        return "CapabilityToken('********')"

    __str__ = __repr__


@dataclass(frozen=True)
class TaskTokens:
    view: CapabilityToken
    abort: CapabilityToken
    update: CapabilityToken

    @classmethod
    def mint(cls) -> TaskTokens:
        return cls(
            view=CapabilityToken.generate(),
            abort=CapabilityToken.generate(),
            update=CapabilityToken.generate(),
        )

    def __iter__(self):
        return iter((self.view, self.abort, self.update))

    def matches_any(self, presented: str) -> bool:
        # no short-circuit
        hits = [token.matches(presented) for token in self]
        return any(hits)
