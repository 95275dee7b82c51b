"""Error kinds raised by the stats engine."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

Severity = Literal["error", "warning"]


@dataclass(frozen=True)
class ValidationIssue:
    """One rule violation found while checking a match."""

    field: str
    message: str
    severity: Severity = "error"
    player_id: str | None = None


class StatsEngineError(Exception):
    """Base class for every error the engine reports."""


class ValidationError(StatsEngineError, ValueError):
    """User-correctable problem that blocks a write."""

    def __init__(self, issues: Sequence[ValidationIssue]) -> None:
        self.issues = tuple(issues)
        super().__init__("; ".join(issue.message for issue in self.issues) or "validation failed")

    @classmethod
    def single(cls, field: str, message: str, *, player_id: str | None = None) -> ValidationError:
        return cls([ValidationIssue(field=field, message=message, player_id=player_id)])


class NotFoundError(StatsEngineError, LookupError):
    """A referenced match, player or participation does not exist."""

    def __init__(self, kind: str, entity_id: str) -> None:
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} with id={entity_id!r} not found")


class StorageError(StatsEngineError):
    """Backend I/O failure."""


class InconsistentStateError(StatsEngineError):
    """Stored history violates a model invariant."""


__all__ = [
    "InconsistentStateError",
    "NotFoundError",
    "Severity",
    "StatsEngineError",
    "StorageError",
    "ValidationError",
    "ValidationIssue",
]
