"""Skill-rating and match-statistics domain modules."""

from domain.common import Belief, GameLength, Match, MatchParticipation, Player, Team
from domain.errors import (
    InconsistentStateError,
    NotFoundError,
    StatsEngineError,
    StorageError,
    ValidationError,
    ValidationIssue,
)
from domain.storage import StoragePort

__all__ = [
    "Belief",
    "GameLength",
    "InconsistentStateError",
    "Match",
    "MatchParticipation",
    "NotFoundError",
    "Player",
    "StatsEngineError",
    "StorageError",
    "StoragePort",
    "Team",
    "ValidationError",
    "ValidationIssue",
]
