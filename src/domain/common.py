"""Shared record types for players, matches and match participations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

INITIAL_ELO = 1200


class Team(str, Enum):
    """The two sides of every match."""

    TITANS = "titans"
    ATLANTEANS = "atlanteans"


class GameLength(str, Enum):
    QUICK = "quick"
    LONG = "long"


@dataclass(frozen=True)
class Belief:
    """Gaussian skill belief for one player."""

    mu: float
    sigma: float


@dataclass(frozen=True)
class Player:
    """Player row. Tallies and rating fields are owned by recalculation."""

    id: str
    name: str
    total_games: int = 0
    wins: int = 0
    losses: int = 0
    elo: int = INITIAL_ELO
    mu: float | None = None
    sigma: float | None = None
    ordinal: float | None = None
    last_played: datetime | None = None
    date_created: datetime | None = None
    level: int | None = None
    origin: str | None = None

    @property
    def belief(self) -> Belief | None:
        if self.mu is None or self.sigma is None:
            return None
        return Belief(mu=self.mu, sigma=self.sigma)


@dataclass(frozen=True)
class Match:
    """Match header. The roster lives in the participation rows."""

    id: str
    date: datetime
    winning_team: Team
    game_length: GameLength
    double_lanes: bool = False
    titan_players: int = 0
    atlantean_players: int = 0
    origin: str | None = None


@dataclass(frozen=True)
class MatchParticipation:
    """One player's record for one match."""

    id: str
    match_id: str
    player_id: str
    team: Team
    hero_id: int
    hero_name: str
    hero_roles: tuple[str, ...] = ()
    kills: int | None = None
    deaths: int | None = None
    assists: int | None = None
    gold_earned: int | None = None
    minion_kills: int | None = None
    level: int | None = None
    origin: str | None = None


PERFORMANCE_FIELDS = ("kills", "deaths", "assists", "gold_earned", "minion_kills")


def naive_utc(value: datetime) -> datetime:
    """Stored datetimes are naive UTC; offset-aware values are converted."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO-8601 string (or pass a datetime through) into naive UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return naive_utc(value)
    return naive_utc(datetime.fromisoformat(str(value)))


def team_counts(participations: list[MatchParticipation] | tuple[MatchParticipation, ...]) -> tuple[int, int]:
    """Return (titan_count, atlantean_count) for a roster."""
    titans = sum(1 for participation in participations if participation.team is Team.TITANS)
    return titans, len(participations) - titans


__all__ = [
    "INITIAL_ELO",
    "PERFORMANCE_FIELDS",
    "Belief",
    "GameLength",
    "Match",
    "MatchParticipation",
    "Player",
    "Team",
    "naive_utc",
    "parse_datetime",
    "team_counts",
]
