"""Per-hero win rates, synergies and counters derived from match history."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from domain.common import Match, MatchParticipation, Player
from domain.ratings.replay import group_participations
from domain.storage import StoragePort

logger = logging.getLogger(__name__)

TOP_PAIRINGS = 3
FAVORITES = 3


@dataclass
class PairRecord:
    games: int = 0
    wins: int = 0

    @property
    def win_rate(self) -> float:
        return self.wins / self.games if self.games else 0.0


@dataclass(frozen=True)
class HeroPairing:
    hero_id: int
    hero_name: str
    games: int
    wins: int
    win_rate: float


@dataclass(frozen=True)
class HeroStats:
    hero_id: int
    hero_name: str
    roles: tuple[str, ...]
    total_games: int
    wins: int
    losses: int
    win_rate: float
    best_teammates: list[HeroPairing] = field(default_factory=list)
    best_against: list[HeroPairing] = field(default_factory=list)
    worst_against: list[HeroPairing] = field(default_factory=list)


@dataclass
class _HeroAccumulator:
    hero_id: int
    hero_name: str
    roles: tuple[str, ...]
    total_games: int = 0
    wins: int = 0
    teammates: dict[int, PairRecord] = field(default_factory=dict)
    opponents: dict[int, PairRecord] = field(default_factory=dict)


@dataclass(frozen=True)
class HeroUsage:
    hero_id: int
    hero_name: str
    count: int


@dataclass(frozen=True)
class RoleUsage:
    role: str
    count: int


@dataclass(frozen=True)
class PlayerStats:
    player: Player | None
    participations: list[MatchParticipation] = field(default_factory=list)
    heroes_played: list[HeroUsage] = field(default_factory=list)
    roles_played: list[RoleUsage] = field(default_factory=list)

    @property
    def favorite_heroes(self) -> list[HeroUsage]:
        return self.heroes_played[:FAVORITES]

    @property
    def favorite_roles(self) -> list[RoleUsage]:
        return self.roles_played[:FAVORITES]


def _pairings(
    pairs: dict[int, PairRecord],
    heroes: dict[int, _HeroAccumulator],
    *,
    best_first: bool,
) -> list[HeroPairing]:
    rows = [
        HeroPairing(
            hero_id=hero_id,
            hero_name=heroes[hero_id].hero_name,
            games=record.games,
            wins=record.wins,
            win_rate=record.win_rate,
        )
        for hero_id, record in pairs.items()
        if record.games >= 1 and hero_id in heroes
    ]
    rows.sort(key=lambda row: row.win_rate, reverse=best_first)
    return rows[:TOP_PAIRINGS]


def aggregate_hero_stats(
    matches: Iterable[Match],
    participations: Sequence[MatchParticipation],
) -> list[HeroStats]:
    """Aggregate every participation into per-hero totals and pair records.

    Participations whose match no longer exists are ignored, so
    ``wins + losses == total_games`` holds for every hero. Heroes are returned in
    the order they were first seen.
    """
    matches_by_id = {match.id: match for match in matches}
    heroes: dict[int, _HeroAccumulator] = {}

    orphaned = 0
    for participation in participations:
        match = matches_by_id.get(participation.match_id)
        if match is None:
            orphaned += 1
            continue
        hero = heroes.setdefault(
            participation.hero_id,
            _HeroAccumulator(
                hero_id=participation.hero_id,
                hero_name=participation.hero_name,
                roles=tuple(participation.hero_roles),
            ),
        )
        hero.total_games += 1
        if participation.team is match.winning_team:
            hero.wins += 1
    if orphaned:
        logger.warning("Ignored %d participations whose match is missing", orphaned)

    for match_id, roster in group_participations(participations).items():
        match = matches_by_id.get(match_id)
        if match is None:
            continue
        for anchor in roster:
            hero = heroes[anchor.hero_id]
            won = anchor.team is match.winning_team
            for other in roster:
                if other.team is anchor.team:
                    if other.hero_id == anchor.hero_id:
                        continue
                    record = hero.teammates.setdefault(other.hero_id, PairRecord())
                else:
                    record = hero.opponents.setdefault(other.hero_id, PairRecord())
                record.games += 1
                if won:
                    record.wins += 1

    return [
        HeroStats(
            hero_id=hero.hero_id,
            hero_name=hero.hero_name,
            roles=hero.roles,
            total_games=hero.total_games,
            wins=hero.wins,
            losses=hero.total_games - hero.wins,
            win_rate=hero.wins / hero.total_games if hero.total_games else 0.0,
            best_teammates=_pairings(hero.teammates, heroes, best_first=True),
            best_against=_pairings(hero.opponents, heroes, best_first=True),
            worst_against=_pairings(hero.opponents, heroes, best_first=False),
        )
        for hero in heroes.values()
    ]


def summarize_player(player: Player | None, participations: Sequence[MatchParticipation]) -> PlayerStats:
    """Count heroes and roles played, most played first (ties keep first-seen order)."""
    if player is None:
        return PlayerStats(player=None)

    hero_counts: dict[int, HeroUsage] = {}
    role_counts: dict[str, int] = {}
    for participation in participations:
        usage = hero_counts.get(participation.hero_id)
        hero_counts[participation.hero_id] = HeroUsage(
            hero_id=participation.hero_id,
            hero_name=usage.hero_name if usage else participation.hero_name,
            count=(usage.count if usage else 0) + 1,
        )
        for role in participation.hero_roles:
            role_counts[role] = role_counts.get(role, 0) + 1

    return PlayerStats(
        player=player,
        participations=list(participations),
        heroes_played=sorted(hero_counts.values(), key=lambda usage: usage.count, reverse=True),
        roles_played=sorted(
            (RoleUsage(role=role, count=count) for role, count in role_counts.items()),
            key=lambda usage: usage.count,
            reverse=True,
        ),
    )


class HeroStatsAggregator:
    """Read-side statistics; nothing here is persisted."""

    def __init__(self, storage: StoragePort) -> None:
        self.storage = storage

    async def hero_stats(self) -> list[HeroStats]:
        matches = await self.storage.list_matches()
        participations = await self.storage.list_all_participations()
        return aggregate_hero_stats(matches, participations)

    async def player_stats(self, player_id: str) -> PlayerStats:
        player = await self.storage.get_player(player_id)
        if player is None:
            return PlayerStats(player=None)
        return summarize_player(player, await self.storage.list_participations_by_player(player_id))

    async def has_match_data(self) -> bool:
        return bool(await self.storage.list_matches())


__all__ = [
    "HeroPairing",
    "HeroStats",
    "HeroStatsAggregator",
    "HeroUsage",
    "PairRecord",
    "PlayerStats",
    "RoleUsage",
    "aggregate_hero_stats",
    "summarize_player",
]
