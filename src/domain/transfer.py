"""Whole-dataset export and import (replace or merge)."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any, Literal

from domain.common import INITIAL_ELO, GameLength, Match, MatchParticipation, Player, Team, parse_datetime
from domain.errors import ValidationError
from domain.lifecycle import MatchLifecycleManager
from domain.ratings.replay import RecalculationSummary, group_participations
from domain.storage import StoragePort

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 4
IMPORTED_ORIGIN = "imported"

ImportMode = Literal["replace", "merge"]


@dataclass(frozen=True)
class DatasetSnapshot:
    players: list[Player]
    matches: list[Match]
    match_participations: list[MatchParticipation]
    export_date: datetime
    schema_version: int = SCHEMA_VERSION


@dataclass(frozen=True)
class ImportResult:
    mode: ImportMode
    players_added: int
    matches_added: int
    participations_added: int
    recalculation: RecalculationSummary | None = None
    recalculation_error: Exception | None = field(default=None, compare=False)


async def export_snapshot(storage: StoragePort, *, now: datetime | None = None) -> DatasetSnapshot:
    return DatasetSnapshot(
        players=await storage.list_players(),
        matches=await storage.list_matches(),
        match_participations=await storage.list_all_participations(),
        export_date=now or datetime.now(UTC).replace(tzinfo=None),
    )


def _format_datetime(value: datetime | None) -> str | None:
    return None if value is None else value.isoformat()


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)


def player_to_dict(player: Player) -> dict[str, Any]:
    return {
        "id": player.id,
        "name": player.name,
        "totalGames": player.total_games,
        "wins": player.wins,
        "losses": player.losses,
        "elo": player.elo,
        "mu": player.mu,
        "sigma": player.sigma,
        "ordinal": player.ordinal,
        "lastPlayed": _format_datetime(player.last_played),
        "dateCreated": _format_datetime(player.date_created),
        "level": player.level,
        "origin": player.origin,
    }


def player_from_dict(raw: Mapping[str, Any]) -> Player:
    return Player(
        id=str(raw["id"]),
        name=str(raw.get("name", raw["id"])),
        total_games=int(raw.get("totalGames", 0)),
        wins=int(raw.get("wins", 0)),
        losses=int(raw.get("losses", 0)),
        elo=int(raw.get("elo", INITIAL_ELO)),
        mu=_optional_float(raw.get("mu")),
        sigma=_optional_float(raw.get("sigma")),
        ordinal=_optional_float(raw.get("ordinal")),
        last_played=parse_datetime(raw.get("lastPlayed")),
        date_created=parse_datetime(raw.get("dateCreated")),
        level=_optional_int(raw.get("level")),
        origin=raw.get("origin", raw.get("deviceId")),
    )


def match_to_dict(match: Match) -> dict[str, Any]:
    return {
        "id": match.id,
        "date": _format_datetime(match.date),
        "winningTeam": match.winning_team.value,
        "gameLength": match.game_length.value,
        "doubleLanes": match.double_lanes,
        "titanPlayers": match.titan_players,
        "atlanteanPlayers": match.atlantean_players,
        "origin": match.origin,
    }


def match_from_dict(raw: Mapping[str, Any]) -> Match:
    date = parse_datetime(raw.get("date"))
    if date is None:
        raise ValidationError.single("date", f"Match {raw.get('id')} has no date")
    return Match(
        id=str(raw["id"]),
        date=date,
        winning_team=Team(raw["winningTeam"]),
        game_length=GameLength(raw["gameLength"]),
        double_lanes=bool(raw.get("doubleLanes", False)),
        titan_players=int(raw.get("titanPlayers", 0)),
        atlantean_players=int(raw.get("atlanteanPlayers", 0)),
        origin=raw.get("origin", raw.get("deviceId")),
    )


def participation_to_dict(participation: MatchParticipation) -> dict[str, Any]:
    return {
        "id": participation.id,
        "matchId": participation.match_id,
        "playerId": participation.player_id,
        "team": participation.team.value,
        "heroId": participation.hero_id,
        "heroName": participation.hero_name,
        "heroRoles": list(participation.hero_roles),
        "kills": participation.kills,
        "deaths": participation.deaths,
        "assists": participation.assists,
        "goldEarned": participation.gold_earned,
        "minionKills": participation.minion_kills,
        "level": participation.level,
        "origin": participation.origin,
    }


def participation_from_dict(raw: Mapping[str, Any]) -> MatchParticipation:
    return MatchParticipation(
        id=str(raw["id"]),
        match_id=str(raw["matchId"]),
        player_id=str(raw["playerId"]),
        team=Team(raw["team"]),
        hero_id=int(raw["heroId"]),
        hero_name=str(raw.get("heroName", "")),
        hero_roles=tuple(raw.get("heroRoles") or ()),
        kills=_optional_int(raw.get("kills")),
        deaths=_optional_int(raw.get("deaths")),
        assists=_optional_int(raw.get("assists")),
        gold_earned=_optional_int(raw.get("goldEarned")),
        minion_kills=_optional_int(raw.get("minionKills")),
        level=_optional_int(raw.get("level")),
        origin=raw.get("origin", raw.get("deviceId")),
    )


def snapshot_to_dict(snapshot: DatasetSnapshot) -> dict[str, Any]:
    return {
        "players": [player_to_dict(player) for player in snapshot.players],
        "matches": [match_to_dict(match) for match in snapshot.matches],
        "matchParticipations": [participation_to_dict(row) for row in snapshot.match_participations],
        "exportDate": _format_datetime(snapshot.export_date),
        "schemaVersion": snapshot.schema_version,
    }


def snapshot_from_dict(raw: Mapping[str, Any]) -> DatasetSnapshot:
    """Decode a snapshot; older exports with ``matchPlayers``/``version`` keys are accepted."""
    try:
        participations_raw = raw.get("matchParticipations", raw.get("matchPlayers", []))
        return DatasetSnapshot(
            players=[player_from_dict(item) for item in raw.get("players", [])],
            matches=[match_from_dict(item) for item in raw.get("matches", [])],
            match_participations=[participation_from_dict(item) for item in participations_raw],
            export_date=parse_datetime(raw.get("exportDate")) or datetime.now(UTC).replace(tzinfo=None),
            schema_version=int(raw.get("schemaVersion", raw.get("version", SCHEMA_VERSION))),
        )
    except ValidationError:
        raise
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationError.single("snapshot", f"Malformed snapshot: {exc}") from exc


def _tag_imported(record: Any) -> Any:
    return record if record.origin else replace(record, origin=IMPORTED_ORIGIN)


class DatasetTransfer:
    """Bulk import under the lifecycle manager's write lock, always followed by one recalculation."""

    def __init__(self, manager: MatchLifecycleManager, *, clock: Callable[[], datetime] | None = None) -> None:
        self.manager = manager
        self.storage = manager.storage
        self.clock = clock or manager.clock

    async def export(self) -> DatasetSnapshot:
        return await export_snapshot(self.storage, now=self.clock())

    async def import_snapshot(self, snapshot: DatasetSnapshot, mode: ImportMode = "replace") -> ImportResult:
        if mode not in ("replace", "merge"):
            raise ValidationError.single("mode", f"Unknown import mode {mode!r}")

        async with self.manager.write_lock:
            if mode == "replace":
                counts = await self._replace(snapshot)
            else:
                counts = await self._merge(snapshot)
            logger.info(
                "Imported snapshot (%s): %d players, %d matches, %d participations",
                mode,
                *counts,
            )

            try:
                summary = await self.manager.engine.recalculate_all()
            except Exception as exc:
                logger.warning("Recalculation after %s import failed: %s", mode, exc)
                return ImportResult(mode, *counts, recalculation_error=exc)
            return ImportResult(mode, *counts, recalculation=summary)

    async def _replace(self, snapshot: DatasetSnapshot) -> tuple[int, int, int]:
        await self.storage.clear_all()
        for player in snapshot.players:
            await self.storage.put_player(player)
        for match in snapshot.matches:
            await self.storage.put_match(match)
        for participation in snapshot.match_participations:
            await self.storage.put_participation(participation)
        return len(snapshot.players), len(snapshot.matches), len(snapshot.match_participations)

    async def _merge(self, snapshot: DatasetSnapshot) -> tuple[int, int, int]:
        now = self.clock()
        known_players = {player.id for player in await self.storage.list_players()}
        players_added = 0
        for imported in snapshot.players:
            if imported.id in known_players:
                continue
            await self.storage.put_player(
                _tag_imported(
                    Player(
                        id=imported.id,
                        name=imported.name,
                        elo=INITIAL_ELO,
                        date_created=now,
                        level=imported.level or 1,
                        origin=imported.origin,
                    )
                )
            )
            known_players.add(imported.id)
            players_added += 1

        known_matches = {match.id for match in await self.storage.list_matches()}
        rows_by_match = group_participations(snapshot.match_participations)
        matches_added = 0
        participations_added = 0
        for imported_match in snapshot.matches:
            if imported_match.id in known_matches:
                continue
            await self.storage.put_match(_tag_imported(imported_match))
            known_matches.add(imported_match.id)
            matches_added += 1
            for row in rows_by_match.get(imported_match.id, []):
                await self.storage.put_participation(_tag_imported(row))
                participations_added += 1
        return players_added, matches_added, participations_added


__all__ = [
    "IMPORTED_ORIGIN",
    "SCHEMA_VERSION",
    "DatasetSnapshot",
    "DatasetTransfer",
    "ImportResult",
    "export_snapshot",
    "match_from_dict",
    "match_to_dict",
    "participation_from_dict",
    "participation_to_dict",
    "player_from_dict",
    "player_to_dict",
    "snapshot_from_dict",
    "snapshot_to_dict",
]
