"""Record, edit and delete matches, then replay the full history."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, fields, replace
from datetime import UTC, datetime
from typing import Any

from domain.common import (
    INITIAL_ELO,
    GameLength,
    Match,
    MatchParticipation,
    Player,
    Team,
    naive_utc,
    parse_datetime,
    team_counts,
)
from domain.errors import NotFoundError, ValidationError, ValidationIssue
from domain.ratings.model import RatingModel
from domain.ratings.replay import RecalculationEngine, RecalculationSummary
from domain.storage import StoragePort
from domain.validation import ValidationLimits, check_ranked_team_sizes, validate_match

logger = logging.getLogger(__name__)

MATCH_EDITABLE_FIELDS = frozenset({"date", "winning_team", "game_length", "double_lanes"})
PARTICIPATION_EDITABLE_FIELDS = frozenset(
    participation_field.name
    for participation_field in fields(MatchParticipation)
    if participation_field.name not in ("id", "match_id", "origin")
)


def utc_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


def new_player(model: RatingModel, player_id: str, name: str, *, now: datetime, level: int = 1) -> Player:
    """A fresh roster entry: default belief, zero tallies, legacy elo at its initial value."""
    belief = model.default_belief()
    return Player(
        id=player_id,
        name=name,
        elo=INITIAL_ELO,
        mu=belief.mu,
        sigma=belief.sigma,
        ordinal=model.ordinal(belief),
        date_created=now,
        level=level,
    )


@dataclass(frozen=True)
class MatchDraft:
    """Header of a match that has not been stored yet."""

    date: datetime
    winning_team: Team
    game_length: GameLength
    double_lanes: bool = False


@dataclass(frozen=True)
class ParticipantDraft:
    """One participant of a match that has not been stored yet."""

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


@dataclass(frozen=True)
class ParticipationUpdate:
    participation_id: str
    updates: Mapping[str, Any]


@dataclass(frozen=True)
class MatchWriteResult:
    """Outcome of a persisted match change.

    ``recalculation_error`` is set when the write stood but the following
    recalculation failed; ratings stay stale until ``recalculate`` succeeds.
    """

    match_id: str
    warnings: tuple[ValidationIssue, ...] = ()
    recalculation: RecalculationSummary | None = None
    recalculation_error: Exception | None = field(default=None, compare=False)

    @property
    def ratings_current(self) -> bool:
        return self.recalculation_error is None


@dataclass(frozen=True)
class EditableMatch:
    match: Match
    participations: list[MatchParticipation]
    player_names: dict[str, str]


class MatchLifecycleManager:
    """Owns every write path that mutates match data.

    Writes and the recalculation that follows them run under one lock, so two
    concurrent operations can never interleave their persisted changes with a
    replay.
    """

    def __init__(
        self,
        storage: StoragePort,
        *,
        engine: RecalculationEngine | None = None,
        limits: ValidationLimits | None = None,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        self.storage = storage
        self.engine = engine or RecalculationEngine(storage)
        self.limits = limits or ValidationLimits()
        self.clock = clock
        self.id_factory = id_factory
        self.write_lock = asyncio.Lock()

    async def record_match(self, draft: MatchDraft, participants: Sequence[ParticipantDraft]) -> MatchWriteResult:
        """Validate, store a new match with its roster, then recalculate."""
        match_id = self.id_factory()
        participations = [
            MatchParticipation(
                id=self.id_factory(),
                match_id=match_id,
                player_id=participant.player_id,
                team=participant.team,
                hero_id=participant.hero_id,
                hero_name=participant.hero_name,
                hero_roles=tuple(participant.hero_roles),
                kills=participant.kills,
                deaths=participant.deaths,
                assists=participant.assists,
                gold_earned=participant.gold_earned,
                minion_kills=participant.minion_kills,
                level=participant.level,
            )
            for participant in participants
        ]
        titans, atlanteans = team_counts(participations)
        match = Match(
            id=match_id,
            date=naive_utc(draft.date),
            winning_team=draft.winning_team,
            game_length=draft.game_length,
            double_lanes=draft.double_lanes,
            titan_players=titans,
            atlantean_players=atlanteans,
        )

        validation = validate_match(match, participations, now=self.clock(), limits=self.limits)
        errors = list(validation.errors) + check_ranked_team_sizes(participations, limits=self.limits)
        if errors:
            raise ValidationError(errors)

        async with self.write_lock:
            for participant in participants:
                await self._ensure_player(participant)

            await self.storage.put_match(match)
            for participation in participations:
                await self.storage.put_participation(participation)
            logger.info(
                "Recorded match %s (%d titans vs %d atlanteans, %s won)",
                match_id,
                titans,
                atlanteans,
                match.winning_team.value,
            )
            return await self._finish_write(match_id, validation.warnings)

    async def edit_match(
        self,
        match_id: str,
        match_updates: Mapping[str, Any] | None = None,
        participation_updates: Sequence[ParticipationUpdate] = (),
    ) -> MatchWriteResult:
        """Merge field-level updates, validate the merged match, persist, recalculate."""
        match_updates = dict(match_updates or {})
        _reject_unknown_fields(match_updates, MATCH_EDITABLE_FIELDS, "match")
        for update in participation_updates:
            _reject_unknown_fields(update.updates, PARTICIPATION_EDITABLE_FIELDS, "participation")

        async with self.write_lock:
            current_match = await self.storage.get_match(match_id)
            if current_match is None:
                raise NotFoundError("match", match_id)
            current_rows = await self.storage.list_participations_by_match(match_id)

            updates_by_id: dict[str, dict[str, Any]] = {}
            for update in participation_updates:
                updates_by_id.setdefault(update.participation_id, {}).update(update.updates)
            known_ids = {row.id for row in current_rows}
            for participation_id in updates_by_id:
                if participation_id not in known_ids:
                    raise NotFoundError("participation", participation_id)

            proposed_rows = [
                _with_updates(row, updates_by_id[row.id]) if row.id in updates_by_id else row
                for row in current_rows
            ]
            titans, atlanteans = team_counts(proposed_rows)
            proposed_match = replace(
                _with_updates(current_match, match_updates),
                titan_players=titans,
                atlantean_players=atlanteans,
            )

            validation = validate_match(proposed_match, proposed_rows, now=self.clock(), limits=self.limits)
            if not validation.is_valid:
                raise ValidationError(validation.errors)

            for row in proposed_rows:
                if row.id in updates_by_id and "player_id" in updates_by_id[row.id]:
                    if await self.storage.get_player(row.player_id) is None:
                        raise NotFoundError("player", row.player_id)

            await self.storage.put_match(proposed_match)
            for row in proposed_rows:
                if row.id in updates_by_id:
                    await self.storage.put_participation(row)
            logger.info("Edited match %s (%d participation updates)", match_id, len(updates_by_id))
            return await self._finish_write(match_id, validation.warnings)

    async def delete_match(self, match_id: str) -> MatchWriteResult:
        """Remove a match and all of its participations, then recalculate."""
        async with self.write_lock:
            match = await self.storage.get_match(match_id)
            if match is None:
                raise NotFoundError("match", match_id)

            for row in await self.storage.list_participations_by_match(match_id):
                await self.storage.delete_participation(row.id)
            await self.storage.delete_match(match_id)
            logger.info("Deleted match %s", match_id)
            return await self._finish_write(match_id, ())

    async def recalculate(self) -> RecalculationSummary:
        """Run a full recalculation under the write lock (e.g. to retry a failed one)."""
        async with self.write_lock:
            return await self.engine.recalculate_all()

    async def editable_match(self, match_id: str) -> EditableMatch:
        match = await self.storage.get_match(match_id)
        if match is None:
            raise NotFoundError("match", match_id)
        rows = await self.storage.list_participations_by_match(match_id)
        names: dict[str, str] = {}
        for row in rows:
            player = await self.storage.get_player(row.player_id)
            names[row.player_id] = player.name if player is not None else "Unknown Player"
        return EditableMatch(match=match, participations=rows, player_names=names)

    async def can_edit_match(self, match_id: str) -> tuple[bool, str | None]:
        match = await self.storage.get_match(match_id)
        if match is None:
            return False, "Match not found"
        rows = await self.storage.list_participations_by_match(match_id)
        if not rows:
            return False, "Match has no player data"
        for row in rows:
            if await self.storage.get_player(row.player_id) is None:
                return False, f"Player {row.player_id} no longer exists"
        return True, None

    async def _ensure_player(self, participant: ParticipantDraft) -> Player:
        existing = await self.storage.get_player(participant.player_id)
        if existing is None:
            player = new_player(
                self.engine.model,
                participant.player_id,
                participant.player_id,
                now=self.clock(),
                level=participant.level if participant.level is not None else 1,
            )
            await self.storage.put_player(player)
            logger.info("Created player %s", player.id)
            return player

        if participant.level is not None and (existing.level is None or participant.level > existing.level):
            existing = replace(existing, level=participant.level)
            await self.storage.put_player(existing)
        return existing

    async def _finish_write(self, match_id: str, warnings: Sequence[ValidationIssue]) -> MatchWriteResult:
        try:
            summary = await self.engine.recalculate_all()
        except Exception as exc:
            logger.warning("Recalculation after write to match %s failed: %s", match_id, exc)
            return MatchWriteResult(match_id=match_id, warnings=tuple(warnings), recalculation_error=exc)
        return MatchWriteResult(match_id=match_id, warnings=tuple(warnings), recalculation=summary)


def _reject_unknown_fields(updates: Mapping[str, Any], allowed: frozenset[str], kind: str) -> None:
    unknown = sorted(set(updates) - allowed)
    if unknown:
        raise ValidationError(
            [ValidationIssue(field=name, message=f"{kind} field {name!r} cannot be edited") for name in unknown]
        )


def _with_updates(record: Any, updates: Mapping[str, Any]) -> Any:
    values = dict(updates)
    if "hero_roles" in values:
        values["hero_roles"] = tuple(values["hero_roles"])
    if "date" in values:
        try:
            values["date"] = parse_datetime(values["date"])
        except (TypeError, ValueError) as exc:
            raise ValidationError.single("date", f"Invalid date {values['date']!r}") from exc
        if values["date"] is None:
            raise ValidationError.single("date", "Date is required")
    for key, enum_type in (("team", Team), ("winning_team", Team), ("game_length", GameLength)):
        if key in values:
            try:
                values[key] = enum_type(values[key])
            except ValueError as exc:
                raise ValidationError.single(key, f"Unknown {key.replace('_', ' ')} {values[key]!r}") from exc
    return replace(record, **values)


__all__ = [
    "EditableMatch",
    "MatchDraft",
    "MatchLifecycleManager",
    "MatchWriteResult",
    "ParticipantDraft",
    "ParticipationUpdate",
    "new_player",
    "utc_now",
]
