"""Async SQLAlchemy implementation of the storage port."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from domain.common import GameLength, Match, MatchParticipation, Player, Team
from domain.errors import StorageError
from models import MatchParticipationRecord, MatchRecord, PlayerRecord

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT")
DomainT = TypeVar("DomainT")
ResultT = TypeVar("ResultT")

_PLAYER_FIELDS = (
    "name",
    "total_games",
    "wins",
    "losses",
    "elo",
    "mu",
    "sigma",
    "ordinal",
    "last_played",
    "date_created",
    "level",
    "origin",
)
_MATCH_FIELDS = (
    "date",
    "winning_team",
    "game_length",
    "double_lanes",
    "titan_players",
    "atlantean_players",
    "origin",
)
_PARTICIPATION_FIELDS = (
    "match_id",
    "player_id",
    "team",
    "hero_id",
    "hero_name",
    "hero_roles",
    "kills",
    "deaths",
    "assists",
    "gold_earned",
    "minion_kills",
    "level",
    "origin",
)


def _player_to_values(player: Player) -> dict[str, Any]:
    return {field: getattr(player, field) for field in _PLAYER_FIELDS}


def _player_from_record(record: PlayerRecord) -> Player:
    return Player(id=record.id, **{field: getattr(record, field) for field in _PLAYER_FIELDS})


def _match_to_values(match: Match) -> dict[str, Any]:
    return {field: getattr(match, field) for field in _MATCH_FIELDS}


def _match_from_record(record: MatchRecord) -> Match:
    values = {field: getattr(record, field) for field in _MATCH_FIELDS}
    values["winning_team"] = Team(values["winning_team"])
    values["game_length"] = GameLength(values["game_length"])
    return Match(id=record.id, **values)


def _participation_to_values(participation: MatchParticipation) -> dict[str, Any]:
    values = {field: getattr(participation, field) for field in _PARTICIPATION_FIELDS}
    values["hero_roles"] = list(participation.hero_roles)
    return values


def _participation_from_record(record: MatchParticipationRecord) -> MatchParticipation:
    values = {field: getattr(record, field) for field in _PARTICIPATION_FIELDS}
    values["team"] = Team(values["team"])
    values["hero_roles"] = tuple(values["hero_roles"] or ())
    return MatchParticipation(id=record.id, **values)


class _RecordTable(Generic[RecordT, DomainT]):
    """Upsert/get/list/delete for one table keyed by its public string id."""

    def __init__(
        self,
        *,
        model: type[RecordT],
        to_values: Callable[[DomainT], dict[str, Any]],
        from_record: Callable[[RecordT], DomainT],
    ) -> None:
        self.model = model
        self.to_values = to_values
        self.from_record = from_record

    def _id_column(self) -> Any:
        return getattr(self.model, "id")

    async def get(self, session: AsyncSession, entity_id: str) -> DomainT | None:
        record = await session.scalar(select(self.model).where(self._id_column() == entity_id))
        return None if record is None else self.from_record(record)

    async def list_where(self, session: AsyncSession, *criteria: Any) -> list[DomainT]:
        statement = select(self.model).where(*criteria).order_by(getattr(self.model, "pk"))
        records = (await session.scalars(statement)).all()
        return [self.from_record(record) for record in records]

    async def put(self, session: AsyncSession, entity_id: str, entity: DomainT) -> None:
        values = self.to_values(entity)
        record = await session.scalar(select(self.model).where(self._id_column() == entity_id))
        if record is None:
            session.add(self.model(id=entity_id, **values))  # type: ignore[call-arg]
            return
        for key, value in values.items():
            setattr(record, key, value)

    async def delete(self, session: AsyncSession, entity_id: str) -> None:
        await session.execute(delete(self.model).where(self._id_column() == entity_id))


class SqlAlchemyStorage:
    """Storage port over an async SQLAlchemy session factory.

    Every call runs in its own session and commits before returning, so a later
    call in the same logical operation always sees earlier writes.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory
        self._players = _RecordTable[PlayerRecord, Player](
            model=PlayerRecord,
            to_values=_player_to_values,
            from_record=_player_from_record,
        )
        self._matches = _RecordTable[MatchRecord, Match](
            model=MatchRecord,
            to_values=_match_to_values,
            from_record=_match_from_record,
        )
        self._participations = _RecordTable[MatchParticipationRecord, MatchParticipation](
            model=MatchParticipationRecord,
            to_values=_participation_to_values,
            from_record=_participation_from_record,
        )

    async def _run(
        self,
        operation: str,
        work: Callable[[AsyncSession], Awaitable[ResultT]],
        *,
        write: bool = False,
    ) -> ResultT:
        try:
            async with self.session_factory() as session:
                result = await work(session)
                if write:
                    await session.commit()
                return result
        except SQLAlchemyError as exc:
            logger.error("Storage operation %s failed: %s", operation, exc)
            raise StorageError(f"{operation} failed") from exc

    async def get_player(self, player_id: str) -> Player | None:
        return await self._run("get_player", lambda session: self._players.get(session, player_id))

    async def list_players(self) -> list[Player]:
        return await self._run("list_players", lambda session: self._players.list_where(session))

    async def put_player(self, player: Player) -> None:
        await self._run("put_player", lambda session: self._players.put(session, player.id, player), write=True)

    async def delete_player(self, player_id: str) -> None:
        await self._run("delete_player", lambda session: self._players.delete(session, player_id), write=True)

    async def get_match(self, match_id: str) -> Match | None:
        return await self._run("get_match", lambda session: self._matches.get(session, match_id))

    async def list_matches(self) -> list[Match]:
        return await self._run("list_matches", lambda session: self._matches.list_where(session))

    async def put_match(self, match: Match) -> None:
        await self._run("put_match", lambda session: self._matches.put(session, match.id, match), write=True)

    async def delete_match(self, match_id: str) -> None:
        await self._run("delete_match", lambda session: self._matches.delete(session, match_id), write=True)

    async def list_participations_by_match(self, match_id: str) -> list[MatchParticipation]:
        return await self._run(
            "list_participations_by_match",
            lambda session: self._participations.list_where(session, MatchParticipationRecord.match_id == match_id),
        )

    async def list_participations_by_player(self, player_id: str) -> list[MatchParticipation]:
        return await self._run(
            "list_participations_by_player",
            lambda session: self._participations.list_where(session, MatchParticipationRecord.player_id == player_id),
        )

    async def list_all_participations(self) -> list[MatchParticipation]:
        return await self._run("list_all_participations", lambda session: self._participations.list_where(session))

    async def put_participation(self, participation: MatchParticipation) -> None:
        await self._run(
            "put_participation",
            lambda session: self._participations.put(session, participation.id, participation),
            write=True,
        )

    async def delete_participation(self, participation_id: str) -> None:
        await self._run(
            "delete_participation",
            lambda session: self._participations.delete(session, participation_id),
            write=True,
        )

    async def clear_all(self) -> None:
        async def _clear(session: AsyncSession) -> None:
            await session.execute(delete(MatchParticipationRecord))
            await session.execute(delete(MatchRecord))
            await session.execute(delete(PlayerRecord))

        await self._run("clear_all", _clear, write=True)


__all__ = ["SqlAlchemyStorage"]
