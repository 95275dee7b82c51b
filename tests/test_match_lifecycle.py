"""Tests for recording, editing and deleting matches."""

from __future__ import annotations

import asyncio
import contextlib
from datetime import datetime

import pytest

from domain.common import GameLength, Match, MatchParticipation, Player, Team
from domain.errors import NotFoundError, StorageError, ValidationError
from domain.lifecycle import (
    MatchDraft,
    MatchLifecycleManager,
    ParticipantDraft,
    ParticipationUpdate,
)
from domain.ratings.model import RatingModel
from domain.ratings.replay import RecalculationEngine, RecalculationSummary
from repositories.memory import InMemoryStorage

NOW = datetime(2026, 3, 1, 12, 0, 0)
DEFAULT = RatingModel().default_belief()


def _manager(storage: InMemoryStorage, **kwargs) -> MatchLifecycleManager:
    return MatchLifecycleManager(storage, clock=lambda: NOW, **kwargs)


def _draft(winner: Team = Team.TITANS, date: datetime = datetime(2026, 2, 1)) -> MatchDraft:
    return MatchDraft(date=date, winning_team=winner, game_length=GameLength.QUICK)


def _participants(titans: list[str], atlanteans: list[str], **stats) -> list[ParticipantDraft]:
    participants = []
    for index, player_id in enumerate(titans + atlanteans, start=1):
        participants.append(
            ParticipantDraft(
                player_id=player_id,
                team=Team.TITANS if player_id in titans else Team.ATLANTEANS,
                hero_id=index,
                hero_name=f"Hero {index}",
                hero_roles=("tactician",),
                **stats,
            )
        )
    return participants


class FailingEngine(RecalculationEngine):
    async def recalculate_all(self, *, dry_run: bool = False) -> RecalculationSummary:
        raise StorageError("disk unplugged")


def test_record_two_vs_two_creates_players_and_rates_them() -> None:
    async def scenario():
        storage = InMemoryStorage()
        result = await _manager(storage).record_match(_draft(), _participants(["p1", "p2"], ["p3", "p4"]))
        return result, storage

    result, storage = asyncio.run(scenario())
    players = {player.id: player for player in asyncio.run(storage.list_players())}
    match = asyncio.run(storage.get_match(result.match_id))

    assert result.ratings_current
    assert result.warnings == ()
    assert result.recalculation.processed_matches == 1
    assert match.titan_players == 2
    assert match.atlantean_players == 2
    assert set(players) == {"p1", "p2", "p3", "p4"}
    for player_id in ("p1", "p2"):
        assert (players[player_id].total_games, players[player_id].wins, players[player_id].losses) == (1, 1, 0)
        assert players[player_id].ordinal > 0
    for player_id in ("p3", "p4"):
        assert (players[player_id].total_games, players[player_id].wins, players[player_id].losses) == (1, 0, 1)
        assert players[player_id].ordinal < 0
    assert players["p1"].date_created == NOW
    assert players["p1"].level == 1


def test_delete_restores_default_ratings() -> None:
    async def scenario():
        storage = InMemoryStorage()
        manager = _manager(storage)
        recorded = await manager.record_match(_draft(), _participants(["p1", "p2"], ["p3", "p4"]))
        deleted = await manager.delete_match(recorded.match_id)
        return deleted, storage

    deleted, storage = asyncio.run(scenario())

    assert deleted.ratings_current
    assert asyncio.run(storage.list_matches()) == []
    assert asyncio.run(storage.list_all_participations()) == []
    for player in asyncio.run(storage.list_players()):
        assert player.mu == pytest.approx(DEFAULT.mu)
        assert player.sigma == pytest.approx(DEFAULT.sigma)
        assert player.elo == 1200
        assert (player.total_games, player.wins, player.losses) == (0, 0, 0)


def test_record_rejects_one_player_teams_without_writing() -> None:
    storage = InMemoryStorage()

    with pytest.raises(ValidationError, match="at least 2 players"):
        asyncio.run(_manager(storage).record_match(_draft(), _participants(["p1"], ["p2"])))

    assert asyncio.run(storage.list_players()) == []
    assert asyncio.run(storage.list_matches()) == []


def test_record_rejects_duplicate_heroes() -> None:
    storage = InMemoryStorage()
    participants = _participants(["p1", "p2"], ["p3", "p4"])
    participants[3] = ParticipantDraft(player_id="p4", team=Team.ATLANTEANS, hero_id=1, hero_name="Hero 1")

    with pytest.raises(ValidationError) as error:
        asyncio.run(_manager(storage).record_match(_draft(), participants))

    assert [issue.field for issue in error.value.issues] == ["hero"]
    assert asyncio.run(storage.list_matches()) == []


def test_record_returns_warnings_for_uneven_teams() -> None:
    storage = InMemoryStorage()

    result = asyncio.run(_manager(storage).record_match(_draft(), _participants(["p1", "p2", "p3"], ["p4", "p5"])))

    assert [warning.field for warning in result.warnings] == ["teams"]
    assert asyncio.run(storage.get_match(result.match_id)).titan_players == 3


def test_recorded_level_only_ratchets_upwards() -> None:
    async def scenario():
        storage = InMemoryStorage()
        manager = _manager(storage)
        await manager.record_match(_draft(), _participants(["p1", "p2"], ["p3", "p4"], level=5))
        await manager.record_match(_draft(), _participants(["p1", "p2"], ["p3", "p4"], level=3))
        return await storage.get_player("p1")

    assert asyncio.run(scenario()).level == 5


def test_existing_player_keeps_its_name() -> None:
    async def scenario():
        storage = InMemoryStorage()
        await storage.put_player(Player(id="p1", name="Alice"))
        await _manager(storage).record_match(_draft(), _participants(["p1", "p2"], ["p3", "p4"]))
        return await storage.get_player("p1")

    player = asyncio.run(scenario())

    assert player.name == "Alice"
    assert player.total_games == 1


def test_recalculation_failure_is_reported_but_write_stands() -> None:
    async def scenario():
        storage = InMemoryStorage()
        manager = _manager(storage, engine=FailingEngine(storage))
        result = await manager.record_match(_draft(), _participants(["p1", "p2"], ["p3", "p4"]))
        return result, storage

    result, storage = asyncio.run(scenario())

    assert not result.ratings_current
    assert isinstance(result.recalculation_error, StorageError)
    assert asyncio.run(storage.get_match(result.match_id)) is not None
    assert len(asyncio.run(storage.list_all_participations())) == 4


def test_edit_winner_flips_tallies() -> None:
    async def scenario():
        storage = InMemoryStorage()
        manager = _manager(storage)
        recorded = await manager.record_match(_draft(), _participants(["p1", "p2"], ["p3", "p4"]))
        await manager.edit_match(recorded.match_id, {"winning_team": "atlanteans"})
        return storage, recorded.match_id

    storage, match_id = asyncio.run(scenario())

    assert asyncio.run(storage.get_match(match_id)).winning_team is Team.ATLANTEANS
    p1 = asyncio.run(storage.get_player("p1"))
    p3 = asyncio.run(storage.get_player("p3"))
    assert (p1.wins, p1.losses) == (0, 1)
    assert (p3.wins, p3.losses) == (1, 0)


def test_edit_participation_moves_player_and_recounts_teams() -> None:
    async def scenario():
        storage = InMemoryStorage()
        manager = _manager(storage)
        recorded = await manager.record_match(
            _draft(), _participants(["p1", "p2", "p3"], ["p4", "p5", "p6"])
        )
        rows = await storage.list_participations_by_match(recorded.match_id)
        p3_row = next(row for row in rows if row.player_id == "p3")
        result = await manager.edit_match(
            recorded.match_id,
            participation_updates=[ParticipationUpdate(p3_row.id, {"team": Team.ATLANTEANS, "kills": 4})],
        )
        return storage, recorded.match_id, p3_row.id, result

    storage, match_id, row_id, result = asyncio.run(scenario())
    match = asyncio.run(storage.get_match(match_id))
    row = next(row for row in asyncio.run(storage.list_participations_by_match(match_id)) if row.id == row_id)

    assert (match.titan_players, match.atlantean_players) == (2, 4)
    assert row.team is Team.ATLANTEANS
    assert row.kills == 4
    assert [warning.field for warning in result.warnings] == ["teams"]
    assert asyncio.run(storage.get_player("p3")).losses == 1


def test_edit_validates_merged_state_and_leaves_storage_untouched() -> None:
    async def scenario():
        storage = InMemoryStorage()
        manager = _manager(storage)
        recorded = await manager.record_match(_draft(), _participants(["p1", "p2"], ["p3", "p4"]))
        rows = await storage.list_participations_by_match(recorded.match_id)
        with pytest.raises(ValidationError, match="Hero ID 1"):
            await manager.edit_match(
                recorded.match_id,
                participation_updates=[ParticipationUpdate(rows[1].id, {"hero_id": 1})],
            )
        return await storage.list_participations_by_match(recorded.match_id), rows

    after, before = asyncio.run(scenario())

    assert after == before


def test_edit_rejects_identity_fields() -> None:
    async def scenario():
        storage = InMemoryStorage()
        manager = _manager(storage)
        recorded = await manager.record_match(_draft(), _participants(["p1", "p2"], ["p3", "p4"]))
        await manager.edit_match(recorded.match_id, {"id": "other"})

    with pytest.raises(ValidationError, match="cannot be edited"):
        asyncio.run(scenario())


def test_edit_unknown_participation_is_not_found() -> None:
    async def scenario():
        storage = InMemoryStorage()
        manager = _manager(storage)
        recorded = await manager.record_match(_draft(), _participants(["p1", "p2"], ["p3", "p4"]))
        await manager.edit_match(
            recorded.match_id,
            participation_updates=[ParticipationUpdate("missing", {"kills": 1})],
        )

    with pytest.raises(NotFoundError, match="participation"):
        asyncio.run(scenario())


def test_edit_and_delete_unknown_match_are_not_found() -> None:
    manager = _manager(InMemoryStorage())

    with pytest.raises(NotFoundError, match="match"):
        asyncio.run(manager.edit_match("missing", {"double_lanes": True}))
    with pytest.raises(NotFoundError, match="match"):
        asyncio.run(manager.delete_match("missing"))


def test_editable_match_names_missing_players() -> None:
    async def scenario():
        storage = InMemoryStorage()
        await storage.put_player(Player(id="p1", name="Alice"))
        manager = _manager(storage)
        recorded = await manager.record_match(_draft(), _participants(["p1", "p2"], ["p3", "p4"]))
        await storage.delete_player("p4")
        return await manager.editable_match(recorded.match_id), await manager.can_edit_match(recorded.match_id)

    details, (editable, reason) = asyncio.run(scenario())

    assert details.player_names["p1"] == "Alice"
    assert details.player_names["p4"] == "Unknown Player"
    assert len(details.participations) == 4
    assert editable is False
    assert reason == "Player p4 no longer exists"


def test_can_edit_match_reports_missing_match() -> None:
    manager = _manager(InMemoryStorage())

    assert asyncio.run(manager.can_edit_match("missing")) == (False, "Match not found")


def test_record_converts_offset_dates_to_naive_utc() -> None:
    async def scenario():
        storage = InMemoryStorage()
        manager = _manager(storage)
        draft = _draft(date=datetime.fromisoformat("2026-02-01T10:00:00+02:00"))
        recorded = await manager.record_match(draft, _participants(["p1", "p2"], ["p3", "p4"]))
        stored = await storage.get_match(recorded.match_id)
        await manager.edit_match(recorded.match_id, {"date": "2026-02-02T10:00:00Z"})
        return stored, await storage.get_match(recorded.match_id), await storage.get_player("p1")

    recorded, edited, player = asyncio.run(scenario())

    assert recorded.date == datetime(2026, 2, 1, 8, 0)
    assert edited.date == datetime(2026, 2, 2, 10, 0)
    assert edited.date.tzinfo is None
    assert player.last_played == datetime(2026, 2, 2, 10, 0)


def test_edit_with_unknown_enum_value_is_a_validation_error() -> None:
    async def scenario():
        storage = InMemoryStorage()
        manager = _manager(storage)
        recorded = await manager.record_match(_draft(), _participants(["p1", "p2"], ["p3", "p4"]))
        row = (await storage.list_participations_by_match(recorded.match_id))[0]
        with pytest.raises(ValidationError, match="Unknown winning team 'draw'") as winner_error:
            await manager.edit_match(recorded.match_id, {"winning_team": "draw"})
        with pytest.raises(ValidationError, match="Unknown team 'spectators'"):
            await manager.edit_match(
                recorded.match_id,
                participation_updates=[ParticipationUpdate(row.id, {"team": "spectators"})],
            )
        with pytest.raises(ValidationError, match="Invalid date"):
            await manager.edit_match(recorded.match_id, {"date": "yesterday"})
        return winner_error.value, await storage.get_match(recorded.match_id)

    error, match = asyncio.run(scenario())

    assert error.issues[0].field == "winning_team"
    assert match.winning_team is Team.TITANS


class YieldingStorage(InMemoryStorage):
    """Suspends on every write and records matches seen with a partial roster."""

    def __init__(self) -> None:
        super().__init__()
        self.partial_reads: list[str] = []

    async def put_player(self, player: Player) -> None:
        await asyncio.sleep(0)
        await super().put_player(player)

    async def put_match(self, match: Match) -> None:
        await asyncio.sleep(0)
        await super().put_match(match)

    async def put_participation(self, participation: MatchParticipation) -> None:
        await asyncio.sleep(0)
        await super().put_participation(participation)

    async def list_matches(self) -> list[Match]:
        matches = await super().list_matches()
        for match in matches:
            rows = await super().list_participations_by_match(match.id)
            if len(rows) != match.titan_players + match.atlantean_players:
                self.partial_reads.append(match.id)
        return matches


async def _record_two_concurrently(manager: MatchLifecycleManager) -> None:
    await asyncio.gather(
        manager.record_match(_draft(date=datetime(2026, 2, 1)), _participants(["p1", "p2"], ["p3", "p4"])),
        manager.record_match(_draft(date=datetime(2026, 2, 2)), _participants(["p1", "p3"], ["p2", "p4"])),
    )


def test_concurrent_records_never_replay_a_partial_match() -> None:
    async def scenario():
        storage = YieldingStorage()
        await _record_two_concurrently(_manager(storage))
        return storage.partial_reads, await storage.list_players()

    partial_reads, players = asyncio.run(scenario())

    assert partial_reads == []
    assert all(player.total_games == 2 for player in players)
    assert all(player.wins + player.losses == 2 for player in players)


def test_interleaving_writes_is_observable_without_the_write_lock() -> None:
    async def scenario():
        storage = YieldingStorage()
        manager = _manager(storage)
        manager.write_lock = contextlib.nullcontext()
        await _record_two_concurrently(manager)
        return storage.partial_reads

    assert asyncio.run(scenario()) != []
