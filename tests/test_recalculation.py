"""Tests for full-history rating recalculation."""

from __future__ import annotations

import asyncio
from datetime import datetime

import pytest

from domain.common import GameLength, Match, MatchParticipation, Player, Team
from domain.errors import InconsistentStateError
from domain.ratings.model import RatingModel
from domain.ratings.replay import RecalculationEngine, order_matches
from repositories.memory import InMemoryStorage

DEFAULT_ORDINAL = RatingModel().ordinal(RatingModel().default_belief())


def _match(match_id: str, date: datetime, winner: Team = Team.TITANS) -> Match:
    return Match(id=match_id, date=date, winning_team=winner, game_length=GameLength.QUICK)


def _rows(match_id: str, titans: list[str], atlanteans: list[str]) -> list[MatchParticipation]:
    rows = []
    for index, player_id in enumerate(titans + atlanteans):
        rows.append(
            MatchParticipation(
                id=f"{match_id}-{player_id}",
                match_id=match_id,
                player_id=player_id,
                team=Team.TITANS if player_id in titans else Team.ATLANTEANS,
                hero_id=index + 1,
                hero_name=f"Hero {index + 1}",
            )
        )
    return rows


async def _seed(
    storage: InMemoryStorage,
    player_ids: list[str],
    matches: list[tuple[Match, list[MatchParticipation]]],
) -> None:
    for player_id in player_ids:
        await storage.put_player(Player(id=player_id, name=player_id.upper()))
    for match, rows in matches:
        await storage.put_match(match)
        for row in rows:
            await storage.put_participation(row)


def _rating_fields(player: Player) -> tuple:
    return (
        player.mu,
        player.sigma,
        player.ordinal,
        player.elo,
        player.total_games,
        player.wins,
        player.losses,
    )


def test_simple_two_vs_two_updates_tallies_and_ordinals() -> None:
    async def scenario() -> dict[str, Player]:
        storage = InMemoryStorage()
        await _seed(
            storage,
            ["p1", "p2", "p3", "p4"],
            [(_match("m1", datetime(2026, 1, 1)), _rows("m1", ["p1", "p2"], ["p3", "p4"]))],
        )
        summary = await RecalculationEngine(storage).recalculate_all()
        assert summary.processed_matches == 1
        assert summary.updated_players == 4
        return {player.id: player for player in await storage.list_players()}

    players = asyncio.run(scenario())

    for player_id in ("p1", "p2"):
        assert (players[player_id].wins, players[player_id].losses) == (1, 0)
        assert players[player_id].ordinal > DEFAULT_ORDINAL
        assert players[player_id].elo > 1200
    for player_id in ("p3", "p4"):
        assert (players[player_id].wins, players[player_id].losses) == (0, 1)
        assert players[player_id].ordinal < DEFAULT_ORDINAL
        assert players[player_id].elo < 1200
    assert all(player.total_games == 1 for player in players.values())
    assert all(player.last_played == datetime(2026, 1, 1) for player in players.values())


def test_recalculation_is_idempotent() -> None:
    async def scenario() -> tuple[list[Player], list[Player]]:
        storage = InMemoryStorage()
        await _seed(
            storage,
            ["p1", "p2", "p3", "p4", "p5"],
            [
                (_match("m1", datetime(2026, 1, 1)), _rows("m1", ["p1", "p2"], ["p3", "p4"])),
                (_match("m2", datetime(2026, 1, 2), Team.ATLANTEANS), _rows("m2", ["p1", "p5"], ["p2", "p3"])),
                (_match("m3", datetime(2026, 1, 3)), _rows("m3", ["p4", "p5"], ["p1", "p2", "p3"])),
            ],
        )
        engine = RecalculationEngine(storage)
        await engine.recalculate_all()
        first = await storage.list_players()
        await engine.recalculate_all()
        return first, await storage.list_players()

    first, second = asyncio.run(scenario())

    assert [_rating_fields(player) for player in first] == [_rating_fields(player) for player in second]
    for player in second:
        assert player.wins + player.losses == player.total_games


def test_recalculation_ignores_stale_stored_ratings() -> None:
    async def scenario() -> Player:
        storage = InMemoryStorage()
        await storage.put_player(Player(id="p1", name="P1", mu=50.0, sigma=1.0, ordinal=47.0, total_games=9, wins=9))
        await RecalculationEngine(storage).recalculate_all()
        return await storage.get_player("p1")

    player = asyncio.run(scenario())

    assert player.mu == pytest.approx(25.0)
    assert player.sigma == pytest.approx(25.0 / 3.0)
    assert (player.total_games, player.wins, player.losses) == (0, 0, 0)
    assert player.elo == 1200


def test_reordering_matches_does_not_touch_uninvolved_players() -> None:
    async def final_ratings(first_date: datetime, second_date: datetime) -> dict[str, tuple]:
        storage = InMemoryStorage()
        await _seed(
            storage,
            ["p1", "p2", "p3", "p4", "p5", "p6", "p7", "p8", "p9", "p10"],
            [
                (_match("m1", first_date), _rows("m1", ["p1", "p2"], ["p3", "p4"])),
                (_match("m2", second_date, Team.ATLANTEANS), _rows("m2", ["p1", "p5"], ["p6", "p2"])),
                (_match("m3", datetime(2026, 1, 5)), _rows("m3", ["p7", "p8"], ["p9", "p10"])),
            ],
        )
        await RecalculationEngine(storage).recalculate_all()
        return {player.id: _rating_fields(player) for player in await storage.list_players()}

    original = asyncio.run(final_ratings(datetime(2026, 1, 1), datetime(2026, 1, 2)))
    swapped = asyncio.run(final_ratings(datetime(2026, 1, 2), datetime(2026, 1, 1)))

    for player_id in ("p7", "p8", "p9", "p10"):
        assert original[player_id] == swapped[player_id]
    assert original["p1"] != swapped["p1"]


def test_equal_dates_keep_insertion_order() -> None:
    same_day = datetime(2026, 1, 1)
    matches = [
        _match("late", datetime(2026, 1, 2)),
        _match("a", same_day),
        _match("b", same_day),
        _match("early", datetime(2025, 12, 31)),
    ]

    assert [match.id for match in order_matches(matches)] == ["early", "a", "b", "late"]


def test_unknown_player_reference_raises() -> None:
    async def scenario() -> None:
        storage = InMemoryStorage()
        await _seed(
            storage,
            ["p1", "p2", "p3"],
            [(_match("m1", datetime(2026, 1, 1)), _rows("m1", ["p1", "p2"], ["p3", "ghost"]))],
        )
        await RecalculationEngine(storage).recalculate_all()

    with pytest.raises(InconsistentStateError, match="ghost"):
        asyncio.run(scenario())


def test_empty_team_match_is_skipped() -> None:
    async def scenario():
        storage = InMemoryStorage()
        await _seed(
            storage,
            ["p1", "p2"],
            [(_match("m1", datetime(2026, 1, 1)), _rows("m1", ["p1", "p2"], []))],
        )
        summary = await RecalculationEngine(storage).recalculate_all()
        return summary, await storage.list_players()

    summary, players = asyncio.run(scenario())

    assert summary.processed_matches == 0
    assert summary.skipped_matches == 1
    assert all(player.total_games == 0 for player in players)


def test_dry_run_writes_nothing() -> None:
    async def scenario():
        storage = InMemoryStorage()
        await _seed(
            storage,
            ["p1", "p2", "p3", "p4"],
            [(_match("m1", datetime(2026, 1, 1)), _rows("m1", ["p1", "p2"], ["p3", "p4"]))],
        )
        summary = await RecalculationEngine(storage).recalculate_all(dry_run=True)
        return summary, await storage.list_players()

    summary, players = asyncio.run(scenario())

    assert summary.dry_run is True
    assert summary.processed_matches == 1
    assert summary.updated_players == 0
    assert all(player.total_games == 0 and player.mu is None for player in players)


def test_historical_ratings_snapshot_every_match() -> None:
    async def scenario():
        storage = InMemoryStorage()
        await _seed(
            storage,
            ["p1", "p2", "p3", "p4"],
            [
                (_match("m2", datetime(2026, 1, 2), Team.ATLANTEANS), _rows("m2", ["p1", "p3"], ["p2", "p4"])),
                (_match("m1", datetime(2026, 1, 1)), _rows("m1", ["p1", "p2"], ["p3", "p4"])),
            ],
        )
        engine = RecalculationEngine(storage)
        return await engine.historical_ratings(), await engine.current_ratings()

    snapshots, current = asyncio.run(scenario())

    assert [snapshot.match_number for snapshot in snapshots] == [1, 2]
    assert [snapshot.match_id for snapshot in snapshots] == ["m1", "m2"]
    assert snapshots[0].ratings["p1"] > 1200
    assert snapshots[0].ratings["p3"] < 1200
    assert snapshots[-1].ratings == current


def test_current_ratings_does_not_write() -> None:
    async def scenario():
        storage = InMemoryStorage()
        await _seed(
            storage,
            ["p1", "p2", "p3", "p4"],
            [(_match("m1", datetime(2026, 1, 1)), _rows("m1", ["p1", "p2"], ["p3", "p4"]))],
        )
        ratings = await RecalculationEngine(storage).current_ratings()
        return ratings, await storage.get_player("p1")

    ratings, stored = asyncio.run(scenario())

    assert ratings["p1"] > 1200
    assert stored.total_games == 0
    assert stored.ordinal is None
