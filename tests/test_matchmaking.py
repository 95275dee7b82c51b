"""Tests for win probability estimates and team balancing."""

from __future__ import annotations

import asyncio

from domain.common import Player
from domain.matchmaking import MatchmakingAdvisor, greedy_split, player_display_rating
from repositories.memory import InMemoryStorage


def _rated(player_id: str, mu: float, sigma: float) -> Player:
    return Player(id=player_id, name=player_id, mu=mu, sigma=sigma, ordinal=mu - 3 * sigma)


def _display(player_id: str, rating: int) -> Player:
    # display = (ordinal + 25) * 40 + 200
    return Player(id=player_id, name=player_id, ordinal=(rating - 200) / 40 - 25)


def _advisor(*players: Player) -> MatchmakingAdvisor:
    storage = InMemoryStorage()
    for player in players:
        asyncio.run(storage.put_player(player))
    return MatchmakingAdvisor(storage)


def test_equal_teams_are_a_coin_flip() -> None:
    advisor = _advisor()

    assert asyncio.run(advisor.win_probability(["a", "b"], ["c", "d"])) == 50


def test_win_probability_is_symmetric() -> None:
    advisor = _advisor(
        _rated("a", 31.0, 4.0),
        _rated("b", 24.0, 6.5),
        _rated("c", 27.5, 3.0),
        _rated("d", 20.0, 8.0),
        _rated("e", 26.0, 5.0),
    )
    pairings = [
        (["a", "b"], ["c", "d"]),
        (["a"], ["c", "d"]),
        (["a", "e", "d"], ["b", "c"]),
        (["unknown"], ["a"]),
    ]

    for team_a, team_b in pairings:
        forward = asyncio.run(advisor.win_probability(team_a, team_b))
        backward = asyncio.run(advisor.win_probability(team_b, team_a))
        assert abs(forward + backward - 100) <= 1


def test_stronger_team_is_favoured() -> None:
    advisor = _advisor(_rated("a", 35.0, 3.0), _rated("b", 33.0, 3.0), _rated("c", 18.0, 3.0), _rated("d", 16.0, 3.0))

    assert asyncio.run(advisor.win_probability(["a", "b"], ["c", "d"])) > 90
    assert asyncio.run(advisor.win_probability(["c", "d"], ["a", "b"])) < 10


def test_confidence_interval_brackets_point_and_complements() -> None:
    advisor = _advisor(_rated("a", 29.0, 5.0), _rated("b", 25.0, 7.0), _rated("c", 24.0, 4.0), _rated("d", 23.0, 6.0))

    estimate = asyncio.run(advisor.win_probability_with_ci(["a", "b"], ["c", "d"]))

    assert estimate.team_a == asyncio.run(advisor.win_probability(["a", "b"], ["c", "d"]))
    assert estimate.team_a + estimate.team_b == 100
    assert estimate.team_a_low <= estimate.team_a <= estimate.team_a_high
    assert estimate.team_b_low <= estimate.team_b <= estimate.team_b_high
    assert estimate.team_b_low == 100 - estimate.team_a_high
    assert estimate.team_b_high == 100 - estimate.team_a_low
    assert estimate.team_a_low < estimate.team_a_high


def test_confidence_interval_is_clamped_for_lopsided_teams() -> None:
    advisor = _advisor(_rated("a", 60.0, 1.0), _rated("b", 60.0, 1.0), _rated("c", 0.0, 1.0), _rated("d", 0.0, 1.0))

    estimate = asyncio.run(advisor.win_probability_with_ci(["a", "b"], ["c", "d"]))

    values = [
        estimate.team_a,
        estimate.team_a_low,
        estimate.team_a_high,
        estimate.team_b,
        estimate.team_b_low,
        estimate.team_b_high,
    ]
    assert all(0 <= value <= 100 for value in values)
    assert estimate.team_a == 100
    assert estimate.team_b == 0


def test_balance_by_skill_uses_greedy_running_sum() -> None:
    advisor = _advisor(
        _display("p1600", 1600),
        _display("p2000", 2000),
        _display("p1400", 1400),
        _display("p1800", 1800),
    )

    split = asyncio.run(advisor.balance_by_skill(["p1400", "p1600", "p1800", "p2000"]))

    assert split.team_a == ["p2000", "p1400"]
    assert split.team_b == ["p1800", "p1600"]


def test_balance_by_skill_falls_back_to_elo_for_unrated_players() -> None:
    players = [
        Player(id="a", name="a", elo=1500),
        _display("b", 1300),
        Player(id="c", name="c", elo=1250),
        _display("d", 1100),
    ]

    assert [player_display_rating(player) for player in players] == [1500, 1300, 1250, 1100]
    split = asyncio.run(_advisor(*players).balance_by_skill(["a", "b", "c", "d"]))
    assert split.team_a == ["a", "d"]
    assert split.team_b == ["b", "c"]


def test_balance_by_experience_uses_total_games() -> None:
    advisor = _advisor(
        Player(id="a", name="a", total_games=4),
        Player(id="b", name="b", total_games=10),
        Player(id="c", name="c", total_games=6),
        Player(id="d", name="d", total_games=8),
    )

    split = asyncio.run(advisor.balance_by_experience(["a", "b", "c", "d"]))

    assert split.team_a == ["b", "a"]
    assert split.team_b == ["d", "c"]


def test_balancing_needs_four_known_players() -> None:
    advisor = _advisor(_display("a", 1500), _display("b", 1400), _display("c", 1300))

    split = asyncio.run(advisor.balance_by_skill(["a", "b", "c", "ghost"]))

    assert split.is_empty
    assert split.team_a == []
    assert split.team_b == []


def test_greedy_split_keeps_input_order_for_ties() -> None:
    players = [Player(id=name, name=name, total_games=5) for name in ("w", "x", "y", "z")]

    split = greedy_split(players, lambda player: player.total_games)

    assert split.team_a == ["w", "y"]
    assert split.team_b == ["x", "z"]
