"""Win probability estimates and greedy team balancing."""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from scipy import stats

from domain.common import Belief, Player
from domain.ratings.model import RatingModel, display_rating
from domain.storage import StoragePort

CI_Z = 1.96
MIN_PLAYERS_TO_BALANCE = 4


@dataclass(frozen=True)
class WinProbabilityEstimate:
    """Integer percentages for both teams; the point estimates always sum to 100."""

    team_a: int
    team_a_low: int
    team_a_high: int
    team_b: int
    team_b_low: int
    team_b_high: int


@dataclass(frozen=True)
class TeamSplit:
    team_a: list[str]
    team_b: list[str]

    @property
    def is_empty(self) -> bool:
        return not self.team_a and not self.team_b


@dataclass(frozen=True)
class _TeamDelta:
    mu_delta: float
    skill_variance: float
    performance_variance: float


def _percent(probability: float) -> int:
    value = int(math.floor(probability * 100.0 + 0.5))
    return min(100, max(0, value))


def player_display_rating(player: Player) -> int:
    """Display rating from the stored ordinal, else the legacy ``elo`` column."""
    if player.ordinal is not None:
        return display_rating(player.ordinal)
    return player.elo


def greedy_split(players: Sequence[Player], key: Callable[[Player], float]) -> TeamSplit:
    """Highest ``key`` first, each player joining the team with the lower running sum.

    Ties on the running sum go to team A. The sort is stable, so equal keys keep
    the order of ``players``.
    """
    if len(players) < MIN_PLAYERS_TO_BALANCE:
        return TeamSplit(team_a=[], team_b=[])

    team_a: list[str] = []
    team_b: list[str] = []
    sum_a = 0.0
    sum_b = 0.0
    for player in sorted(players, key=key, reverse=True):
        value = key(player)
        if sum_a <= sum_b:
            team_a.append(player.id)
            sum_a += value
        else:
            team_b.append(player.id)
            sum_b += value
    return TeamSplit(team_a=team_a, team_b=team_b)


class MatchmakingAdvisor:
    """Read-only advice computed from the stored beliefs.

    Unknown or unrated player ids fall back to the default belief. Call
    ``RecalculationEngine.recalculate_all`` first when stored beliefs may be stale.
    """

    def __init__(self, storage: StoragePort, model: RatingModel | None = None) -> None:
        self.storage = storage
        self.model = model or RatingModel()

    async def _beliefs(self, player_ids: Sequence[str]) -> list[Belief]:
        beliefs: list[Belief] = []
        for player_id in player_ids:
            player = await self.storage.get_player(player_id)
            belief = player.belief if player is not None else None
            beliefs.append(belief or self.model.default_belief())
        return beliefs

    async def _delta(self, team_a: Sequence[str], team_b: Sequence[str]) -> _TeamDelta:
        beta_sq = self.model.params.beta**2
        beliefs_a = await self._beliefs(team_a)
        beliefs_b = await self._beliefs(team_b)
        skill_a = sum(belief.sigma**2 for belief in beliefs_a)
        skill_b = sum(belief.sigma**2 for belief in beliefs_b)
        return _TeamDelta(
            mu_delta=sum(belief.mu for belief in beliefs_a) - sum(belief.mu for belief in beliefs_b),
            skill_variance=skill_a + skill_b,
            performance_variance=skill_a + len(beliefs_a) * beta_sq + skill_b + len(beliefs_b) * beta_sq,
        )

    @staticmethod
    def _cdf(value: float, variance: float) -> float:
        if variance <= 0.0:
            if value == 0.0:
                return 0.5
            return 1.0 if value > 0.0 else 0.0
        return float(stats.norm.cdf(value / math.sqrt(variance)))

    async def win_probability(self, team_a: Sequence[str], team_b: Sequence[str]) -> int:
        """Chance (percent) that ``team_a`` beats ``team_b``."""
        delta = await self._delta(team_a, team_b)
        return _percent(self._cdf(delta.mu_delta, delta.performance_variance))

    async def win_probability_with_ci(self, team_a: Sequence[str], team_b: Sequence[str]) -> WinProbabilityEstimate:
        """Point estimate plus a 95% band.

        The band shifts the skill delta by ``1.96 * sqrt(skill variance)`` but
        evaluates the CDF with the full performance variance, the same scale as
        the point estimate.
        """
        delta = await self._delta(team_a, team_b)
        margin = CI_Z * math.sqrt(delta.skill_variance)

        point = _percent(self._cdf(delta.mu_delta, delta.performance_variance))
        low = _percent(self._cdf(delta.mu_delta - margin, delta.performance_variance))
        high = _percent(self._cdf(delta.mu_delta + margin, delta.performance_variance))
        return WinProbabilityEstimate(
            team_a=point,
            team_a_low=low,
            team_a_high=high,
            team_b=100 - point,
            team_b_low=100 - high,
            team_b_high=100 - low,
        )

    async def _selected_players(self, player_ids: Sequence[str]) -> list[Player]:
        wanted = set(player_ids)
        return [player for player in await self.storage.list_players() if player.id in wanted]

    async def balance_by_skill(self, player_ids: Sequence[str]) -> TeamSplit:
        """Split by display rating; fewer than four known players yields two empty teams."""
        return greedy_split(await self._selected_players(player_ids), player_display_rating)

    async def balance_by_experience(self, player_ids: Sequence[str]) -> TeamSplit:
        """Split by games played; fewer than four known players yields two empty teams."""
        return greedy_split(await self._selected_players(player_ids), lambda player: player.total_games)


__all__ = [
    "MatchmakingAdvisor",
    "TeamSplit",
    "WinProbabilityEstimate",
    "greedy_split",
    "player_display_rating",
]
