"""Two-team Bayesian skill model (OpenSkill Plackett-Luce)."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from openskill.models import PlackettLuce

from domain.common import Belief

DISPLAY_OFFSET = 25.0
DISPLAY_SCALE = 40.0
DISPLAY_BASE = 200.0


@dataclass(frozen=True)
class RatingParameters:
    initial_mu: float = 25.0
    initial_sigma: float = 25.0 / 3.0
    beta: float = 25.0 / 6.0
    kappa: float = 0.0001
    tau: float = 25.0 / 300.0
    ordinal_z: float = 3.0


def display_rating(ordinal: float) -> int:
    """Map an ordinal onto the familiar 1000-2000+ band.

    ``floor((ordinal + 25) * 40 + 200 + 0.5)``: the default ordinal of 0 maps to
    1200, and every ordinal point is worth 40 display points.
    """
    return int(math.floor((ordinal + DISPLAY_OFFSET) * DISPLAY_SCALE + DISPLAY_BASE + 0.5))


class RatingModel:
    """Stateless wrapper around the OpenSkill model for one parameter set.

    Each call to ``update_teams`` inflates every input sigma by ``tau`` before the
    update and floors the posterior variance with ``kappa``; no state is kept
    between calls, so replaying the same inputs always yields the same beliefs.
    """

    def __init__(self, params: RatingParameters | None = None) -> None:
        self.params = params or RatingParameters()
        self._model = PlackettLuce(
            mu=self.params.initial_mu,
            sigma=self.params.initial_sigma,
            beta=self.params.beta,
            kappa=self.params.kappa,
            tau=self.params.tau,
            limit_sigma=False,
            balance=False,
        )

    def default_belief(self) -> Belief:
        return Belief(mu=self.params.initial_mu, sigma=self.params.initial_sigma)

    def ordinal(self, belief: Belief) -> float:
        return float(self._model.rating(mu=belief.mu, sigma=belief.sigma).ordinal(self.params.ordinal_z))

    def display_rating(self, belief: Belief) -> int:
        return display_rating(self.ordinal(belief))

    def update_teams(
        self,
        team_a: Sequence[Belief],
        team_b: Sequence[Belief],
        team_a_won: bool,
    ) -> tuple[list[Belief], list[Belief]]:
        """Return posterior beliefs for both rosters after one decided game."""
        if not team_a or not team_b:
            raise ValueError("update_teams requires at least one player on each team")

        team_a_pre = [self._model.rating(mu=belief.mu, sigma=belief.sigma) for belief in team_a]
        team_b_pre = [self._model.rating(mu=belief.mu, sigma=belief.sigma) for belief in team_b]

        ranks = [1, 2] if team_a_won else [2, 1]
        updated = self._model.rate([team_a_pre, team_b_pre], ranks=ranks)

        team_a_post = [Belief(mu=float(rating.mu), sigma=float(rating.sigma)) for rating in updated[0]]
        team_b_post = [Belief(mu=float(rating.mu), sigma=float(rating.sigma)) for rating in updated[1]]
        return team_a_post, team_b_post


__all__ = [
    "DISPLAY_BASE",
    "DISPLAY_OFFSET",
    "DISPLAY_SCALE",
    "RatingModel",
    "RatingParameters",
    "display_rating",
]
