"""Chronological full-history replay that derives every player's rating and tallies."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime

from domain.common import Belief, Match, MatchParticipation, Player, Team
from domain.errors import InconsistentStateError
from domain.ratings.model import RatingModel, display_rating
from domain.storage import StoragePort

logger = logging.getLogger(__name__)


@dataclass
class PlayerTally:
    total_games: int = 0
    wins: int = 0
    losses: int = 0
    last_match_date: datetime | None = None


@dataclass(frozen=True)
class RatingSnapshot:
    """Display ratings of every player right after one match was applied."""

    match_number: int
    match_id: str
    date: datetime
    ratings: dict[str, int]


@dataclass(frozen=True)
class ReplayResult:
    beliefs: dict[str, Belief]
    tallies: dict[str, PlayerTally]
    processed_matches: int
    skipped_match_ids: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class RecalculationSummary:
    """Outcome of one recalculation pass."""

    players: int
    processed_matches: int
    skipped_matches: int
    updated_players: int
    dry_run: bool


@dataclass(frozen=True)
class MatchHistory:
    players: list[Player]
    matches: list[Match]
    participations_by_match: dict[str, list[MatchParticipation]]


def order_matches(matches: Iterable[Match]) -> list[Match]:
    """Ascending by date; equal dates keep their storage (insertion) order."""
    return sorted(matches, key=lambda match: match.date)


def group_participations(participations: Iterable[MatchParticipation]) -> dict[str, list[MatchParticipation]]:
    grouped: dict[str, list[MatchParticipation]] = {}
    for participation in participations:
        grouped.setdefault(participation.match_id, []).append(participation)
    return grouped


def apply_match(
    model: RatingModel,
    beliefs: dict[str, Belief],
    tallies: dict[str, PlayerTally],
    match: Match,
    participations: Sequence[MatchParticipation],
) -> bool:
    """Apply one match to the in-memory state. Returns False when the match was skipped."""
    titans = [participation for participation in participations if participation.team is Team.TITANS]
    atlanteans = [participation for participation in participations if participation.team is Team.ATLANTEANS]

    for participation in participations:
        if participation.player_id not in beliefs:
            raise InconsistentStateError(
                f"match_id={match.id} references unknown player_id={participation.player_id}"
            )

    if not titans or not atlanteans:
        logger.warning("Skipping match %s due to empty team", match.id)
        return False

    titans_post, atlanteans_post = model.update_teams(
        [beliefs[participation.player_id] for participation in titans],
        [beliefs[participation.player_id] for participation in atlanteans],
        team_a_won=match.winning_team is Team.TITANS,
    )
    for participation, belief in zip(titans, titans_post):
        beliefs[participation.player_id] = belief
    for participation, belief in zip(atlanteans, atlanteans_post):
        beliefs[participation.player_id] = belief

    for participation in participations:
        tally = tallies[participation.player_id]
        tally.total_games += 1
        if participation.team is match.winning_team:
            tally.wins += 1
        else:
            tally.losses += 1
        tally.last_match_date = match.date
    return True


def replay_history(
    model: RatingModel,
    player_ids: Iterable[str],
    matches: Sequence[Match],
    participations_by_match: Mapping[str, Sequence[MatchParticipation]],
    *,
    on_match_applied: Callable[[int, Match, dict[str, Belief]], None] | None = None,
) -> ReplayResult:
    """Replay ``matches`` in the given order starting from default beliefs.

    Stored beliefs are never read: the result is a pure function of the roster
    and the match history. ``on_match_applied`` receives the 1-based position of
    each applied match in ``matches`` together with the current belief map.
    """
    beliefs = {player_id: model.default_belief() for player_id in player_ids}
    tallies = {player_id: PlayerTally() for player_id in beliefs}
    processed = 0
    skipped: list[str] = []

    for index, match in enumerate(matches, start=1):
        applied = apply_match(model, beliefs, tallies, match, participations_by_match.get(match.id, ()))
        if not applied:
            skipped.append(match.id)
            continue
        processed += 1
        if on_match_applied is not None:
            on_match_applied(index, match, beliefs)

    return ReplayResult(
        beliefs=beliefs,
        tallies=tallies,
        processed_matches=processed,
        skipped_match_ids=tuple(skipped),
    )


def rated_player(model: RatingModel, player: Player, belief: Belief, tally: PlayerTally) -> Player:
    """Return ``player`` with every derived field overwritten from a replay."""
    ordinal = model.ordinal(belief)
    return replace(
        player,
        total_games=tally.total_games,
        wins=tally.wins,
        losses=tally.losses,
        mu=belief.mu,
        sigma=belief.sigma,
        ordinal=ordinal,
        elo=display_rating(ordinal),
        last_played=tally.last_match_date if tally.total_games > 0 else player.last_played,
    )


class RecalculationEngine:
    """Rebuilds every player's rating fields from the stored match history."""

    def __init__(self, storage: StoragePort, model: RatingModel | None = None) -> None:
        self.storage = storage
        self.model = model or RatingModel()

    async def load_history(self) -> MatchHistory:
        players = await self.storage.list_players()
        matches = order_matches(await self.storage.list_matches())
        participations = await self.storage.list_all_participations()
        return MatchHistory(
            players=players,
            matches=matches,
            participations_by_match=group_participations(participations),
        )

    async def replay(self) -> tuple[MatchHistory, ReplayResult]:
        history = await self.load_history()
        result = replay_history(
            self.model,
            [player.id for player in history.players],
            history.matches,
            history.participations_by_match,
        )
        return history, result

    async def recalculate_all(self, *, dry_run: bool = False) -> RecalculationSummary:
        """Overwrite every player's rating fields and tallies from a full replay."""
        history, result = await self.replay()
        logger.info(
            "Replayed %d matches (%d skipped) for %d players",
            result.processed_matches,
            len(result.skipped_match_ids),
            len(history.players),
        )

        updated = 0
        if not dry_run:
            for player in history.players:
                rated = rated_player(self.model, player, result.beliefs[player.id], result.tallies[player.id])
                try:
                    await self.storage.put_player(rated)
                except Exception:
                    logger.error(
                        "Recalculation aborted after %d/%d player writes",
                        updated,
                        len(history.players),
                    )
                    raise
                updated += 1

        return RecalculationSummary(
            players=len(history.players),
            processed_matches=result.processed_matches,
            skipped_matches=len(result.skipped_match_ids),
            updated_players=updated,
            dry_run=dry_run,
        )

    async def historical_ratings(self) -> list[RatingSnapshot]:
        """Display-rating snapshot of every player after each applied match."""
        history = await self.load_history()
        snapshots: list[RatingSnapshot] = []

        def capture(match_number: int, match: Match, beliefs: dict[str, Belief]) -> None:
            snapshots.append(
                RatingSnapshot(
                    match_number=match_number,
                    match_id=match.id,
                    date=match.date,
                    ratings={player_id: self.model.display_rating(belief) for player_id, belief in beliefs.items()},
                )
            )

        replay_history(
            self.model,
            [player.id for player in history.players],
            history.matches,
            history.participations_by_match,
            on_match_applied=capture,
        )
        return snapshots

    async def current_ratings(self) -> dict[str, int]:
        """Fresh display ratings from an in-memory replay; nothing is written."""
        _, result = await self.replay()
        return {player_id: self.model.display_rating(belief) for player_id, belief in result.beliefs.items()}


__all__ = [
    "MatchHistory",
    "PlayerTally",
    "RatingSnapshot",
    "RecalculationEngine",
    "RecalculationSummary",
    "ReplayResult",
    "apply_match",
    "group_participations",
    "order_matches",
    "rated_player",
    "replay_history",
]
