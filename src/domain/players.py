"""Player roster operations outside the match write path."""

from __future__ import annotations

import logging
from dataclasses import replace

from domain.common import Player
from domain.errors import NotFoundError, ValidationError
from domain.lifecycle import MatchLifecycleManager, new_player
from domain.matchmaking import player_display_rating
from domain.ratings.model import RatingModel

logger = logging.getLogger(__name__)


class PlayerRoster:
    """Create, inspect and remove players.

    Mutations share the lifecycle manager's write lock, so a delete can never
    race a match write that is about to reference the same player.
    """

    def __init__(self, manager: MatchLifecycleManager) -> None:
        self.manager = manager
        self.storage = manager.storage

    @property
    def model(self) -> RatingModel:
        return self.manager.engine.model

    async def create_player(self, player_id: str, name: str) -> Player:
        if not player_id.strip():
            raise ValidationError.single("id", "Player id must not be empty")
        async with self.manager.write_lock:
            if await self.storage.get_player(player_id) is not None:
                raise ValidationError.single("id", f"Player {player_id} already exists", player_id=player_id)
            player = new_player(self.model, player_id, name, now=self.manager.clock())
            await self.storage.put_player(player)
        logger.info("Created player %s", player_id)
        return player

    async def get_player(self, player_id: str) -> Player:
        player = await self.storage.get_player(player_id)
        if player is None:
            raise NotFoundError("player", player_id)
        return player

    async def list_players(self) -> list[Player]:
        return await self.storage.list_players()

    async def players_with_no_games(self) -> list[Player]:
        return [player for player in await self.storage.list_players() if player.total_games == 0]

    async def delete_player(self, player_id: str) -> None:
        """Remove a player that has never played; anything else is refused."""
        async with self.manager.write_lock:
            player = await self.get_player(player_id)
            if player.total_games != 0:
                raise ValidationError.single(
                    "total_games",
                    f"Cannot delete player {player_id}: has {player.total_games} games recorded",
                    player_id=player_id,
                )
            rows = await self.storage.list_participations_by_player(player_id)
            if rows:
                raise ValidationError.single(
                    "participations",
                    f"Cannot delete player {player_id}: has {len(rows)} match records",
                    player_id=player_id,
                )
            await self.storage.delete_player(player_id)
        logger.info("Deleted player %s", player_id)

    async def set_level(self, player_id: str, level: int) -> Player:
        limits = self.manager.limits
        if not limits.min_level <= level <= limits.max_level:
            raise ValidationError.single(
                "level",
                f"Level must be between {limits.min_level} and {limits.max_level}",
                player_id=player_id,
            )
        async with self.manager.write_lock:
            player = replace(await self.get_player(player_id), level=level)
            await self.storage.put_player(player)
        return player

    @staticmethod
    def display_rating(player: Player) -> int:
        return player_display_rating(player)


__all__ = ["PlayerRoster"]
