"""In-process storage backend keeping insertion order."""

from __future__ import annotations

from domain.common import Match, MatchParticipation, Player


class InMemoryStorage:
    """Dictionary-backed implementation of the storage port.

    Records are frozen dataclasses, so handing them out directly cannot leak
    mutations back into the store. Re-putting an existing id keeps its original
    insertion position.
    """

    def __init__(self) -> None:
        self._players: dict[str, Player] = {}
        self._matches: dict[str, Match] = {}
        self._participations: dict[str, MatchParticipation] = {}

    async def get_player(self, player_id: str) -> Player | None:
        return self._players.get(player_id)

    async def list_players(self) -> list[Player]:
        return list(self._players.values())

    async def put_player(self, player: Player) -> None:
        self._players[player.id] = player

    async def delete_player(self, player_id: str) -> None:
        self._players.pop(player_id, None)

    async def get_match(self, match_id: str) -> Match | None:
        return self._matches.get(match_id)

    async def list_matches(self) -> list[Match]:
        return list(self._matches.values())

    async def put_match(self, match: Match) -> None:
        self._matches[match.id] = match

    async def delete_match(self, match_id: str) -> None:
        self._matches.pop(match_id, None)

    async def list_participations_by_match(self, match_id: str) -> list[MatchParticipation]:
        return [row for row in self._participations.values() if row.match_id == match_id]

    async def list_participations_by_player(self, player_id: str) -> list[MatchParticipation]:
        return [row for row in self._participations.values() if row.player_id == player_id]

    async def list_all_participations(self) -> list[MatchParticipation]:
        return list(self._participations.values())

    async def put_participation(self, participation: MatchParticipation) -> None:
        self._participations[participation.id] = participation

    async def delete_participation(self, participation_id: str) -> None:
        self._participations.pop(participation_id, None)

    async def clear_all(self) -> None:
        self._players.clear()
        self._matches.clear()
        self._participations.clear()


__all__ = ["InMemoryStorage"]
