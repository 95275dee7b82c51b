"""Storage port consumed by every engine component."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from domain.common import Match, MatchParticipation, Player


@runtime_checkable
class StoragePort(Protocol):
    """Async CRUD contract over players, matches and participations.

    Implementations must give read-your-writes within one logical operation and
    return ``list_matches`` in insertion order.
    """

    async def get_player(self, player_id: str) -> Player | None: ...

    async def list_players(self) -> list[Player]: ...

    async def put_player(self, player: Player) -> None: ...

    async def delete_player(self, player_id: str) -> None: ...

    async def get_match(self, match_id: str) -> Match | None: ...

    async def list_matches(self) -> list[Match]: ...

    async def put_match(self, match: Match) -> None: ...

    async def delete_match(self, match_id: str) -> None: ...

    async def list_participations_by_match(self, match_id: str) -> list[MatchParticipation]: ...

    async def list_participations_by_player(self, player_id: str) -> list[MatchParticipation]: ...

    async def list_all_participations(self) -> list[MatchParticipation]: ...

    async def put_participation(self, participation: MatchParticipation) -> None: ...

    async def delete_participation(self, participation_id: str) -> None: ...

    async def clear_all(self) -> None: ...


__all__ = ["StoragePort"]
