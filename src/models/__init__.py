"""ORM models."""

from models.base import Base
from models.match import MatchRecord
from models.match_participation import MatchParticipationRecord
from models.player import PlayerRecord

__all__ = [
    "Base",
    "MatchParticipationRecord",
    "MatchRecord",
    "PlayerRecord",
]
