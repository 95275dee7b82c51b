"""match_participations table model."""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from domain.common import Team
from models.base import Base
from models.mixins import RecordMixin, value_enum


class MatchParticipationRecord(RecordMixin, Base):
    """One player's row for one match (team, hero, optional counters)."""

    __tablename__ = "match_participations"
    __table_args__ = (
        Index("idx_match_participations_match", "match_id"),
        Index("idx_match_participations_player", "player_id"),
    )

    match_id: Mapped[str] = mapped_column(String(64), nullable=False)
    player_id: Mapped[str] = mapped_column(String(64), nullable=False)
    team: Mapped[Team] = mapped_column(value_enum(Team, "team"), nullable=False)
    hero_id: Mapped[int] = mapped_column(Integer, nullable=False)
    hero_name: Mapped[str] = mapped_column(String(128), nullable=False)
    hero_roles: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    kills: Mapped[int | None] = mapped_column(Integer, nullable=True)
    deaths: Mapped[int | None] = mapped_column(Integer, nullable=True)
    assists: Mapped[int | None] = mapped_column(Integer, nullable=True)
    gold_earned: Mapped[int | None] = mapped_column(Integer, nullable=True)
    minion_kills: Mapped[int | None] = mapped_column(Integer, nullable=True)
    level: Mapped[int | None] = mapped_column(Integer, nullable=True)
