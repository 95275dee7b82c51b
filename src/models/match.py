"""matches table model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from domain.common import GameLength, Team
from models.base import Base
from models.mixins import RecordMixin, value_enum


class MatchRecord(RecordMixin, Base):
    """Match header; the roster lives in match_participations."""

    __tablename__ = "matches"
    __table_args__ = (Index("idx_matches_date", "date"),)

    date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    winning_team: Mapped[Team] = mapped_column(value_enum(Team, "team"), nullable=False)
    game_length: Mapped[GameLength] = mapped_column(value_enum(GameLength, "game_length"), nullable=False)
    double_lanes: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    titan_players: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    atlantean_players: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
