"""players table model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base
from models.mixins import RecordMixin


class PlayerRecord(RecordMixin, Base):
    """One player with the tallies and belief written by recalculation."""

    __tablename__ = "players"
    __table_args__ = (
        CheckConstraint("total_games >= 0", name="ck_players_total_games"),
        CheckConstraint("wins >= 0 AND losses >= 0", name="ck_players_wins_losses"),
    )

    name: Mapped[str] = mapped_column(String(128), nullable=False)
    total_games: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    elo: Mapped[int] = mapped_column(Integer, nullable=False)
    mu: Mapped[float | None] = mapped_column(Float, nullable=True)
    sigma: Mapped[float | None] = mapped_column(Float, nullable=True)
    ordinal: Mapped[float | None] = mapped_column(Float, nullable=True, index=True)
    last_played: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    date_created: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    level: Mapped[int | None] = mapped_column(Integer, nullable=True)
