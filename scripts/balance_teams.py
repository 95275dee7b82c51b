#!/usr/bin/env python3
"""Suggest balanced teams for a group of players and estimate the win chance."""

from __future__ import annotations

import asyncio
import logging
import sys
from enum import Enum
from pathlib import Path
from typing import Annotated

import typer

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from db import DEFAULT_DB_URL, create_db_engine, create_session_factory, ensure_schema
from domain.matchmaking import MatchmakingAdvisor
from domain.ratings.config import DEFAULT_CONFIG_PATH, load_rating_config
from domain.ratings.model import RatingModel
from repositories.sqlalchemy_store import SqlAlchemyStorage

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Team balancing and win probability.",
)


class BalanceBy(str, Enum):
    SKILL = "skill"
    EXPERIENCE = "experience"


async def _balance(*, db_url: str, config_path: Path, player_ids: list[str], balance_by: BalanceBy) -> None:
    config = load_rating_config(config_path)
    engine = create_db_engine(db_url)
    try:
        await ensure_schema(engine)
        advisor = MatchmakingAdvisor(SqlAlchemyStorage(create_session_factory(engine)), RatingModel(config.parameters))

        if balance_by is BalanceBy.SKILL:
            split = await advisor.balance_by_skill(player_ids)
        else:
            split = await advisor.balance_by_experience(player_ids)

        if split.is_empty:
            typer.echo("Need at least 4 known players to balance teams.")
            raise typer.Exit(code=1)

        estimate = await advisor.win_probability_with_ci(split.team_a, split.team_b)
        typer.echo(
            f"team_a={','.join(split.team_a)} "
            f"win={estimate.team_a}% ci=[{estimate.team_a_low}%, {estimate.team_a_high}%]"
        )
        typer.echo(
            f"team_b={','.join(split.team_b)} "
            f"win={estimate.team_b}% ci=[{estimate.team_b_low}%, {estimate.team_b_high}%]"
        )
    finally:
        await engine.dispose()


@app.command()
def balance_teams(
    player_ids: Annotated[
        list[str],
        typer.Argument(help="Ids of the players who want to play."),
    ],
    balance_by: Annotated[
        BalanceBy,
        typer.Option("--by", help="Balance on display rating or on games played."),
    ] = BalanceBy.SKILL,
    db_url: Annotated[
        str,
        typer.Option(
            "--db-url",
            envvar="ATLANTIS_STATS_DB_URL",
            help="Database URL. Defaults to a local SQLite file.",
        ),
    ] = DEFAULT_DB_URL,
    config_path: Annotated[
        Path,
        typer.Option("--config", help="Rating system TOML config file."),
    ] = DEFAULT_CONFIG_PATH,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable INFO logging."),
    ] = False,
) -> None:
    """Split the given players into two teams and print each side's win chance."""
    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING)
    asyncio.run(_balance(db_url=db_url, config_path=config_path, player_ids=player_ids, balance_by=balance_by))


if __name__ == "__main__":
    app()
