#!/usr/bin/env python3
"""Show the player leaderboard by display rating."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Annotated

import typer

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from db import DEFAULT_DB_URL, create_db_engine, create_session_factory, ensure_schema
from domain.matchmaking import player_display_rating
from domain.ratings.config import DEFAULT_CONFIG_PATH, load_rating_config
from domain.ratings.model import RatingModel
from domain.ratings.replay import RecalculationEngine
from repositories.sqlalchemy_store import SqlAlchemyStorage

app = typer.Typer(
    add_completion=False,
    no_args_is_help=False,
    help="Query the player leaderboard.",
)


async def _show_top(*, db_url: str, config_path: Path, top_n: int, min_games: int, fresh: bool) -> None:
    engine = create_db_engine(db_url)
    try:
        await ensure_schema(engine)
        storage = SqlAlchemyStorage(create_session_factory(engine))
        players = [player for player in await storage.list_players() if player.total_games >= min_games]

        if fresh:
            config = load_rating_config(config_path)
            ratings = await RecalculationEngine(storage, RatingModel(config.parameters)).current_ratings()
        else:
            ratings = {player.id: player_display_rating(player) for player in players}

        players.sort(key=lambda player: ratings.get(player.id, player.elo), reverse=True)
        if not players:
            typer.echo("No players matched the filters.")
            return

        typer.echo("rank | player | rating | games | wins | losses | win_rate")
        for rank, player in enumerate(players[:top_n], start=1):
            win_rate = player.wins / player.total_games if player.total_games else 0.0
            typer.echo(
                f"{rank:>4} | {player.name} | {ratings.get(player.id, player.elo)} | "
                f"{player.total_games} | {player.wins} | {player.losses} | {win_rate:.1%}"
            )
    finally:
        await engine.dispose()


@app.command()
def show_player_top(
    top_n: Annotated[
        int,
        typer.Option("--top-n", help="Number of players to return."),
    ] = 20,
    min_games: Annotated[
        int,
        typer.Option("--min-games", help="Minimum games played to be listed."),
    ] = 0,
    fresh: Annotated[
        bool,
        typer.Option("--fresh", help="Rank by a fresh in-memory replay instead of the stored ratings."),
    ] = False,
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
        typer.Option("--config", help="Rating system TOML config file (used with --fresh)."),
    ] = DEFAULT_CONFIG_PATH,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable INFO logging."),
    ] = False,
) -> None:
    """Print top players by display rating."""
    if top_n <= 0:
        raise typer.BadParameter("--top-n must be greater than 0")
    if min_games < 0:
        raise typer.BadParameter("--min-games must be >= 0")

    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING)
    asyncio.run(_show_top(db_url=db_url, config_path=config_path, top_n=top_n, min_games=min_games, fresh=fresh))


if __name__ == "__main__":
    app()
