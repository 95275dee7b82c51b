#!/usr/bin/env python3
"""Create, remove and update roster players."""

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
from domain.errors import StatsEngineError
from domain.lifecycle import MatchLifecycleManager
from domain.players import PlayerRoster
from repositories.sqlalchemy_store import SqlAlchemyStorage

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Player roster commands.",
)

DbUrlOption = Annotated[
    str,
    typer.Option(
        "--db-url",
        envvar="ATLANTIS_STATS_DB_URL",
        help="Database URL. Defaults to a local SQLite file.",
    ),
]


async def _with_roster(db_url: str, work):
    engine = create_db_engine(db_url)
    try:
        await ensure_schema(engine)
        roster = PlayerRoster(MatchLifecycleManager(SqlAlchemyStorage(create_session_factory(engine))))
        return await work(roster)
    finally:
        await engine.dispose()


def _run(db_url: str, work):
    logging.basicConfig(level=logging.WARNING)
    try:
        return asyncio.run(_with_roster(db_url, work))
    except StatsEngineError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


@app.command("create")
def create_player(
    player_id: Annotated[str, typer.Argument(help="New player id.")],
    name: Annotated[str | None, typer.Option("--name", help="Display name (defaults to the id).")] = None,
    db_url: DbUrlOption = DEFAULT_DB_URL,
) -> None:
    """Add a player with the default rating."""
    player = _run(db_url, lambda roster: roster.create_player(player_id, name or player_id))
    typer.echo(f"created player={player.id} rating={PlayerRoster.display_rating(player)}")


@app.command("delete")
def delete_player(
    player_id: Annotated[str, typer.Argument(help="Id of a player with no recorded games.")],
    db_url: DbUrlOption = DEFAULT_DB_URL,
) -> None:
    """Remove a player that has never played."""
    _run(db_url, lambda roster: roster.delete_player(player_id))
    typer.echo(f"deleted player={player_id}")


@app.command("set-level")
def set_level(
    player_id: Annotated[str, typer.Argument(help="Player id.")],
    level: Annotated[int, typer.Argument(help="Level between 1 and 10.")],
    db_url: DbUrlOption = DEFAULT_DB_URL,
) -> None:
    """Set a player's level."""
    player = _run(db_url, lambda roster: roster.set_level(player_id, level))
    typer.echo(f"player={player.id} level={player.level}")


@app.command("inactive")
def list_inactive(db_url: DbUrlOption = DEFAULT_DB_URL) -> None:
    """List players without any recorded game."""
    players = _run(db_url, lambda roster: roster.players_with_no_games())
    if not players:
        typer.echo("Every player has at least one game.")
        return
    for player in players:
        typer.echo(f"{player.id} ({player.name})")


if __name__ == "__main__":
    app()
