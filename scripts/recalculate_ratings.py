#!/usr/bin/env python3
"""Replay the full match history and overwrite every player's ratings and tallies."""

from __future__ import annotations

import asyncio
import json
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
from domain.ratings.config import DEFAULT_CONFIG_PATH, load_rating_config
from domain.ratings.model import RatingModel
from domain.ratings.replay import RecalculationEngine
from repositories.sqlalchemy_store import SqlAlchemyStorage

app = typer.Typer(
    add_completion=False,
    no_args_is_help=False,
    help="Player rating recalculation.",
)


async def _recalculate(*, db_url: str, config_path: Path, dry_run: bool, show_history: bool) -> None:
    config = load_rating_config(config_path)
    engine = create_db_engine(db_url)
    try:
        await ensure_schema(engine)
        storage = SqlAlchemyStorage(create_session_factory(engine))
        recalculation = RecalculationEngine(storage, RatingModel(config.parameters))

        summary = await recalculation.recalculate_all(dry_run=dry_run)
        prefix = "[dry-run] " if dry_run else "completed "
        typer.echo(
            f"{prefix}config={config.file_path.name} "
            f"rating_system={config.name} "
            f"players={summary.players} "
            f"processed_matches={summary.processed_matches} "
            f"skipped_matches={summary.skipped_matches} "
            f"updated_players={summary.updated_players}"
        )
        if dry_run:
            typer.echo(f"[dry-run] settings={json.dumps(config.as_config_json(), sort_keys=True)}")

        if show_history:
            for snapshot in await recalculation.historical_ratings():
                ratings = " ".join(f"{player_id}={rating}" for player_id, rating in sorted(snapshot.ratings.items()))
                typer.echo(f"match={snapshot.match_number} date={snapshot.date:%Y-%m-%d} {ratings}")
    finally:
        await engine.dispose()


@app.command()
def recalculate_ratings(
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
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Replay the history without writing player rows."),
    ] = False,
    show_history: Annotated[
        bool,
        typer.Option("--show-history", help="Print every player's rating after each match."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable INFO logging."),
    ] = False,
) -> None:
    """Recompute every player's rating and win/loss tallies from scratch."""
    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING)
    asyncio.run(
        _recalculate(db_url=db_url, config_path=config_path, dry_run=dry_run, show_history=show_history)
    )


if __name__ == "__main__":
    app()
