#!/usr/bin/env python3
"""Show per-hero win rates with best teammates and matchups."""

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
from domain.hero_stats import HeroPairing, HeroStatsAggregator
from repositories.sqlalchemy_store import SqlAlchemyStorage

app = typer.Typer(
    add_completion=False,
    no_args_is_help=False,
    help="Hero statistics.",
)


def _format_pairings(pairings: list[HeroPairing]) -> str:
    if not pairings:
        return "-"
    return ", ".join(f"{pairing.hero_name} {pairing.win_rate:.0%} ({pairing.games})" for pairing in pairings)


async def _show_heroes(*, db_url: str, min_games: int, player_id: str | None) -> None:
    engine = create_db_engine(db_url)
    try:
        await ensure_schema(engine)
        aggregator = HeroStatsAggregator(SqlAlchemyStorage(create_session_factory(engine)))

        if player_id is not None:
            stats = await aggregator.player_stats(player_id)
            if stats.player is None:
                raise typer.BadParameter(f"No player with id '{player_id}'", param_hint="--player")
            typer.echo(f"player={stats.player.name} matches={len(stats.participations)}")
            for usage in stats.favorite_heroes:
                typer.echo(f"favorite_hero={usage.hero_name} games={usage.count}")
            for role in stats.favorite_roles:
                typer.echo(f"favorite_role={role.role} games={role.count}")
            return

        if not await aggregator.has_match_data():
            typer.echo("No matches recorded yet.")
            return

        heroes = [hero for hero in await aggregator.hero_stats() if hero.total_games >= min_games]
        heroes.sort(key=lambda hero: (hero.win_rate, hero.total_games), reverse=True)
        for hero in heroes:
            typer.echo(
                f"{hero.hero_name}: games={hero.total_games} wins={hero.wins} "
                f"losses={hero.losses} win_rate={hero.win_rate:.1%}"
            )
            typer.echo(f"  best_teammates: {_format_pairings(hero.best_teammates)}")
            typer.echo(f"  best_against:   {_format_pairings(hero.best_against)}")
            typer.echo(f"  worst_against:  {_format_pairings(hero.worst_against)}")
    finally:
        await engine.dispose()


@app.command()
def show_hero_stats(
    min_games: Annotated[
        int,
        typer.Option("--min-games", help="Minimum games for a hero to be listed."),
    ] = 1,
    player_id: Annotated[
        str | None,
        typer.Option("--player", help="Show one player's favorite heroes and roles instead."),
    ] = None,
    db_url: Annotated[
        str,
        typer.Option(
            "--db-url",
            envvar="ATLANTIS_STATS_DB_URL",
            help="Database URL. Defaults to a local SQLite file.",
        ),
    ] = DEFAULT_DB_URL,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable INFO logging."),
    ] = False,
) -> None:
    """Print hero win rates, synergies and counters."""
    if min_games < 0:
        raise typer.BadParameter("--min-games must be >= 0")

    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING)
    asyncio.run(_show_heroes(db_url=db_url, min_games=min_games, player_id=player_id))


if __name__ == "__main__":
    app()
