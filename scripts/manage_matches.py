#!/usr/bin/env python3
"""Record, inspect and delete matches."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Annotated, Any

import typer

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from db import DEFAULT_DB_URL, create_db_engine, create_session_factory, ensure_schema
from domain.common import GameLength, Team, parse_datetime
from domain.errors import StatsEngineError, ValidationError
from domain.lifecycle import MatchDraft, MatchLifecycleManager, MatchWriteResult, ParticipantDraft, utc_now
from domain.ratings.config import DEFAULT_CONFIG_PATH, load_rating_config
from domain.ratings.model import RatingModel
from domain.ratings.replay import RecalculationEngine
from repositories.sqlalchemy_store import SqlAlchemyStorage

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Match lifecycle commands.",
)

DbUrlOption = Annotated[
    str,
    typer.Option(
        "--db-url",
        envvar="ATLANTIS_STATS_DB_URL",
        help="Database URL. Defaults to a local SQLite file.",
    ),
]
ConfigOption = Annotated[
    Path,
    typer.Option("--config", help="Rating system TOML config file."),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable INFO logging."),
]


def _parse_match_file(raw: dict[str, Any]) -> tuple[MatchDraft, list[ParticipantDraft]]:
    try:
        return _match_from_file(raw)
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationError.single("match", f"Malformed match file: {exc}") from exc


def _match_from_file(raw: dict[str, Any]) -> tuple[MatchDraft, list[ParticipantDraft]]:
    draft = MatchDraft(
        date=parse_datetime(raw.get("date")) or utc_now(),
        winning_team=Team(raw["winningTeam"]),
        game_length=GameLength(raw.get("gameLength", GameLength.QUICK.value)),
        double_lanes=bool(raw.get("doubleLanes", False)),
    )
    participants = [
        ParticipantDraft(
            player_id=str(item["playerId"]),
            team=Team(item["team"]),
            hero_id=int(item["heroId"]),
            hero_name=str(item.get("heroName", "")),
            hero_roles=tuple(item.get("heroRoles") or ()),
            kills=item.get("kills"),
            deaths=item.get("deaths"),
            assists=item.get("assists"),
            gold_earned=item.get("goldEarned"),
            minion_kills=item.get("minionKills"),
            level=item.get("level"),
        )
        for item in raw.get("players", [])
    ]
    return draft, participants


async def _with_manager(db_url: str, config_path: Path, work):
    config = load_rating_config(config_path)
    engine = create_db_engine(db_url)
    try:
        await ensure_schema(engine)
        storage = SqlAlchemyStorage(create_session_factory(engine))
        manager = MatchLifecycleManager(
            storage,
            engine=RecalculationEngine(storage, RatingModel(config.parameters)),
            limits=config.limits,
        )
        return await work(manager)
    finally:
        await engine.dispose()


def _report(action: str, result: MatchWriteResult) -> None:
    typer.echo(f"{action} match_id={result.match_id}")
    for warning in result.warnings:
        typer.echo(f"warning: {warning.message}", err=True)
    if result.recalculation_error is not None:
        typer.echo(f"warning: ratings are stale, recalculation failed: {result.recalculation_error}", err=True)
        raise typer.Exit(code=1)


@app.command("record")
def record_match(
    match_file: Annotated[
        Path,
        typer.Argument(help="JSON file with date, winningTeam, gameLength and a players list."),
    ],
    config_path: ConfigOption = DEFAULT_CONFIG_PATH,
    db_url: DbUrlOption = DEFAULT_DB_URL,
    verbose: VerboseOption = False,
) -> None:
    """Validate and record one match, then recalculate every rating."""
    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING)
    raw = json.loads(match_file.read_text(encoding="utf-8"))

    try:
        draft, participants = _parse_match_file(raw)

        async def work(manager: MatchLifecycleManager) -> MatchWriteResult:
            return await manager.record_match(draft, participants)

        result = asyncio.run(_with_manager(db_url, config_path, work))
    except StatsEngineError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    _report("recorded", result)


@app.command("delete")
def delete_match(
    match_id: Annotated[str, typer.Argument(help="Id of the match to delete.")],
    config_path: ConfigOption = DEFAULT_CONFIG_PATH,
    db_url: DbUrlOption = DEFAULT_DB_URL,
    verbose: VerboseOption = False,
) -> None:
    """Delete one match with its participations, then recalculate every rating."""
    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING)

    async def work(manager: MatchLifecycleManager) -> MatchWriteResult:
        return await manager.delete_match(match_id)

    try:
        result = asyncio.run(_with_manager(db_url, config_path, work))
    except StatsEngineError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    _report("deleted", result)


@app.command("show")
def show_match(
    match_id: Annotated[str, typer.Argument(help="Id of the match to show.")],
    db_url: DbUrlOption = DEFAULT_DB_URL,
) -> None:
    """Print a match roster and whether it can still be edited."""

    async def work(manager: MatchLifecycleManager):
        editable, reason = await manager.can_edit_match(match_id)
        if reason == "Match not found":
            return None, editable, reason
        return await manager.editable_match(match_id), editable, reason

    details, editable, reason = asyncio.run(_with_manager(db_url, DEFAULT_CONFIG_PATH, work))
    if details is None:
        typer.echo(f"error: {reason}", err=True)
        raise typer.Exit(code=1)

    match = details.match
    typer.echo(
        f"match_id={match.id} date={match.date:%Y-%m-%d %H:%M} "
        f"winner={match.winning_team.value} length={match.game_length.value} "
        f"editable={editable}" + (f" reason={reason}" if reason else "")
    )
    for row in details.participations:
        typer.echo(f"  {row.team.value:<10} {details.player_names[row.player_id]} as {row.hero_name}")


if __name__ == "__main__":
    app()
