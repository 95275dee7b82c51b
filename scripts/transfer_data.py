#!/usr/bin/env python3
"""Export the whole dataset to JSON or import a JSON snapshot."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Annotated, Literal

import typer

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from db import DEFAULT_DB_URL, create_db_engine, create_session_factory, ensure_schema
from domain.lifecycle import MatchLifecycleManager
from domain.ratings.config import DEFAULT_CONFIG_PATH, load_rating_config
from domain.ratings.model import RatingModel
from domain.ratings.replay import RecalculationEngine
from domain.transfer import DatasetTransfer, snapshot_from_dict, snapshot_to_dict
from repositories.sqlalchemy_store import SqlAlchemyStorage

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Dataset export/import.",
)

DbUrlOption = Annotated[
    str,
    typer.Option(
        "--db-url",
        envvar="ATLANTIS_STATS_DB_URL",
        help="Database URL. Defaults to a local SQLite file.",
    ),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable INFO logging."),
]


async def _with_transfer(db_url: str, config_path: Path, work):
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
        return await work(DatasetTransfer(manager))
    finally:
        await engine.dispose()


@app.command("export")
def export_data(
    output: Annotated[
        Path,
        typer.Argument(help="Destination JSON file."),
    ],
    db_url: DbUrlOption = DEFAULT_DB_URL,
    verbose: VerboseOption = False,
) -> None:
    """Write every player, match and participation to a JSON snapshot."""
    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING)

    async def work(transfer: DatasetTransfer):
        return await transfer.export()

    snapshot = asyncio.run(_with_transfer(db_url, DEFAULT_CONFIG_PATH, work))
    output.write_text(json.dumps(snapshot_to_dict(snapshot), indent=2), encoding="utf-8")
    typer.echo(
        f"exported players={len(snapshot.players)} "
        f"matches={len(snapshot.matches)} "
        f"participations={len(snapshot.match_participations)} "
        f"file={output}"
    )


@app.command("import")
def import_data(
    source: Annotated[
        Path,
        typer.Argument(help="JSON snapshot to load."),
    ],
    mode: Annotated[
        str,
        typer.Option("--mode", help="'replace' wipes storage first; 'merge' only adds new ids."),
    ] = "replace",
    config_path: Annotated[
        Path,
        typer.Option("--config", help="Rating system TOML config file."),
    ] = DEFAULT_CONFIG_PATH,
    db_url: DbUrlOption = DEFAULT_DB_URL,
    verbose: VerboseOption = False,
) -> None:
    """Load a JSON snapshot and recalculate every rating."""
    if mode not in ("replace", "merge"):
        raise typer.BadParameter("--mode must be 'replace' or 'merge'")
    if not source.exists():
        raise typer.BadParameter(f"File not found: {source}")

    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING)
    snapshot = snapshot_from_dict(json.loads(source.read_text(encoding="utf-8")))
    import_mode: Literal["replace", "merge"] = "replace" if mode == "replace" else "merge"

    async def work(transfer: DatasetTransfer):
        return await transfer.import_snapshot(snapshot, mode=import_mode)

    result = asyncio.run(_with_transfer(db_url, config_path, work))
    typer.echo(
        f"imported mode={result.mode} "
        f"players_added={result.players_added} "
        f"matches_added={result.matches_added} "
        f"participations_added={result.participations_added}"
    )
    if result.recalculation_error is not None:
        typer.echo(f"warning: ratings are stale, recalculation failed: {result.recalculation_error}", err=True)
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
