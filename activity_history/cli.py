"""Typer CLI for the activity_history application."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from . import utils
from .config import AppSettings, load_settings
from .grouping.blocks import group_operations_by_block
from .ingestion.normalize import normalize_history_records
from .ingestion.shapes import unwrap_history_page
from .meta.cache import TokenMetaCache
from .reporting import console as console_report
from .reporting import formats
from .reporting.activity import recent_activity
from .types import NormalizedHistory, TokenMetadata

app = typer.Typer(help="Normalize and aggregate ledger activity history")

LOGGER = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


def _settings(config: Optional[Path], account: Optional[str], metadata: Optional[Path]) -> AppSettings:
    overrides: dict[str, Any] = {}
    if account:
        overrides["account"] = account
    if metadata is not None:
        overrides["metadata_cache_path"] = metadata
    settings = load_settings(config, overrides)
    _configure_logging(settings.log_level)
    return settings


def _load_records(path: Path) -> list[Any]:
    try:
        document = utils.read_json_document(path)
    except ValueError as exc:
        raise typer.BadParameter(f"{path} is neither JSON nor JSON lines: {exc}") from exc
    page = unwrap_history_page(document)
    if page.has_more:
        LOGGER.info("History page has more records after cursor %s", page.cursor)
    return page.records


def _run(input_path: Path, settings: AppSettings) -> tuple[NormalizedHistory, list]:
    records = _load_records(input_path)
    cache = TokenMetaCache.load(settings.metadata_cache_path)
    history = normalize_history_records(
        records,
        settings.account,
        cache.lookup(),
        base_token=settings.base_token,
    )
    return history, group_operations_by_block(history.operations)


@app.command()
def normalize(
    input_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="History JSON or JSONL file"),
    account: Optional[str] = typer.Option(None, "--account", "-a", help="Viewing account"),
    metadata: Optional[Path] = typer.Option(None, "--metadata", help="Token metadata cache JSON"),
    config: Optional[Path] = typer.Option(None, "--config", help="Config YAML"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
) -> None:
    """Normalize a history dump and show the aggregated operations."""

    settings = _settings(config, account, metadata)
    history, grouped = _run(input_path, settings)
    if as_json:
        payload = {
            "operations": [op.model_dump(mode="json", by_alias=True) for op in grouped],
            "tokensToFetch": history.tokens_to_fetch,
            "blocksToFetch": history.blocks_to_fetch,
        }
        typer.echo(utils.json_dumps(payload, indent=True))
        return
    console_report.render_operations(grouped)
    console_report.render_fetch_hints(history)


@app.command()
def recent(
    input_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="History JSON or JSONL file"),
    account: Optional[str] = typer.Option(None, "--account", "-a", help="Viewing account"),
    metadata: Optional[Path] = typer.Option(None, "--metadata", help="Token metadata cache JSON"),
    config: Optional[Path] = typer.Option(None, "--config", help="Config YAML"),
    limit: Optional[int] = typer.Option(None, "--limit", help="Number of items (1-10)"),
) -> None:
    """Show the most recent activity items."""

    settings = _settings(config, account, metadata)
    _, grouped = _run(input_path, settings)
    items = recent_activity(grouped, limit=limit if limit is not None else settings.recent_limit)
    console_report.render_recent(items)


@app.command()
def export(
    input_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="History JSON or JSONL file"),
    outdir: Path = typer.Option(Path("./reports"), "--outdir", help="Output directory"),
    fmt: str = typer.Option("csv", "--format", help="csv, parquet, json or both", show_default=True),
    account: Optional[str] = typer.Option(None, "--account", "-a", help="Viewing account"),
    metadata: Optional[Path] = typer.Option(None, "--metadata", help="Token metadata cache JSON"),
    config: Optional[Path] = typer.Option(None, "--config", help="Config YAML"),
) -> None:
    """Export aggregated operations to files."""

    settings = _settings(config, account, metadata)
    _, grouped = _run(input_path, settings)
    try:
        written = formats.export_operations(outdir, grouped, fmt=fmt)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    typer.echo(f"Wrote {len(grouped)} operation(s) to {', '.join(str(p) for p in written)}")


@app.command("meta-set")
def meta_set(
    token: str = typer.Argument(..., help="Token identifier"),
    ticker: Optional[str] = typer.Option(None, "--ticker"),
    decimals: Optional[int] = typer.Option(None, "--decimals", min=0),
    field_type: str = typer.Option("decimals", "--field-type", help="decimals or decimalPlaces"),
    name: Optional[str] = typer.Option(None, "--name"),
    metadata: Optional[Path] = typer.Option(None, "--metadata", help="Token metadata cache JSON"),
    config: Optional[Path] = typer.Option(None, "--config", help="Config YAML"),
) -> None:
    """Record token metadata in the local cache."""

    if field_type not in ("decimals", "decimalPlaces"):
        raise typer.BadParameter("--field-type must be 'decimals' or 'decimalPlaces'")
    settings = _settings(config, None, metadata)
    cache = TokenMetaCache.load(settings.metadata_cache_path)
    cache.set(token, TokenMetadata(name=name, ticker=ticker, decimals=decimals, field_type=field_type))
    cache.save(settings.metadata_cache_path)
    typer.echo(f"Stored metadata for {token}")
