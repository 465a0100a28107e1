"""Console rendering helpers using rich."""
from __future__ import annotations

from typing import Optional, Sequence

from rich.console import Console
from rich.table import Table

from ..types import BlockSummary, CanonicalOperation, NormalizedHistory
from .activity import RecentActivityItem


def _short(value: Optional[str], width: int = 12) -> str:
    if not value:
        return "-"
    return value if len(value) <= width else f"{value[: width - 1]}…"


def render_operations(
    operations: Sequence[CanonicalOperation],
    *,
    console: Optional[Console] = None,
    limit: int = 50,
) -> None:
    console = console or Console()
    if not operations:
        console.print("[yellow]No operations found.[/yellow]")
        return
    table = Table(title="Activity", show_lines=False)
    table.add_column("Date")
    table.add_column("Type")
    table.add_column("Amount", justify="right")
    table.add_column("From")
    table.add_column("To")
    table.add_column("Block")
    for op in operations[:limit]:
        date = op.block.date.strftime("%Y-%m-%d %H:%M:%S") if op.block is not None and op.block.date else "-"
        label = op.type
        if isinstance(op, BlockSummary):
            label = f"{label} (x{op.grouped_count})"
        table.add_row(
            date,
            label,
            op.formatted_amount,
            _short(op.from_address),
            _short(op.to_address),
            _short(op.block_hash),
        )
    console.print(table)


def render_fetch_hints(history: NormalizedHistory, *, console: Optional[Console] = None) -> None:
    console = console or Console()
    if history.tokens_to_fetch:
        console.print(f"[yellow]Tokens missing metadata:[/yellow] {', '.join(history.tokens_to_fetch)}")
    if history.blocks_to_fetch:
        console.print(f"[yellow]Blocks missing dates:[/yellow] {', '.join(history.blocks_to_fetch)}")


def render_recent(items: Sequence[RecentActivityItem], *, console: Optional[Console] = None) -> None:
    console = console or Console()
    table = Table(title="Recent activity", show_lines=False)
    table.add_column("When")
    table.add_column("Type")
    table.add_column("Amount", justify="right")
    table.add_column("Source")
    for item in items:
        table.add_row(item.block_date or "-", item.type, item.formatted_amount or "-", item.source)
    console.print(table)
