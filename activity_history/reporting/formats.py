"""Output writers for CSV, Parquet and JSON exports."""
from __future__ import annotations

from pathlib import Path
from typing import Sequence

import pandas as pd

from .. import utils
from ..types import BlockSummary, CanonicalOperation

OPERATION_COLUMNS = [
    "row_id",
    "type",
    "block_hash",
    "block_date",
    "block_timestamp",
    "from",
    "to",
    "token",
    "token_ticker",
    "token_decimals",
    "raw_amount",
    "formatted_amount",
    "grouped_count",
]


def _operation_row(op: CanonicalOperation) -> dict:
    return {
        "row_id": op.row_id,
        "type": op.type,
        "block_hash": op.block_hash,
        "block_date": op.block.date.isoformat() if op.block is not None and op.block.date else None,
        "block_timestamp": op.block_timestamp,
        "from": op.from_address,
        "to": op.to_address,
        "token": op.token,
        "token_ticker": op.token_ticker,
        "token_decimals": op.token_decimals,
        # Amounts can exceed int64; keep them as text.
        "raw_amount": op.raw_amount,
        "formatted_amount": op.formatted_amount,
        "grouped_count": op.grouped_count if isinstance(op, BlockSummary) else 1,
    }


def operations_frame(operations: Sequence[CanonicalOperation]) -> pd.DataFrame:
    if not operations:
        return pd.DataFrame(columns=OPERATION_COLUMNS)
    return pd.DataFrame([_operation_row(op) for op in operations], columns=OPERATION_COLUMNS)


def write_csv(path: Path, operations: Sequence[CanonicalOperation]) -> None:
    df = operations_frame(operations)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)


def write_parquet(path: Path, operations: Sequence[CanonicalOperation]) -> None:
    df = operations_frame(operations)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_parquet(path, index=False)


def write_json(path: Path, operations: Sequence[CanonicalOperation]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [op.model_dump(mode="json", by_alias=True) for op in operations]
    path.write_text(utils.json_dumps(payload, indent=True), encoding="utf-8")


def export_operations(outdir: Path, operations: Sequence[CanonicalOperation], *, fmt: str = "csv") -> list[Path]:
    if fmt not in ("csv", "parquet", "json", "both"):
        raise ValueError(f"Unsupported export format: {fmt}")
    outdir.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []
    if fmt in ("csv", "both"):
        write_csv(outdir / "operations.csv", operations)
        written.append(outdir / "operations.csv")
    if fmt in ("parquet", "both"):
        write_parquet(outdir / "operations.parquet", operations)
        written.append(outdir / "operations.parquet")
    if fmt == "json":
        write_json(outdir / "operations.json", operations)
        written.append(outdir / "operations.json")
    return written
