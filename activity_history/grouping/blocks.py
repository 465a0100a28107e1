"""Per-block aggregation and ordering of canonical operations."""
from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Iterable, List, Optional, Union

from pydantic import ValidationError

from .. import utils
from ..amounts import display_amount, placeholder_ticker
from ..types import TRANSACTION_TYPE, BlockSummary, CanonicalOperation, TokenMetadata

LOGGER = logging.getLogger(__name__)

MULTIPLE_TOKENS = "Multiple tokens"

GroupedOperation = Union[CanonicalOperation, BlockSummary]


@dataclass
class TokenNet:
    """Running signed net of one token within a block."""

    token_id: str
    net: int = 0
    decimals: Optional[int] = None
    field_type: Optional[str] = None
    ticker: Optional[str] = None
    # Operation the token fields are taken from; the one that supplied decimals when any did.
    source: Optional[CanonicalOperation] = None

    def add(self, op: CanonicalOperation, signed_amount: int) -> None:
        self.net += signed_amount
        metadata = op.token_metadata
        if self.source is None:
            self.source = op
        if self.decimals is None:
            if op.token_decimals is not None:
                self.decimals = op.token_decimals
                self.field_type = metadata.field_type if metadata is not None else None
                self.source = op
            elif metadata is not None and metadata.decimals is not None:
                self.decimals = metadata.decimals
                self.field_type = metadata.field_type
                self.source = op
        if not self.ticker:
            self.ticker = op.token_ticker or (metadata.ticker if metadata is not None else None)

    def render(self) -> str:
        return display_amount(abs(self.net), self.decimals, self.field_type, self.ticker, token_id=self.token_id)


def validate_operations(items: Iterable[Any]) -> List[CanonicalOperation]:
    """Drop operations that fail the canonical schema.

    A missing ``type`` or a ``block`` without a hash excludes the operation
    from aggregation entirely.
    """

    valid: List[CanonicalOperation] = []
    rejected = 0
    for item in items or ():
        if isinstance(item, CanonicalOperation):
            valid.append(item)
            continue
        try:
            valid.append(CanonicalOperation.model_validate(item))
        except ValidationError as exc:
            rejected += 1
            LOGGER.debug("Rejected operation: %s", exc)
    if rejected:
        LOGGER.warning("Excluded %s operation(s) failing validation; %s kept", rejected, len(valid))
    return valid


def _sign(op_type: str) -> int:
    label = op_type.upper()
    if label == "SEND":
        return -1
    if label == "RECEIVE":
        return 1
    return 0


def _token_key(op: CanonicalOperation) -> str:
    return op.token_lookup_id or op.token or op.token_ticker or ""


def _ticker_of(op: CanonicalOperation) -> str:
    ticker = op.token_ticker or (op.token_metadata.ticker if op.token_metadata is not None else None)
    return ticker or placeholder_ticker(op.token)


def summarize_block(ops: List[CanonicalOperation]) -> BlockSummary:
    """Net several operations of one block into a single summary row."""

    nets: dict[str, TokenNet] = {}
    total = 0
    first_send: Optional[CanonicalOperation] = None
    first_receive: Optional[CanonicalOperation] = None
    for op in ops:
        sign = _sign(op.type)
        signed_amount = op.amount * sign
        total += signed_amount
        key = _token_key(op)
        nets.setdefault(key, TokenNet(token_id=op.token)).add(op, signed_amount)
        if sign < 0 and first_send is None:
            first_send = op
        if sign > 0 and first_receive is None:
            first_receive = op

    base = ops[0]
    contributing = [entry for entry in nets.values() if entry.net != 0]
    if contributing:
        formatted = " + ".join(entry.render() for entry in contributing)
    else:
        formatted = f"0 {_ticker_of(base)}"

    if total < 0:
        op_type, pick = "SEND", first_send
    elif total > 0:
        op_type, pick = "RECEIVE", first_receive
    else:
        op_type, pick = TRANSACTION_TYPE, base
    pick = pick or base

    timestamps = [op.block_timestamp for op in ops if op.block_timestamp is not None]
    latest = max(timestamps) if timestamps else None
    block = base.block
    if block is not None and latest is not None:
        block = block.model_copy(update={"date": utils.ms_to_datetime(latest), "is_placeholder_date": False})

    updates: dict[str, Any] = {
        "type": op_type,
        "block": block,
        "formatted_amount": formatted,
        "from_address": pick.from_address,
        "to_address": pick.to_address,
        "block_timestamp": latest,
        "row_id": base.row_id,
        "grouped_combined": True,
        "grouped_count": len(ops),
    }
    if len(contributing) > 1:
        updates.update(token_ticker=None, token_decimals=None, token_metadata=TokenMetadata(name=MULTIPLE_TOKENS))
    else:
        single = contributing[0] if contributing else nets[_token_key(base)]
        source = single.source or base
        updates.update(
            token=source.token,
            token_lookup_id=source.token_lookup_id,
            token_ticker=single.ticker or source.token_ticker,
            token_decimals=single.decimals,
            token_metadata=source.token_metadata,
        )
    return BlockSummary(**{**dict(base), **updates})


def _sort_key(op: CanonicalOperation) -> tuple[int, str, str]:
    timestamp = op.block_timestamp
    if timestamp is None and op.block is not None and op.block.date is not None:
        timestamp = utils.normalize_timestamp(op.block.date)
    return (timestamp or 0, op.block_hash or "", op.row_id)


def sort_operations(operations: Iterable[CanonicalOperation]) -> List[CanonicalOperation]:
    """Order newest first, breaking ties by block hash then row id, descending."""

    return sorted(operations, key=_sort_key, reverse=True)


def group_operations_by_block(operations: Iterable[Any]) -> List[GroupedOperation]:
    """Aggregate operations sharing a block hash and return them newest first.

    Operations without a block pass through as orphans; single-operation
    blocks pass through unchanged.
    """

    valid = validate_operations(operations)
    by_hash: dict[str, List[CanonicalOperation]] = {}
    orphans: List[GroupedOperation] = []
    for op in valid:
        block_hash = op.block_hash
        if block_hash:
            by_hash.setdefault(block_hash, []).append(op)
        else:
            orphans.append(op)

    grouped: List[GroupedOperation] = list(orphans)
    for ops in by_hash.values():
        grouped.append(ops[0] if len(ops) == 1 else summarize_block(ops))
    LOGGER.debug("Grouped %s operations into %s rows (%s orphans)", len(valid), len(grouped), len(orphans))
    return sort_operations(grouped)
