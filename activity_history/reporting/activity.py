"""Compact recent-activity feed built from grouped operations."""
from __future__ import annotations

import logging
from typing import Any, Iterable, List, Literal, Optional

from pydantic import BaseModel, ConfigDict

from .. import utils
from ..types import CanonicalOperation

LOGGER = logging.getLogger(__name__)

DEFAULT_LIMIT = 3
MAX_LIMIT = 10

ActivitySource = Literal["provider", "sdk"]


class RecentActivityItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: str
    formatted_amount: Optional[str] = None
    amount: Optional[str] = None
    token_ticker: Optional[str] = None
    timestamp_ms: Optional[int] = None
    block_hash: Optional[str] = None
    block_date: Optional[str] = None
    source: ActivitySource = "provider"


def clamp_limit(limit: Any) -> int:
    """Clamp a requested item count to ``1..MAX_LIMIT``."""

    if isinstance(limit, bool) or not isinstance(limit, (int, float)) or limit != limit:
        return DEFAULT_LIMIT
    return max(1, min(MAX_LIMIT, int(limit)))


def _iso(ms: Optional[int]) -> Optional[str]:
    if ms is None:
        return None
    moment = utils.ms_to_datetime(ms)
    return moment.isoformat().replace("+00:00", "Z") if moment is not None else None


def _ticker(op: CanonicalOperation) -> Optional[str]:
    if op.token_ticker and op.token_ticker.strip():
        return op.token_ticker
    if op.token_metadata is not None:
        return op.token_metadata.ticker
    return None


def operation_to_activity_item(op: CanonicalOperation, index: int, source: ActivitySource = "provider") -> RecentActivityItem:
    block_hash = op.block_hash
    timestamp_ms = op.block_timestamp
    if timestamp_ms is None and op.block is not None and op.block.date is not None:
        timestamp_ms = utils.normalize_timestamp(op.block.date)
    item_id = op.row_id or f"{source}:{block_hash or 'unknown'}:{op.type or 'TX'}:{index}"
    ticker = _ticker(op)
    formatted = op.formatted_amount or (f"{op.raw_amount} {ticker}" if ticker else op.raw_amount)
    return RecentActivityItem(
        id=item_id,
        type=op.type,
        formatted_amount=formatted,
        amount=op.raw_amount,
        token_ticker=ticker,
        timestamp_ms=timestamp_ms,
        block_hash=block_hash,
        block_date=_iso(timestamp_ms),
        source=source,
    )


def sdk_record_to_activity_item(record: Any, index: int) -> RecentActivityItem:
    """Convert a lightweight SDK history record (``id``, ``block``, ``amount``...)."""

    timestamp_ms = utils.normalize_timestamp(utils.field(record, "timestamp"))
    block_hash = utils.coerce_string(utils.field(record, "block"))
    amount = utils.coerce_string(utils.field(record, "amount"))
    ticker = utils.coerce_string(utils.field(record, "tokenTicker"))
    label = utils.coerce_string(utils.field(record, "type"))
    return RecentActivityItem(
        id=utils.coerce_string(utils.field(record, "id")) or f"sdk:{block_hash or 'unknown'}:{index}",
        type=label.upper() if label else "TRANSACTION",
        formatted_amount=f"{amount} {ticker}" if amount and ticker else amount,
        amount=amount,
        token_ticker=ticker,
        timestamp_ms=timestamp_ms,
        block_hash=block_hash,
        block_date=_iso(timestamp_ms),
        source="sdk",
    )


def _dedupe_key(item: RecentActivityItem) -> tuple[str, str, str, str, str]:
    return (
        item.block_hash or "",
        item.type or "",
        item.amount or "",
        item.token_ticker or "",
        str(item.timestamp_ms) if item.timestamp_ms is not None else "",
    )


def sort_items(items: Iterable[RecentActivityItem]) -> List[RecentActivityItem]:
    return sorted(items, key=lambda item: (item.timestamp_ms or 0, item.id), reverse=True)


def merge_activities(
    provider_items: Iterable[RecentActivityItem],
    sdk_items: Iterable[RecentActivityItem],
    limit: Any = DEFAULT_LIMIT,
) -> List[RecentActivityItem]:
    """Merge both feeds, preferring provider items when the same activity appears twice."""

    seen: set[tuple[str, str, str, str, str]] = set()
    deduped: List[RecentActivityItem] = []
    for item in [*sort_items(provider_items), *sort_items(sdk_items)]:
        key = _dedupe_key(item)
        if key in seen:
            continue
        seen.add(key)
        deduped.append(item)
    result = sort_items(deduped)[: clamp_limit(limit)]
    LOGGER.debug("Merged %s activity items, returning %s", len(deduped), len(result))
    return result


def recent_activity(
    operations: Iterable[CanonicalOperation],
    sdk_records: Iterable[Any] = (),
    limit: Any = DEFAULT_LIMIT,
) -> List[RecentActivityItem]:
    provider_items = [operation_to_activity_item(op, index) for index, op in enumerate(operations)]
    sdk_items = [sdk_record_to_activity_item(record, index) for index, record in enumerate(sdk_records or ())]
    return merge_activities(provider_items, sdk_items, limit)
