from __future__ import annotations

from activity_history.reporting.activity import (
    clamp_limit,
    merge_activities,
    operation_to_activity_item,
    recent_activity,
    sdk_record_to_activity_item,
)
from activity_history.types import BlockRef, CanonicalOperation


def _op(block: str, ts: int, row: str = "", amount: str = "5") -> CanonicalOperation:
    return CanonicalOperation(
        type="SEND",
        block=BlockRef(hash=block),
        raw_amount=amount,
        formatted_amount=f"{amount} TOK",
        token_ticker="TOK",
        row_id=row,
        block_timestamp=ts,
    )


def test_clamp_limit() -> None:
    assert clamp_limit(0) == 1
    assert clamp_limit(50) == 10
    assert clamp_limit(4) == 4
    assert clamp_limit(None) == 3
    assert clamp_limit("7") == 3


def test_operation_item_ids() -> None:
    item = operation_to_activity_item(_op("H", 1_700_000_000_000), 0)
    assert item.id == "provider:H:SEND:0"
    assert item.block_date == "2023-11-14T22:13:20Z"
    assert operation_to_activity_item(_op("H", 1, row="H:1"), 4).id == "H:1"


def test_sdk_record_item() -> None:
    item = sdk_record_to_activity_item(
        {"id": "s1", "block": "H", "timestamp": 1700000000, "type": "send", "amount": "5", "tokenTicker": "TOK"}, 0
    )
    assert item.type == "SEND"
    assert item.formatted_amount == "5 TOK"
    assert item.timestamp_ms == 1_700_000_000_000
    assert item.source == "sdk"
    assert sdk_record_to_activity_item({}, 2).id == "sdk:unknown:2"


def test_merge_prefers_provider_and_limits() -> None:
    provider = [operation_to_activity_item(_op("H", 1_700_000_000_000, row="H:1"), 0)]
    sdk = [
        sdk_record_to_activity_item(
            {"id": "s1", "block": "H", "timestamp": 1700000000, "type": "SEND", "amount": "5", "tokenTicker": "TOK"}, 0
        ),
        sdk_record_to_activity_item({"id": "s2", "block": "G", "timestamp": 1600000000, "amount": "1"}, 1),
    ]
    merged = merge_activities(provider, sdk, 10)
    assert [item.id for item in merged] == ["H:1", "s2"]
    assert merged[0].source == "provider"
    assert len(merge_activities(provider, sdk, 1)) == 1


def test_recent_activity_orders_newest_first() -> None:
    ops = [_op("A", 1_000, row="A:1"), _op("B", 3_000, row="B:1"), _op("C", 2_000, row="C:1")]
    items = recent_activity(ops, limit=2)
    assert [item.id for item in items] == ["B:1", "C:1"]
