from __future__ import annotations

from datetime import datetime, timezone
import logging

from activity_history.grouping.blocks import (
    MULTIPLE_TOKENS,
    group_operations_by_block,
    sort_operations,
    validate_operations,
)
from activity_history.types import BlockRef, BlockSummary, CanonicalOperation, TokenMetadata


def _op(
    op_type: str,
    amount: int,
    *,
    block: str = "B1",
    token: str = "TOK1",
    ticker: str = "TOK",
    decimals: int = 6,
    field_type: str = "decimals",
    row: str = "B1:1",
    ts: int = 1_700_000_000_000,
    frm: str = "acct",
    to: str = "dest",
) -> CanonicalOperation:
    return CanonicalOperation(
        type=op_type,
        block=BlockRef(hash=block),
        raw_amount=str(amount),
        token=token,
        token_ticker=ticker,
        token_decimals=decimals,
        token_metadata=TokenMetadata(ticker=ticker, decimals=decimals, field_type=field_type),
        token_lookup_id=token,
        from_address=frm,
        to_address=to,
        row_id=row,
        block_timestamp=ts,
    )


def test_send_and_receive_net_to_single_summary() -> None:
    ops = [
        _op("SEND", 1_000_000, to="dest-agg", row="B1:1"),
        _op("RECEIVE", 250_000, frm="other", to="acct", row="B1:2"),
    ]
    (summary,) = group_operations_by_block(ops)
    assert isinstance(summary, BlockSummary)
    assert summary.type == "SEND"
    assert summary.formatted_amount == "0.75 TOK"
    assert summary.from_address == "acct"
    assert summary.to_address == "dest-agg"
    assert summary.grouped_combined is True
    assert summary.grouped_count == 2
    assert summary.row_id == "B1:1"
    assert summary.token_ticker == "TOK"


def test_twenty_four_decimal_token() -> None:
    ops = [
        _op("RECEIVE", 2 * 10**24, token="T24", ticker="TK24", decimals=24, frm="other", to="acct", row="B1:1"),
        _op("SEND", 10**24, token="T24", ticker="TK24", decimals=24, row="B1:2"),
    ]
    (summary,) = group_operations_by_block(ops)
    assert summary.type == "RECEIVE"
    assert summary.formatted_amount == "1 TK24"
    assert summary.from_address == "other"


def test_multiple_tokens_override_metadata() -> None:
    ops = [
        _op("SEND", 100, row="B1:1"),
        _op("RECEIVE", 5, token="TOK2", ticker="TOK2", row="B1:2"),
    ]
    (summary,) = group_operations_by_block(ops)
    assert summary.formatted_amount == "0.0001 TOK + 0.000005 TOK2"
    assert summary.type == "SEND"
    assert summary.token_metadata == TokenMetadata(name=MULTIPLE_TOKENS)
    assert summary.token_ticker is None
    assert summary.token_decimals is None


def test_each_token_keeps_its_own_decimal_convention() -> None:
    ops = [
        _op("SEND", 10**9, token="TA", ticker="AT", decimals=9, field_type="decimalPlaces", row="B1:1"),
        _op("RECEIVE", 5 * 10**6, token="TB", ticker="BT", decimals=6, frm="other", to="acct", row="B1:2"),
    ]
    (summary,) = group_operations_by_block(ops)
    assert summary.formatted_amount == "1 AT + 5 BT"
    assert summary.type == "SEND"
    assert summary.token_metadata == TokenMetadata(name=MULTIPLE_TOKENS)


def test_single_contributing_token_supplies_all_token_fields() -> None:
    ops = [
        _op("SWAP", 7, token="TB", ticker="BBB", decimals=6, row="B1:1"),
        _op("SEND", 10**9, token="TA", ticker="AAA", decimals=9, field_type="decimalPlaces", row="B1:2"),
    ]
    (summary,) = group_operations_by_block(ops)
    assert summary.formatted_amount == "1 AAA"
    assert summary.token == "TA"
    assert summary.token_lookup_id == "TA"
    assert summary.token_ticker == "AAA"
    assert summary.token_decimals == 9
    assert summary.token_metadata == TokenMetadata(ticker="AAA", decimals=9, field_type="decimalPlaces")
    assert summary.row_id == "B1:1"


def test_zero_net_block() -> None:
    ops = [_op("SEND", 100, row="B1:1"), _op("RECEIVE", 100, row="B1:2")]
    (summary,) = group_operations_by_block(ops)
    assert summary.type == "Transaction"
    assert summary.formatted_amount == "0 TOK"


def test_non_directional_types_contribute_nothing() -> None:
    ops = [_op("SWAP", 999, row="B1:1"), _op("SEND", 10, row="B1:2")]
    (summary,) = group_operations_by_block(ops)
    assert summary.type == "SEND"
    assert summary.formatted_amount == "0.00001 TOK"


def test_summary_keeps_latest_timestamp() -> None:
    ops = [_op("SEND", 1, ts=1_000, row="B1:1"), _op("SEND", 2, ts=5_000, row="B1:2")]
    (summary,) = group_operations_by_block(ops)
    assert summary.block_timestamp == 5_000
    assert summary.block is not None
    assert summary.block.date == datetime.fromtimestamp(5, tz=timezone.utc)


def test_singletons_and_orphans_pass_through() -> None:
    single = _op("SEND", 1)
    orphan = CanonicalOperation(type="RECEIVE", raw_amount="4", row_id="x")
    result = group_operations_by_block([orphan, single])
    assert result == [single, orphan]
    assert result[0] is single
    assert not any(isinstance(op, BlockSummary) for op in result)


def test_schema_gate_excludes_invalid_items(caplog) -> None:
    items = [
        {"type": "SEND", "block": {"date": "2024-01-01T00:00:00Z"}},
        {"block": {"$hash": "X"}},
        "not an operation",
        {"type": "RECEIVE", "block": {"$hash": "X"}, "rawAmount": "5"},
    ]
    with caplog.at_level(logging.WARNING):
        valid = validate_operations(items)
    assert len(valid) == 1
    assert valid[0].block_hash == "X"
    assert valid[0].amount == 5
    assert "Excluded 3 operation(s)" in caplog.text


def test_sort_is_descending_and_total() -> None:
    a = _op("SEND", 1, block="A", ts=3_000, row="A:1")
    b = _op("SEND", 1, block="B", ts=3_000, row="B:1")
    c = _op("SEND", 1, block="C", ts=1_000, row="C:1")
    b2 = _op("SEND", 2, block="B", ts=3_000, row="B:2")
    undated = CanonicalOperation(type="SEND", block=BlockRef(hash="D"), row_id="D:1")
    dated_by_block = CanonicalOperation(
        type="SEND",
        block=BlockRef(hash="E", date=datetime.fromtimestamp(2, tz=timezone.utc)),
        row_id="E:1",
    )
    ordered = sort_operations([c, undated, a, b, dated_by_block, b2])
    assert [op.row_id for op in ordered] == ["B:2", "B:1", "A:1", "E:1", "C:1", "D:1"]


def test_grouped_output_is_sorted() -> None:
    ops = [
        _op("SEND", 1, block="OLD", ts=1_000, row="OLD:1"),
        _op("SEND", 1, block="NEW", ts=9_000, row="NEW:1"),
        _op("RECEIVE", 3, block="NEW", ts=9_000, row="NEW:2"),
    ]
    result = group_operations_by_block(ops)
    assert [op.block_hash for op in result] == ["NEW", "OLD"]
    assert result[0].type == "RECEIVE"
    assert result[0].formatted_amount == "0.000002 TOK"
