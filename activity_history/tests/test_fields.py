from __future__ import annotations

from activity_history.ingestion.fields import (
    LEGACY_OPERATION_CODES,
    extract_fields,
    is_fee_like,
    map_operation_label,
    resolve_reference,
)
from activity_history.ingestion.shapes import Candidate


def _flat(op: dict) -> Candidate:
    return Candidate(op, op)


class Key:
    def __init__(self, text: str) -> None:
        self.text = text

    def __str__(self) -> str:
        return self.text


class Ref:
    def get(self) -> str:
        return "REF1"


def test_resolve_reference_variants() -> None:
    assert resolve_reference("  abc ") == "abc"
    assert resolve_reference({"publicKeyString": "K"}) == "K"
    assert resolve_reference({"account": {"publicKey": {"value": "X"}}}) == "X"
    assert resolve_reference([None, {"id": "Y"}]) == "Y"
    assert resolve_reference(Key("KEY1")) == "KEY1"
    assert resolve_reference(Ref()) == "REF1"
    assert resolve_reference(object()) == ""
    assert resolve_reference(17) == ""


def test_resolve_reference_returns_wrapper_text_verbatim() -> None:
    assert resolve_reference(Key("[object Object]")) == "[object Object]"
    assert resolve_reference(Key("   ")) == ""


def test_resolve_reference_depth_is_bounded() -> None:
    nested: object = "deep"
    for _ in range(10):
        nested = {"value": nested}
    assert resolve_reference(nested) == ""


def test_map_operation_label() -> None:
    assert map_operation_label(0) == "SEND"
    assert map_operation_label("5") == "TOKEN_ADMIN_MODIFY_BALANCE"
    assert map_operation_label(6, LEGACY_OPERATION_CODES) == "TOKEN_ADMIN_SUPPLY"
    assert map_operation_label(7) == "UNKNOWN"
    assert map_operation_label("send") == "SEND"
    assert map_operation_label("weird") == "UNKNOWN"
    assert map_operation_label("") is None
    assert map_operation_label(True) is None


def test_extract_fields_from_container_record() -> None:
    op = {"type": "SEND", "from": "A", "to": {"publicKeyString": "B"}, "token": "T1", "amount": "10"}
    record = {"block": "H1", "timestamp": 1700000000, "operations": [op]}
    fields = extract_fields(Candidate(op, record))
    assert fields is not None
    assert fields.block_hash == "H1"
    assert fields.type_label == "SEND"
    assert (fields.from_address, fields.to_address) == ("A", "B")
    assert fields.token_id == "T1"
    assert fields.amount == "10"
    assert fields.timestamp_ms == 1700000000000


def test_extract_fields_reads_block_object() -> None:
    op = {"block": {"$hash": "H2", "date": "2024-01-01T00:00:00Z"}, "tokenAddress": "T2"}
    fields = extract_fields(_flat(op))
    assert fields is not None
    assert fields.block_hash == "H2"
    assert fields.timestamp_ms == 1704067200000
    assert fields.token_id == "T2"
    assert fields.type_label is None


def test_extract_fields_uses_block_context_account() -> None:
    block = {"$hash": "SB1", "account": "acct", "operations": []}
    op = {"type": "SEND", "to": "dest", "amount": "5"}
    fields = extract_fields(Candidate(op, {"voteStaple": {}}, block))
    assert fields is not None
    assert fields.block_hash == "SB1"
    assert fields.from_address == "acct"
    assert fields.block_account == "acct"


def test_operation_type_fallbacks() -> None:
    legacy = extract_fields(_flat({"block": "H", "operationType": 2}))
    assert legacy is not None and legacy.type_label == "CREATE_IDENTIFIER"

    swap = extract_fields(_flat({"block": "H", "operationSend": {"amount": "1"}, "operationReceive": {"amount": "2"}}))
    assert swap is not None and swap.type_label == "SWAP"

    nested = extract_fields(_flat({"block": "H", "operation": {"type": 1}}))
    assert nested is not None and nested.type_label == "RECEIVE"


def test_missing_hash_drops_candidate() -> None:
    assert extract_fields(_flat({"type": "SEND", "amount": "1"})) is None


def test_fee_detection() -> None:
    assert is_fee_like(_flat({"type": "FEE"}))
    assert is_fee_like(_flat({"operationType": "network_fee"}))
    assert is_fee_like(_flat({"operation": {"type": "fee_payment"}}))
    assert not is_fee_like(_flat({"type": "SEND"}))
