"""Typed field extraction from loosely shaped operation candidates."""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

from .. import utils
from ..types import OPERATION_TYPES, TRANSACTION_TYPE
from .shapes import Candidate

MAX_REFERENCE_DEPTH = 4

ADDRESS_KEYS = (
    "publicKeyString",
    "publicKey",
    "address",
    "account",
    "token",
    "tokenAccount",
    "tokenAddress",
    "tokenPublicKey",
    "tokenId",
    "value",
    "id",
    "$hash",
    "hash",
)

TOKEN_KEYS = (
    "token",
    "tokenAddress",
    "tokenId",
    "tokenPublicKey",
    "tokenPublicKeyString",
    "tokenAccount",
    "tokenIdentifier",
    "asset",
    "assetId",
    "currency",
    "currencyId",
    "mint",
    "contract",
    "target",
    "identifier",
)

BLOCK_HASH_KEYS = ("$hash", "hash", "blockHash", "id")
NESTED_OPERATION_KEYS = ("operation", "operationSend", "operationReceive", "operationForward")

FROM_KEYS = ("from", "sender", "source", "src")
TO_KEYS = ("to", "toAccount", "recipient", "receiver", "dest", "destination")
AMOUNT_KEYS = ("amount", "rawAmount")
TIMESTAMP_KEYS = ("blockTimestamp", "timestamp", "date", "createdAt")
BLOCK_DATE_KEYS = ("date", "createdAt", "timestamp")

# Codes used by history providers for the ``type`` field.
OPERATION_CODES = {
    0: "SEND",
    1: "RECEIVE",
    2: "SWAP",
    3: "SWAP_FORWARD",
    4: "TOKEN_ADMIN_SUPPLY",
    5: "TOKEN_ADMIN_MODIFY_BALANCE",
}

# Codes used by the wallet extension for the ``operationType`` field.
LEGACY_OPERATION_CODES = {
    0: "SEND",
    1: "RECEIVE",
    2: "CREATE_IDENTIFIER",
    3: "SET_REP",
    4: "TOKEN_ADMIN_MODIFY_BALANCE",
    6: "TOKEN_ADMIN_SUPPLY",
    8: "SET_INFO",
    9: "UPDATE_PERMISSIONS",
}


@dataclass(frozen=True)
class ExtractedFields:
    block_hash: str
    type_label: Optional[str]
    from_address: str
    to_address: str
    token_id: str
    amount: Any
    timestamp_ms: Optional[int]
    block_account: str
    fee_like: bool


def resolve_reference(value: Any, keys: Sequence[str] = ADDRESS_KEYS, depth: int = 0) -> str:
    """Resolve a string or reference-like wrapper to a string.

    Wrappers may expose one of ``keys``, a zero-argument ``get()`` accessor or
    a meaningful ``__str__``.  Recursion stops after ``MAX_REFERENCE_DEPTH``
    levels; anything unresolvable yields ``""``.
    """

    if isinstance(value, str):
        return value.strip()
    if value is None or depth > MAX_REFERENCE_DEPTH:
        return ""
    if isinstance(value, (list, tuple)):
        for entry in value:
            resolved = resolve_reference(entry, keys, depth + 1)
            if resolved:
                return resolved
        return ""
    if not utils.is_record(value):
        return ""
    try:
        for key in keys:
            resolved = resolve_reference(utils.field(value, key), keys, depth + 1)
            if resolved:
                return resolved
        if isinstance(value, Mapping):
            return ""
        getter = getattr(value, "get", None)
        if callable(getter):
            try:
                resolved = resolve_reference(getter(), keys, depth + 1)
            except TypeError:
                resolved = ""
            if resolved:
                return resolved
        if type(value).__str__ is not object.__str__:
            text = str(value).strip()
            if text:
                return text
    except Exception:
        return ""
    return ""


def _nested_operations(operation: Any) -> list[Any]:
    return [
        nested
        for nested in (utils.field(operation, key) for key in NESTED_OPERATION_KEYS)
        if utils.is_record(nested)
    ]


def _values(sources: Iterable[Any], names: Sequence[str]) -> list[Any]:
    values = []
    for source in sources:
        if not utils.is_record(source):
            continue
        for name in names:
            value = utils.field(source, name)
            if value is not None:
                values.append(value)
    return values


def _first_reference(values: Iterable[Any], keys: Sequence[str] = ADDRESS_KEYS) -> str:
    for value in values:
        resolved = resolve_reference(value, keys)
        if resolved:
            return resolved
    return ""


def _chain(candidate: Candidate, names: Sequence[str], *, record_names: Optional[Sequence[str]] = None) -> list[Any]:
    """Collect values of ``names``: operation, nested operations, then record."""

    op = candidate.operation
    values = _values([op], names)
    values += _values(_nested_operations(op), names)
    if candidate.record is not op:
        values += _values([candidate.record], record_names or names)
    return values


def resolve_block_hash(candidate: Candidate) -> str:
    op = candidate.operation
    values = _values([op], ("block", "blockHash"))
    values += _values(_nested_operations(op), ("block", "blockHash"))
    if candidate.block is not None:
        values.append(candidate.block)
    values += _values([candidate.record], ("block", "blockHash", "hash", "id"))
    for value in values:
        resolved = utils.coerce_string(value) if not isinstance(value, str) else value.strip()
        if not resolved:
            resolved = resolve_reference(value, BLOCK_HASH_KEYS)
        if resolved:
            return resolved
    return ""


def _code(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def map_operation_label(value: Any, codes: Mapping[int, str] = OPERATION_CODES) -> Optional[str]:
    """Map a numeric code or a textual label to a known operation type.

    Returns ``None`` for empty input and ``"UNKNOWN"`` for unmapped values.
    """

    code = _code(value)
    if code is not None:
        return codes.get(code, "UNKNOWN")
    if not isinstance(value, str) or not value.strip():
        return None
    label = value.strip().upper()
    if label == TRANSACTION_TYPE.upper():
        return TRANSACTION_TYPE
    return label if label in OPERATION_TYPES else "UNKNOWN"


def resolve_operation_type(candidate: Candidate) -> Optional[str]:
    """Resolve the operation label; ``None`` when the candidate carries no hint."""

    op = candidate.operation
    for value in _chain(candidate, ("type",)):
        label = map_operation_label(value)
        if label is not None:
            return label
    for value in _chain(candidate, ("operationType",)):
        label = map_operation_label(value, LEGACY_OPERATION_CODES)
        if label is not None:
            return label
    if utils.is_record(utils.field(op, "operationSend")) and utils.is_record(utils.field(op, "operationReceive")):
        return "SWAP"
    return None


def is_fee_like(candidate: Candidate) -> bool:
    op = candidate.operation
    labels = [utils.field(op, "type"), utils.field(op, "operationType")]
    labels += [utils.field(nested, "type") for nested in _nested_operations(op)]
    return any(isinstance(label, str) and "FEE" in label.upper() for label in labels)


def resolve_from(candidate: Candidate) -> str:
    op = candidate.operation
    values = _values([op], FROM_KEYS + ("account",))
    values += _values(_nested_operations(op), ("from",))
    values += _values([candidate.block], ("account",))
    if candidate.record is not op:
        values += _values([candidate.record], FROM_KEYS + ("account",))
    return _first_reference(values)


def resolve_to(candidate: Candidate) -> str:
    return _first_reference(_chain(candidate, TO_KEYS + ("forward",), record_names=TO_KEYS))


def resolve_token_id(candidate: Candidate) -> str:
    return _first_reference(_chain(candidate, TOKEN_KEYS))


def resolve_amount(candidate: Candidate) -> Any:
    for value in _chain(candidate, AMOUNT_KEYS):
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def resolve_timestamp(candidate: Candidate) -> Optional[int]:
    op = candidate.operation
    values = _values([op], TIMESTAMP_KEYS)
    values += _values([utils.field(op, "block")], BLOCK_DATE_KEYS)
    values += _values([candidate.block], BLOCK_DATE_KEYS)
    if candidate.record is not op:
        values += _values([candidate.record], TIMESTAMP_KEYS)
        values += _values([utils.field(candidate.record, "block")], BLOCK_DATE_KEYS)
    return utils.resolve_timestamp(*values)


def resolve_block_account(candidate: Candidate, fallback: str = "") -> str:
    op = candidate.operation
    values = _values([utils.field(op, "block"), candidate.block, candidate.record], ("account",))
    values += _values([op], ("account",))
    values += _values([candidate.record], ("from",))
    return _first_reference(values) or fallback


def extract_fields(candidate: Candidate, account: str = "") -> Optional[ExtractedFields]:
    """Extract typed fields from ``candidate``; ``None`` when it has no block hash."""

    block_hash = resolve_block_hash(candidate)
    if not block_hash:
        return None
    return ExtractedFields(
        block_hash=block_hash,
        type_label=resolve_operation_type(candidate),
        from_address=resolve_from(candidate),
        to_address=resolve_to(candidate),
        token_id=resolve_token_id(candidate),
        amount=resolve_amount(candidate),
        timestamp_ms=resolve_timestamp(candidate),
        block_account=resolve_block_account(candidate, account),
        fee_like=is_fee_like(candidate),
    )


def metadata_sources(candidate: Candidate) -> tuple[list[Any], list[Any]]:
    """Return raw metadata candidates embedded on the operation and on the record."""

    op = candidate.operation
    operation_sources = _values([op], ("tokenMetadata", "metadata"))
    for nested in _nested_operations(op):
        operation_sources += _values([nested], ("tokenMetadata", "metadata"))
    token = utils.field(op, "token")
    if utils.is_record(token):
        operation_sources += _values([token], ("metadata", "tokenMetadata"))
    record_sources: list[Any] = []
    if candidate.record is not op:
        record_sources = _values([candidate.record], ("tokenMetadata", "metadata"))
    return operation_sources, record_sources
