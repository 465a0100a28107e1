"""Normalization of raw history records to ``CanonicalOperation`` objects."""
from __future__ import annotations

from collections import defaultdict
import logging
from typing import Any, Iterable, Mapping, Optional

from .. import utils
from ..amounts import display_amount, is_decimal_text, parse_base_units, to_base_units
from ..meta import tokens as token_meta
from ..types import TRANSACTION_TYPE, BaseToken, BlockRef, CanonicalOperation, NormalizedHistory, TokenMetadata
from .fields import ExtractedFields, extract_fields, metadata_sources
from .shapes import Candidate, resolve_candidates

LOGGER = logging.getLogger(__name__)

# Labels whose direction is relative to the viewing account.
DIRECTIONAL_TYPES = frozenset({"SEND", "RECEIVE", "UNKNOWN", TRANSACTION_TYPE})


def classify_direction(label: Optional[str], from_address: str, to_address: str, account: str) -> str:
    if account and (label is None or label in DIRECTIONAL_TYPES):
        if from_address == account and to_address != account:
            return "SEND"
        if to_address == account and from_address != account:
            return "RECEIVE"
    return label or TRANSACTION_TYPE


def resolve_raw_amount(value: Any, decimals: Optional[int]) -> str:
    """Return integer base-unit text for ``value``.

    Decimal text is scaled with ``decimals`` when they are known; anything that
    cannot be read as an integer becomes ``"0"``.
    """

    if is_decimal_text(value):
        converted = to_base_units(value, decimals)
        if converted is not None:
            return converted
        LOGGER.debug("Decimal amount %r without known decimals; defaulting to 0", value)
    return str(parse_base_units(value))


def _merge_candidates(inline: Optional[TokenMetadata], raw_sources: Iterable[Any]) -> Optional[TokenMetadata]:
    normalized = [token_meta.normalize_metadata_candidate(source) for source in raw_sources]
    return token_meta.merge_token_metadata(inline, *normalized)


def resolve_candidate_metadata(
    candidate: Candidate,
    fields: ExtractedFields,
    lookup: Mapping[str, Any],
    base_token: BaseToken,
) -> Optional[TokenMetadata]:
    """Merge operation, record and lookup metadata, in that priority order."""

    operation_raw, record_raw = metadata_sources(candidate)
    operation_meta = _merge_candidates(token_meta.inline_token_metadata(candidate.operation), operation_raw)
    record_meta = None
    if candidate.record is not candidate.operation:
        record_meta = _merge_candidates(token_meta.inline_token_metadata(candidate.record), record_raw)
    cached = token_meta.lookup_entry(lookup, fields.token_id)
    merged = token_meta.merge_token_metadata(operation_meta, record_meta, cached)
    return token_meta.apply_base_defaults(merged, token_id=fields.token_id, base_token=base_token)


def normalize_history_records(
    records: Iterable[Any],
    account: str = "",
    token_metadata: Optional[Mapping[str, Any]] = None,
    *,
    base_token: Optional[BaseToken] = None,
) -> NormalizedHistory:
    """Normalize a batch of history records.

    ``token_metadata`` maps token ids to whatever metadata the caller resolved
    so far; it is read, never written.  The result lists the canonical
    operations in extraction order together with the token ids and block
    hashes the caller should resolve before running again.
    """

    lookup: Mapping[str, Any] = token_metadata or {}
    base = base_token or BaseToken()
    account_key = account.strip() if isinstance(account, str) else ""

    operations: list[CanonicalOperation] = []
    tokens_to_fetch: dict[str, None] = {}
    blocks_to_fetch: dict[str, None] = {}
    seen_keys: set[tuple[str, str, str, str, str]] = set()
    rows_per_block: dict[str, int] = defaultdict(int)
    skipped = {"no_hash": 0, "fee": 0, "duplicate": 0}

    candidates = resolve_candidates(records)
    for candidate in candidates:
        fields = extract_fields(candidate, account_key)
        if fields is None:
            skipped["no_hash"] += 1
            continue
        if fields.fee_like:
            skipped["fee"] += 1
            continue

        meta = resolve_candidate_metadata(candidate, fields, lookup, base)
        ticker = meta.ticker if meta is not None else None
        decimals = meta.decimals if meta is not None else None
        field_type = meta.field_type if meta is not None and decimals is not None else None
        token_lookup_id = fields.token_id or ticker or base.ticker

        raw_amount = resolve_raw_amount(fields.amount, decimals)
        op_type = classify_direction(fields.type_label, fields.from_address, fields.to_address, account_key)

        dedupe_key = (fields.block_hash, fields.from_address, fields.to_address, token_lookup_id, raw_amount)
        if dedupe_key in seen_keys:
            skipped["duplicate"] += 1
            continue
        seen_keys.add(dedupe_key)
        rows_per_block[fields.block_hash] += 1

        timestamp_ms = fields.timestamp_ms
        block_date = utils.ms_to_datetime(timestamp_ms) if timestamp_ms is not None else None
        if block_date is None:
            timestamp_ms = None
            blocks_to_fetch[fields.block_hash] = None

        if (
            fields.token_id
            and fields.token_id not in lookup
            and not token_meta.should_skip_token_lookup(fields.token_id, ticker, base)
            and (ticker is None or decimals is None)
        ):
            tokens_to_fetch[fields.token_id] = None

        operations.append(
            CanonicalOperation(
                type=op_type,
                block=BlockRef(
                    hash=fields.block_hash,
                    date=block_date,
                    account=fields.block_account or None,
                    is_placeholder_date=block_date is None,
                ),
                raw_amount=raw_amount,
                formatted_amount=display_amount(raw_amount, decimals, field_type, ticker, token_id=fields.token_id),
                token=fields.token_id,
                token_ticker=ticker,
                token_decimals=decimals,
                token_metadata=meta,
                token_lookup_id=token_lookup_id,
                from_address=fields.from_address,
                to_address=fields.to_address,
                row_id=f"{fields.block_hash}:{rows_per_block[fields.block_hash]}",
                block_timestamp=timestamp_ms,
            )
        )

    LOGGER.debug(
        "Normalized %s operations from %s candidates (skipped: %s)",
        len(operations),
        len(candidates),
        skipped,
    )
    return NormalizedHistory(
        operations=operations,
        tokens_to_fetch=list(tokens_to_fetch),
        blocks_to_fetch=list(blocks_to_fetch),
    )
