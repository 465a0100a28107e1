"""Reconciliation of token metadata found inline, on records and in lookups."""
from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Mapping, Optional

from .. import utils
from ..types import BaseToken, TokenMetadata

LOGGER = logging.getLogger(__name__)

PLACEHOLDER_PREFIX = "PLACEHOLDER_"
BASE_SENTINEL = "base"


class MetadataDecodeError(ValueError):
    """Raised when an opaque metadata blob cannot be decoded to an object."""


def decode_metadata_blob(blob: str) -> dict[str, Any]:
    """Decode base64 encoded JSON metadata, accepting plain JSON as well."""

    text = blob.strip()
    if not text:
        raise MetadataDecodeError("empty metadata blob")
    try:
        parsed = utils.json_loads(base64.b64decode(text, validate=True))
    except (binascii.Error, ValueError):
        try:
            parsed = utils.json_loads(text)
        except ValueError as exc:
            raise MetadataDecodeError(f"metadata blob is neither base64 JSON nor JSON: {text[:32]!r}") from exc
    if not isinstance(parsed, dict):
        raise MetadataDecodeError("metadata blob does not decode to an object")
    return parsed


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value.strip() or None
    return None


def _decimals(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float) and value.is_integer() and value >= 0:
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _decimals_and_field_type(obj: Any) -> tuple[Optional[int], Optional[str]]:
    declared = utils.field(obj, "fieldType") or utils.field(obj, "field_type")
    places = _decimals(utils.field(obj, "decimalPlaces"))
    plain = _decimals(utils.field(obj, "decimals"))
    if declared == "decimalPlaces":
        return (places if places is not None else plain), "decimalPlaces"
    if declared == "decimals":
        return (plain if plain is not None else places), "decimals"
    if places is not None:
        return places, "decimalPlaces"
    if plain is not None:
        return plain, "decimals"
    return None, None


def _from_fields(obj: Any) -> TokenMetadata:
    decimals, field_type = _decimals_and_field_type(obj)
    blob = (
        _text(utils.field(obj, "metadataBase64"))
        or _text(utils.field(obj, "opaqueBlob"))
        or _text(utils.field(obj, "opaque_blob"))
        or _text(utils.field(obj, "metadata"))
    )
    meta = TokenMetadata(
        name=_text(utils.field(obj, "name")) or _text(utils.field(obj, "displayName")),
        ticker=(
            _text(utils.field(obj, "ticker"))
            or _text(utils.field(obj, "symbol"))
            or _text(utils.field(obj, "currencyCode"))
        ),
        decimals=decimals,
        field_type=field_type,
        opaque_blob=blob,
    )
    if blob:
        nested = normalize_metadata_candidate(blob)
        merged = merge_token_metadata(meta, nested)
        if merged is not None:
            return merged
    return meta


def normalize_metadata_candidate(value: Any) -> Optional[TokenMetadata]:
    """Interpret one metadata candidate: an object, a mapping or an opaque blob.

    Blobs that cannot be decoded are kept verbatim as ``opaque_blob``.
    """

    if value is None:
        return None
    if isinstance(value, TokenMetadata):
        return None if value.is_empty() else value
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            decoded = decode_metadata_blob(value)
        except MetadataDecodeError as exc:
            LOGGER.debug("Keeping undecodable token metadata as passthrough: %s", exc)
            return TokenMetadata(opaque_blob=value)
        return _from_fields(decoded).model_copy(update={"opaque_blob": value})
    if not utils.is_record(value):
        return None
    meta = _from_fields(value)
    return None if meta.is_empty() else meta


def inline_token_metadata(obj: Any) -> Optional[TokenMetadata]:
    """Collect ``tokenName``/``tokenTicker``/``tokenDecimals`` style fields."""

    if not utils.is_record(obj):
        return None
    declared = utils.field(obj, "tokenFieldType")
    decimals = _decimals(utils.field(obj, "tokenDecimals"))
    meta = TokenMetadata(
        name=_text(utils.field(obj, "tokenName")),
        ticker=_text(utils.field(obj, "tokenTicker")) or _text(utils.field(obj, "tokenSymbol")),
        decimals=decimals,
        field_type=declared if declared in ("decimalPlaces", "decimals") else None,
    )
    return None if meta.is_empty() else meta


def merge_token_metadata(*sources: Optional[TokenMetadata]) -> Optional[TokenMetadata]:
    """Merge metadata field by field, the first non-empty value winning.

    ``decimals`` and ``field_type`` travel together from the first source that
    declares decimals so the two conventions are never mixed.
    """

    name = ticker = blob = None
    decimals: Optional[int] = None
    field_type: Optional[str] = None
    loose_field_type: Optional[str] = None
    for source in sources:
        if source is None:
            continue
        name = name or source.name
        ticker = ticker or source.ticker
        blob = blob or source.opaque_blob
        if decimals is None and source.decimals is not None:
            decimals = source.decimals
            field_type = source.field_type or "decimals"
        loose_field_type = loose_field_type or source.field_type
    merged = TokenMetadata(
        name=name,
        ticker=ticker,
        decimals=decimals,
        field_type=field_type if decimals is not None else loose_field_type,
        opaque_blob=blob,
    )
    return None if merged.is_empty() else merged


def lookup_entry(table: Mapping[str, Any], token_id: str) -> Optional[TokenMetadata]:
    if not token_id:
        return None
    return normalize_metadata_candidate(table.get(token_id))


def is_base_ticker(ticker: Optional[str], base_token: BaseToken) -> bool:
    return bool(ticker) and ticker.upper() == base_token.ticker.upper()


def apply_base_defaults(
    meta: Optional[TokenMetadata], *, token_id: str, base_token: BaseToken
) -> Optional[TokenMetadata]:
    """Fill in the native unit's metadata for operations that name no token."""

    if token_id:
        return meta
    ticker = meta.ticker if meta is not None else None
    if ticker and not is_base_ticker(ticker, base_token):
        return meta
    return merge_token_metadata(meta, base_token.metadata())


def should_skip_token_lookup(token_id: Optional[str], ticker: Optional[str], base_token: BaseToken) -> bool:
    if not token_id:
        return True
    if token_id.startswith(PLACEHOLDER_PREFIX):
        return True
    if token_id == BASE_SENTINEL:
        return True
    return is_base_ticker(ticker, base_token)
