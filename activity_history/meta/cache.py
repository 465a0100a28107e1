"""Persistent cache for resolved token metadata.

The normalization engine only reads the lookup table it is handed; this store
is how a caller keeps that table between runs.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
import time
from typing import Any, Optional

from pydantic import ValidationError

from .. import utils
from ..types import TokenMetadata

LOGGER = logging.getLogger(__name__)

DEFAULT_TOKEN_META_FILENAME = "token_meta.json"


def default_cache_path() -> Path:
    return utils.ensure_cache_dir("meta") / DEFAULT_TOKEN_META_FILENAME


def _parse_entry(value: Any) -> Optional[dict[str, Any]]:
    if not isinstance(value, dict):
        return None
    try:
        meta = TokenMetadata.model_validate({k: v for k, v in value.items() if k != "ts"})
    except ValidationError:
        return None
    entry = meta.model_dump(by_alias=True, exclude_none=True)
    ts = value.get("ts")
    if ts is not None:
        try:
            entry["ts"] = int(ts)
        except (TypeError, ValueError):
            pass
    return entry


@dataclass
class TokenMetaCache:
    entries: dict[str, dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "TokenMetaCache":
        path = path or default_cache_path()
        if not path.exists():
            return cls()
        try:
            raw = utils.json_loads(path.read_text(encoding="utf-8"))
        except ValueError:
            LOGGER.warning("Ignoring unreadable token metadata cache at %s", path)
            return cls()
        if not isinstance(raw, dict):
            return cls()
        entries = {}
        for token_id, value in raw.items():
            entry = _parse_entry(value) if isinstance(token_id, str) else None
            if entry is not None:
                entries[token_id] = entry
        return cls(entries=entries)

    def save(self, path: Optional[Path] = None) -> None:
        path = path or default_cache_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(utils.json_dumps(self.entries, indent=True), encoding="utf-8")

    def get(self, token_id: str) -> Optional[TokenMetadata]:
        entry = self.entries.get(token_id)
        if not entry:
            return None
        return TokenMetadata.model_validate({k: v for k, v in entry.items() if k != "ts"})

    def set(self, token_id: str, metadata: TokenMetadata) -> None:
        entry = metadata.model_dump(by_alias=True, exclude_none=True)
        entry["ts"] = int(time.time())
        self.entries[token_id] = entry

    def lookup(self) -> dict[str, TokenMetadata]:
        """Return the table in the shape ``normalize_history_records`` expects."""

        table = {}
        for token_id in self.entries:
            meta = self.get(token_id)
            if meta is not None:
                table[token_id] = meta
        return table
