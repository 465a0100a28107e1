"""Utility helpers shared across modules."""
from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path
import re
from typing import Any, Iterator, Optional

import orjson


# Epoch values below this are treated as seconds rather than milliseconds.
SECONDS_THRESHOLD = 1_000_000_000_000
_INTEGER_RE = re.compile(r"^-?\d+$")
_SCALAR_TYPES = (str, bytes, bytearray, int, float, bool, list, tuple, set, frozenset)

CACHE_ROOT = Path("./cache")


def ensure_cache_dir(*parts: str) -> Path:
    """Return a cache directory ensuring it exists."""

    path = CACHE_ROOT.joinpath(*parts)
    path.mkdir(parents=True, exist_ok=True)
    return path


def json_dumps(data: Any, *, indent: bool = False) -> str:
    option = orjson.OPT_INDENT_2 if indent else 0
    return orjson.dumps(data, default=str, option=option).decode("utf-8")


def json_loads(data: str | bytes) -> Any:
    return orjson.loads(data)


def read_jsonl(path: Path) -> Iterator[Any]:
    with path.open("r", encoding="utf-8") as fh:
        for line in fh:
            line = line.strip()
            if not line:
                continue
            yield json_loads(line)


def read_json_document(path: Path) -> Any:
    """Load a JSON document, falling back to JSON lines when it is not one."""

    text = path.read_text(encoding="utf-8")
    try:
        return json_loads(text)
    except orjson.JSONDecodeError:
        return list(read_jsonl(path))


def field(obj: Any, name: str) -> Any:
    """Read ``name`` from a mapping or an attribute object, ``None`` when absent."""

    if obj is None or isinstance(obj, _SCALAR_TYPES):
        return None
    if isinstance(obj, Mapping):
        return obj.get(name)
    try:
        return getattr(obj, name, None)
    except Exception:
        return None


def is_record(obj: Any) -> bool:
    """Return whether ``obj`` can carry named fields."""

    return obj is not None and not isinstance(obj, _SCALAR_TYPES)


def as_list(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


def coerce_string(value: Any) -> Optional[str]:
    """Return a trimmed non-empty string for scalar inputs."""

    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        trimmed = value.strip()
        return trimmed or None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return None
        return str(int(value))
    return None


def _epoch_to_ms(value: int | float) -> Optional[int]:
    if value != value or value in (float("inf"), float("-inf")):
        return None
    ms = value * 1000 if abs(value) < SECONDS_THRESHOLD else value
    return int(ms)


def normalize_timestamp(value: Any) -> Optional[int]:
    """Convert supported timestamp inputs to epoch milliseconds.

    Numbers (and integer strings) below ``SECONDS_THRESHOLD`` are assumed to be
    seconds.  ISO-8601 strings and ``datetime`` objects are accepted; naive
    datetimes are taken as UTC.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp() * 1000)
    if isinstance(value, (int, float)):
        return _epoch_to_ms(value)
    if isinstance(value, str):
        trimmed = value.strip()
        if not trimmed:
            return None
        if _INTEGER_RE.match(trimmed):
            return _epoch_to_ms(int(trimmed))
        if trimmed.endswith("Z"):
            trimmed = trimmed[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(trimmed)
        except ValueError:
            return None
        return normalize_timestamp(parsed)
    return None


def ms_to_datetime(value: int) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def resolve_timestamp(*candidates: Any) -> Optional[int]:
    """Return the first candidate that normalizes to epoch milliseconds."""

    for candidate in candidates:
        ms = normalize_timestamp(candidate)
        if ms is not None:
            return ms
    return None
