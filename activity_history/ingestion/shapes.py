"""Classification of raw history records into operation candidates.

History providers hand back records in several layouts:

* ``CONTAINER`` - the record carries its own ``operations`` list.
* ``STAPLE`` - a ``voteStaple`` with a flat ``operations`` list.
* ``STAPLE_BLOCKS`` - a ``voteStaple`` whose ``blocks`` each list operations.
* ``BLOCKS`` - the record lists ``blocks`` directly.
* ``FLAT`` - a pre-flattened transaction; the record is the operation.

``FLAT`` applies only when none of the other layouts yields a candidate.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any, Iterable, List, Optional, Tuple

from .. import utils

LOGGER = logging.getLogger(__name__)

HISTORY_CONTAINER_KEYS = ("records", "history", "voteStaples", "items", "data")


class RecordShape(str, Enum):
    CONTAINER = "container"
    STAPLE = "staple"
    STAPLE_BLOCKS = "staple_blocks"
    BLOCKS = "blocks"
    FLAT = "flat"


@dataclass(frozen=True)
class Candidate:
    """An operation candidate paired with the record (and block) it came from."""

    operation: Any
    record: Any
    block: Any = None
    shape: RecordShape = RecordShape.FLAT


@dataclass(frozen=True)
class HistoryPage:
    records: list[Any]
    cursor: Optional[str] = None
    has_more: bool = False


def _operations(value: Any) -> list[Any]:
    return [operation for operation in utils.as_list(value) if utils.is_record(operation)]


def _block_operations(blocks: Any) -> list[Tuple[Any, Any]]:
    pairs: list[Tuple[Any, Any]] = []
    for block in utils.as_list(blocks):
        if not utils.is_record(block):
            continue
        for operation in _operations(utils.field(block, "operations")):
            pairs.append((operation, block))
    return pairs


def classify_record(record: Any) -> Tuple[RecordShape, ...]:
    """Return the layouts present on ``record`` in extraction order."""

    if not utils.is_record(record):
        return ()
    shapes: list[RecordShape] = []
    if _operations(utils.field(record, "operations")):
        shapes.append(RecordShape.CONTAINER)
    staple = utils.field(record, "voteStaple")
    if utils.is_record(staple):
        if _operations(utils.field(staple, "operations")):
            shapes.append(RecordShape.STAPLE)
        if _block_operations(utils.field(staple, "blocks")):
            shapes.append(RecordShape.STAPLE_BLOCKS)
    if _block_operations(utils.field(record, "blocks")):
        shapes.append(RecordShape.BLOCKS)
    if not shapes:
        shapes.append(RecordShape.FLAT)
    return tuple(shapes)


def _candidates_for(record: Any, shape: RecordShape) -> list[Candidate]:
    if shape is RecordShape.CONTAINER:
        operations = _operations(utils.field(record, "operations"))
        return [Candidate(op, record, None, shape) for op in operations]
    staple = utils.field(record, "voteStaple")
    if shape is RecordShape.STAPLE:
        operations = _operations(utils.field(staple, "operations"))
        return [Candidate(op, record, None, shape) for op in operations]
    if shape is RecordShape.STAPLE_BLOCKS:
        pairs = _block_operations(utils.field(staple, "blocks"))
        return [Candidate(op, record, block, shape) for op, block in pairs]
    if shape is RecordShape.BLOCKS:
        pairs = _block_operations(utils.field(record, "blocks"))
        return [Candidate(op, record, block, shape) for op, block in pairs]
    return [Candidate(record, record, None, RecordShape.FLAT)]


def resolve_candidates(records: Iterable[Any]) -> List[Candidate]:
    """Flatten a batch of records into operation candidates, never raising."""

    candidates: List[Candidate] = []
    for record in records or ():
        for shape in classify_record(record):
            for candidate in _candidates_for(record, shape):
                if utils.is_record(candidate.operation):
                    candidates.append(candidate)
    LOGGER.debug("Resolved %s operation candidates", len(candidates))
    return candidates


def unwrap_history_page(response: Any) -> HistoryPage:
    """Extract the record list and cursor from a provider history response."""

    if isinstance(response, (list, tuple)):
        return HistoryPage(records=list(response))
    if not utils.is_record(response):
        return HistoryPage(records=[])
    records = utils.field(response, "records")
    if isinstance(records, (list, tuple)):
        cursor = utils.coerce_string(utils.field(response, "cursor"))
        has_more = utils.field(response, "hasMore") is True and cursor is not None
        return HistoryPage(records=list(records), cursor=cursor, has_more=has_more)
    for key in HISTORY_CONTAINER_KEYS[1:]:
        candidate = utils.field(response, key)
        if isinstance(candidate, (list, tuple)):
            LOGGER.debug("Accepting history records under container key %s", key)
            return HistoryPage(records=list(candidate))
    LOGGER.warning("Unrecognised history response; no records extracted")
    return HistoryPage(records=[])
