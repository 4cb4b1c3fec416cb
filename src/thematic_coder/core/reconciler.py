from __future__ import annotations

from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Mapping, Optional, Sequence, Union

import json
import logging

from thematic_coder.config import SENTIMENTS, UNCATEGORIZED
from thematic_coder.core.models import AnnotationResult, Category, SuggestedCategory
from thematic_coder.core.tabular_parser import Row

logger = logging.getLogger(__name__)


class ReconcileError(Exception):
    """Raised when a classification response does not have the expected shape."""


@dataclass
class AnnotationRecord:
    """One entry of the service's `results` array, decoded but not yet matched."""
    original_response: str
    category_name: str
    sentiment: str
    confidence: float
    reasoning: str
    suggested_category: Optional[SuggestedCategory] = None

    @property
    def is_suggestion(self) -> bool:
        return self.suggested_category is not None and self.suggested_category.is_complete


@dataclass
class ReconcileOutcome:
    finalized: List[AnnotationResult] = field(default_factory=list)
    suggestions: List[AnnotationResult] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def _require_str(item: Mapping[str, Any], key: str, position: int) -> str:
    value = item.get(key)
    if not isinstance(value, str):
        raise ReconcileError(f"results[{position}].{key} must be a string, got {type(value).__name__}")
    return value


def _decode_suggestion(raw: Any) -> Optional[SuggestedCategory]:
    if not isinstance(raw, Mapping):
        return None
    name = raw.get("name")
    description = raw.get("description")
    return SuggestedCategory(
        name=name.strip() if isinstance(name, str) else "",
        description=description.strip() if isinstance(description, str) else "",
    )


def decode_annotations(payload: Union[str, bytes, Mapping[str, Any]]) -> List[AnnotationRecord]:
    """
    Decode a classification response into AnnotationRecords.

    Accepts the raw JSON text or an already-decoded object of the form
    {"results": [{originalResponse, categoryName, sentiment, confidenceScore,
    reasoning, suggestedCategory?}]}. Any deviation raises ReconcileError;
    nothing is partially decoded.
    """
    if isinstance(payload, (str, bytes)):
        try:
            data = json.loads(payload)
        except ValueError as exc:
            raise ReconcileError(f"Response is not valid JSON: {exc}") from exc
    else:
        data = payload

    if not isinstance(data, Mapping):
        raise ReconcileError(f"Expected a JSON object, got {type(data).__name__}")

    items = data.get("results")
    if not isinstance(items, list):
        raise ReconcileError("Response has no 'results' list.")

    records: List[AnnotationRecord] = []
    for position, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise ReconcileError(f"results[{position}] is not an object")

        sentiment = _require_str(item, "sentiment", position)
        if sentiment not in SENTIMENTS:
            raise ReconcileError(f"results[{position}].sentiment {sentiment!r} is not one of {SENTIMENTS}")

        score = item.get("confidenceScore")
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            raise ReconcileError(f"results[{position}].confidenceScore must be a number")

        records.append(
            AnnotationRecord(
                original_response=_require_str(item, "originalResponse", position),
                category_name=_require_str(item, "categoryName", position),
                sentiment=sentiment,
                confidence=float(score),
                reasoning=_require_str(item, "reasoning", position),
                suggested_category=_decode_suggestion(item.get("suggestedCategory")),
            )
        )
    return records


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------

def match_rows(rows: Sequence[Row], response_column: str, records: Sequence[AnnotationRecord]) -> List[int]:
    """
    Pick the uploaded row index for each record.

    A record goes to the first row, in upload order, whose response text
    equals the record's text exactly and has not been taken by an earlier
    record. When no such row is left it falls back to the record's own
    position in the batch. Returns -1 where that position is past the end
    of the upload.
    """
    pending: Dict[str, Deque[int]] = defaultdict(deque)
    for idx, row in enumerate(rows):
        pending[row.get(response_column, "")].append(idx)

    matched: List[int] = []
    for position, record in enumerate(records):
        queue = pending.get(record.original_response)
        if queue:
            matched.append(queue.popleft())
            continue

        if position < len(rows):
            logger.warning(
                "No unclaimed row has the text of record %d; matching it by position.", position
            )
            matched.append(position)
        else:
            logger.warning("Record %d has no matching row and no row at its position.", position)
            matched.append(-1)
    return matched


def _source_row(rows: Sequence[Row], index: int, response_column: str, text: str) -> Row:
    if index >= 0:
        return dict(rows[index])
    headers = list(rows[0]) if rows else [response_column]
    synthesized = {h: "" for h in headers}
    synthesized[response_column] = text
    return synthesized


def reconcile(
    rows: Sequence[Row],
    response_column: str,
    categories: Sequence[Category],
    records: Sequence[AnnotationRecord],
) -> ReconcileOutcome:
    """
    Turn decoded records into AnnotationResults tied to their source rows.

    Records with a complete suggested category go to `suggestions` for the
    approval workflow; all others are final, keeping the returned category
    name verbatim.
    """
    known = {c.key for c in categories}
    known.add(UNCATEGORIZED.lower())

    outcome = ReconcileOutcome()
    for record, row_index in zip(records, match_rows(rows, response_column, records)):
        result = AnnotationResult(
            category_name=record.category_name,
            sentiment=record.sentiment,
            confidence=record.confidence,
            reasoning=record.reasoning,
            source_column=response_column,
            raw_row=_source_row(rows, row_index, response_column, record.original_response),
            suggested_category=record.suggested_category if record.is_suggestion else None,
        )
        if record.is_suggestion:
            outcome.suggestions.append(result)
            continue
        if record.category_name.lower() not in known:
            logger.warning("Service returned category %r, which is not in the codebook.", record.category_name)
        outcome.finalized.append(result)

    logger.info(
        "Reconciled %d record(s): %d final, %d suggestion(s).",
        len(records), len(outcome.finalized), len(outcome.suggestions),
    )
    return outcome
