from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

import logging

import pandas as pd

from thematic_coder.config import LOW_CONFIDENCE_THRESHOLD, SENTIMENTS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Category:
    """A codebook entry. Identity is the name, compared case-insensitively."""
    name: str
    description: str

    @property
    def key(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class SuggestedCategory:
    name: str
    description: str

    @property
    def is_complete(self) -> bool:
        return bool(self.name.strip()) and bool(self.description.strip())


@dataclass
class AnnotationResult:
    """
    One coding decision attached to a single uploaded row.

    raw_row is copied on construction so the result outlives the upload it
    came from. source_column names the response column inside raw_row.
    """
    category_name: str
    sentiment: str
    confidence: float
    reasoning: str
    source_column: str
    raw_row: Dict[str, str]
    suggested_category: Optional[SuggestedCategory] = None

    def __post_init__(self) -> None:
        self.raw_row = dict(self.raw_row)
        if self.source_column not in self.raw_row:
            raise ValueError(
                f"raw_row has no {self.source_column!r} column (columns: {list(self.raw_row)})"
            )
        if self.sentiment not in SENTIMENTS:
            raise ValueError(f"Sentiment must be one of {SENTIMENTS}, got {self.sentiment!r}")

    @property
    def response_text(self) -> str:
        return self.raw_row[self.source_column]

    def with_category(self, category_name: str) -> "AnnotationResult":
        return replace(self, category_name=category_name)


class MergeMode(str, Enum):
    APPEND = "append"
    REPLACE = "replace"


class ResultSet:
    """
    Ordered, running collection of AnnotationResult.

    The sequence is only ever appended to, replaced wholesale or cleared;
    the sole in-place change is a field edit on one result.
    """

    def __init__(self, results: Optional[Iterable[AnnotationResult]] = None) -> None:
        self._results: List[AnnotationResult] = list(results or [])

    def __len__(self) -> int:
        return len(self._results)

    def __iter__(self) -> Iterator[AnnotationResult]:
        return iter(self._results)

    def __getitem__(self, index: int) -> AnnotationResult:
        return self._results[index]

    def __bool__(self) -> bool:
        return bool(self._results)

    def to_list(self) -> List[AnnotationResult]:
        return list(self._results)

    def merge(self, results: Iterable[AnnotationResult], mode: MergeMode) -> None:
        incoming = list(results)
        if mode is MergeMode.REPLACE:
            logger.info("Replacing %d result(s) with %d new result(s).", len(self._results), len(incoming))
            self._results = incoming
        else:
            logger.info("Appending %d result(s) to %d existing.", len(incoming), len(self._results))
            self._results.extend(incoming)

    def clear(self) -> None:
        self._results = []

    def update(
        self,
        index: int,
        *,
        category_name: Optional[str] = None,
        sentiment: Optional[str] = None,
    ) -> AnnotationResult:
        """Post-hoc edit of the category and/or sentiment of one result."""
        current = self._results[index]
        changes: Dict[str, str] = {}
        if category_name is not None:
            changes["category_name"] = category_name
        if sentiment is not None:
            changes["sentiment"] = sentiment
        updated = replace(current, **changes)
        self._results[index] = updated
        return updated

    def low_confidence(self, threshold: float = LOW_CONFIDENCE_THRESHOLD) -> List[Tuple[int, AnnotationResult]]:
        """Results below the threshold, paired with their position in the set."""
        return [(i, r) for i, r in enumerate(self._results) if r.confidence < threshold]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame.from_records(
            [
                {
                    "Response": r.response_text,
                    "Assigned Category": r.category_name,
                    "Sentiment": r.sentiment,
                    "Confidence": r.confidence,
                    "Reasoning": r.reasoning,
                }
                for r in self._results
            ],
            columns=["Response", "Assigned Category", "Sentiment", "Confidence", "Reasoning"],
        )
