from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

import json

import pandas as pd

from thematic_coder.config import SENTIMENTS
from thematic_coder.core.models import AnnotationResult


@dataclass
class ChatMessage:
    role: str  # 'user' or 'model'
    text: str


def results_context(results: Iterable[AnnotationResult]) -> str:
    """JSON view of the coded data handed to the model as report/chat context."""
    return json.dumps(
        [
            {
                "originalResponse": r.response_text,
                "categoryName": r.category_name,
                "sentiment": r.sentiment,
                "confidenceScore": r.confidence,
                "reasoning": r.reasoning,
            }
            for r in results
        ],
        indent=2,
        ensure_ascii=False,
    )


def category_sentiment_counts(results: Iterable[AnnotationResult]) -> pd.DataFrame:
    """
    Count results per category and sentiment.

    Index: category names in first-seen order.
    Columns: Positive, Negative, Neutral (always present, zero-filled).
    """
    records: List[dict] = [{"category": r.category_name, "sentiment": r.sentiment} for r in results]
    if not records:
        return pd.DataFrame(columns=list(SENTIMENTS), dtype="int64")

    df = pd.DataFrame.from_records(records)
    order = list(dict.fromkeys(df["category"]))
    counts = (
        df.groupby(["category", "sentiment"]).size()
        .unstack(fill_value=0)
        .reindex(index=order, columns=list(SENTIMENTS), fill_value=0)
        .astype("int64")
    )
    counts.index.name = "category"
    counts.columns.name = None
    return counts


def append_to_report(report: str, text: str) -> str:
    return f"{report}\n\n---\n\n{text}"
