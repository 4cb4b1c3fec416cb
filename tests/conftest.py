"""
Shared helpers for the test suite
"""

import json
from typing import Dict, List, Optional

from thematic_coder.core.models import AnnotationResult


def make_result(text: str, category: str = "Support", sentiment: str = "Neutral",
                confidence: float = 0.9, column: str = "comment", **extra: str) -> AnnotationResult:
    row = {"id": extra.pop("id", ""), column: text}
    row.update(extra)
    return AnnotationResult(
        category_name=category,
        sentiment=sentiment,
        confidence=confidence,
        reasoning="because",
        source_column=column,
        raw_row=row,
    )


def record(text: str, category: str = "Support", sentiment: str = "Neutral",
           confidence: float = 0.9, suggestion: Optional[Dict[str, str]] = None) -> Dict:
    item = {
        "originalResponse": text,
        "categoryName": category,
        "sentiment": sentiment,
        "confidenceScore": confidence,
        "reasoning": f"reason for {text}",
    }
    if suggestion is not None:
        item["suggestedCategory"] = suggestion
    return item


class FakeModelService:
    """Stands in for the Gemini client; replies are queued per call type."""

    def __init__(self, payloads: Optional[List] = None) -> None:
        self.payloads = list(payloads or [])
        self.classify_calls: List[List[str]] = []
        self.report_reply: object = "# Report"
        self.chat_reply: object = "An answer."

    def classify(self, responses, categories):
        self.classify_calls.append(list(responses))
        payload = self.payloads.pop(0)
        if isinstance(payload, Exception):
            raise payload
        if isinstance(payload, str):
            return payload
        return json.dumps(payload)

    def write_report(self, results, request):
        if isinstance(self.report_reply, Exception):
            raise self.report_reply
        return self.report_reply

    def answer_question(self, results, question):
        if isinstance(self.chat_reply, Exception):
            raise self.chat_reply
        return self.chat_reply
