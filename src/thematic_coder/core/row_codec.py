from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Sequence

from thematic_coder.config import (
    CODEBOOK_EXPORT_SUFFIX,
    CODEBOOK_HEADERS,
    RESULT_METADATA_HEADERS,
    RESULTS_EXPORT_FILENAME,
)
from thematic_coder.core.models import AnnotationResult, Category

_NEEDS_QUOTING = (",", '"', "\n", "\r")


def escape_field(value: object) -> str:
    """Quote a value only when it holds a comma, a double quote or a line break."""
    text = str(value)
    if any(ch in text for ch in _NEEDS_QUOTING):
        return '"' + text.replace('"', '""') + '"'
    return text


def serialize_rows(headers: Sequence[str], rows: Iterable[Mapping[str, object]]) -> str:
    """
    Write rows back to CSV text, header line first.

    Columns are emitted in header order; a key missing from a row is written
    as an empty value. A data line that would come out empty is written as
    '""'. Lines are joined with "\\n" and there is no trailing newline.
    """
    lines = [",".join(escape_field(h) for h in headers)]
    for row in rows:
        line = ",".join(escape_field(row.get(h, "")) for h in headers)
        # a bare empty line would be read back as blank and skipped
        lines.append(line or '""')
    return "\n".join(lines)


def serialize_categories(categories: Iterable[Category]) -> str:
    name_col, desc_col = CODEBOOK_HEADERS
    return serialize_rows(
        CODEBOOK_HEADERS,
        ({name_col: c.name, desc_col: c.description} for c in categories),
    )


def codebook_filename(taxonomy_name: str) -> str:
    return f"{taxonomy_name}{CODEBOOK_EXPORT_SUFFIX}"


# ---------------------------------------------------------------------------
# Coded results export
# ---------------------------------------------------------------------------

def result_export_headers(results: Sequence[AnnotationResult]) -> List[str]:
    """
    Union of the raw-row columns across results (first-seen order), followed
    by the coding metadata columns.
    """
    headers: List[str] = []
    seen = set()
    for result in results:
        for column in result.raw_row:
            if column not in seen:
                seen.add(column)
                headers.append(column)
    return headers + [h for h in RESULT_METADATA_HEADERS if h not in seen]


def result_to_row(result: AnnotationResult) -> Dict[str, str]:
    category_col, sentiment_col, confidence_col, reasoning_col = RESULT_METADATA_HEADERS
    row = dict(result.raw_row)
    row[category_col] = result.category_name
    row[sentiment_col] = result.sentiment
    row[confidence_col] = str(result.confidence)
    row[reasoning_col] = result.reasoning
    return row


def serialize_results(results: Sequence[AnnotationResult]) -> str:
    headers = result_export_headers(results)
    return serialize_rows(headers, (result_to_row(r) for r in results))


def results_filename() -> str:
    return RESULTS_EXPORT_FILENAME
