from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

import logging

import pandas as pd

logger = logging.getLogger(__name__)

Row = Dict[str, str]

_QUOTE = '"'
_DELIMITER = ","
_BOM = "\ufeff"


class FormatError(Exception):
    """Raised when delimited text cannot be read as a header row plus data rows."""


@dataclass
class ParsedTable:
    """
    Result of parsing an uploaded CSV.

    headers: column names in file order, as written
    rows:    one mapping per data line, keyed by header, values verbatim
    """
    headers: List[str]
    rows: List[Row] = field(default_factory=list)

    def column_values(self, column: str) -> List[str]:
        if column not in self.headers:
            raise KeyError(f"Column {column!r} is not one of {self.headers}")
        return [row.get(column, "") for row in self.rows]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame.from_records(self.rows, columns=self.headers)


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------

def scan_records(text: str) -> List[List[str]]:
    """
    Split delimited text into records of raw field values in a single pass.

    Rules:
      - Records end on "\\n" or "\\r\\n" outside quotes.
      - A field that starts with '"' is quoted: commas and newlines inside it
        are literal, and '""' decodes to a single '"'.
      - Outside quotes, a '"' that does not open a field is kept as text.
      - Blank lines produce no record. A line holding only '""' is a record
        with one empty value.

    Raises FormatError if a quoted field is never closed.
    """
    records: List[List[str]] = []
    record: List[str] = []
    buf: List[str] = []
    in_quotes = False
    field_quoted = False
    record_quoted = False
    line = 1
    quote_line = 0

    def end_record() -> None:
        nonlocal record, record_quoted
        record.append("".join(buf))
        if record_quoted or len(record) > 1 or record[0] != "":
            records.append(record)
        record = []
        record_quoted = False

    i = 1 if text.startswith(_BOM) else 0
    n = len(text)
    while i < n:
        ch = text[i]
        if in_quotes:
            if ch == _QUOTE:
                if i + 1 < n and text[i + 1] == _QUOTE:
                    buf.append(_QUOTE)
                    i += 2
                    continue
                in_quotes = False
            else:
                if ch == "\n":
                    line += 1
                buf.append(ch)
        elif ch == _QUOTE and not buf and not field_quoted:
            in_quotes = True
            field_quoted = True
            record_quoted = True
            quote_line = line
        elif ch == _DELIMITER:
            record.append("".join(buf))
            buf = []
            field_quoted = False
        elif ch == "\n" or (ch == "\r" and i + 1 < n and text[i + 1] == "\n"):
            end_record()
            buf = []
            field_quoted = False
            line += 1
            if ch == "\r":
                i += 1
        else:
            buf.append(ch)
        i += 1

    if in_quotes:
        raise FormatError(f"Unterminated quoted field starting on line {quote_line}.")

    if record or buf or record_quoted:
        end_record()

    return records


# ---------------------------------------------------------------------------
# Table parsing
# ---------------------------------------------------------------------------

def parse_table(text: str) -> ParsedTable:
    """
    Parse CSV text whose first non-blank line is the header row.

    Values are matched to headers by position. Short rows are padded with
    empty strings; values beyond the last header are dropped.
    """
    records = scan_records(text)
    if len(records) < 2:
        raise FormatError(
            "Expected a header row and at least one data row, "
            f"found {len(records)} non-blank line(s)."
        )

    headers = list(records[0])
    if len(set(headers)) != len(headers):
        logger.warning("Duplicate column names in header %s; later columns win.", headers)

    rows: List[Row] = []
    for values in records[1:]:
        if len(values) > len(headers):
            logger.debug("Dropping %d value(s) beyond the header width.", len(values) - len(headers))
        rows.append(
            {h: (values[idx] if idx < len(values) else "") for idx, h in enumerate(headers)}
        )

    logger.info("Parsed %d row(s) x %d column(s).", len(rows), len(headers))
    return ParsedTable(headers=headers, rows=rows)
