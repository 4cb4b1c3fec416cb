from __future__ import annotations

from typing import Iterable, Optional, Sequence

from thematic_coder.config import RESPONSE_COLUMN_KEYWORDS


def detect_response_column(
    headers: Sequence[str],
    keywords: Iterable[str] = RESPONSE_COLUMN_KEYWORDS,
) -> Optional[str]:
    """
    Best guess at the column holding free-text responses.

    The first header (in file order) whose lowercased text contains any of
    the keywords wins. Returns None when nothing matches; callers must then
    ask the user, and should always let the user override a guess.
    """
    words = [k.lower() for k in keywords]
    for header in headers:
        lowered = header.lower()
        if any(word in lowered for word in words):
            return header
    return None
