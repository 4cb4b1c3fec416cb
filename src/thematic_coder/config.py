from __future__ import annotations

import os
from pathlib import Path

# ---------------------------------------------------------------------------
# Project paths
# ---------------------------------------------------------------------------

# Root of the project (repo root)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Local state lives under data/ unless overridden
DATA_DIR = Path(os.getenv("THEMATIC_CODER_DATA_DIR", str(PROJECT_ROOT / "data"))).expanduser()
STATE_FILE = DATA_DIR / "state.json"

# ---------------------------------------------------------------------------
# App identity
# ---------------------------------------------------------------------------

APP_NAME = "Thematic Coder"
APP_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Persisted state keys
#
# Everything persisted is an opaque JSON blob stored under one of these keys.
# ---------------------------------------------------------------------------

STORAGE_NAMESPACE = "thematicCoder"
CODEBOOKS_KEY = f"{STORAGE_NAMESPACE}-codebooks"
ACTIVE_CODEBOOK_KEY = f"{STORAGE_NAMESPACE}-activeCodebook"
APPEARANCE_KEY = f"{STORAGE_NAMESPACE}-theme"

APPEARANCES = ("light", "dark")
DEFAULT_APPEARANCE = "light"

# ---------------------------------------------------------------------------
# Classification service (Gemini)
#
# API_KEY is accepted as a fallback name for the key.
# ---------------------------------------------------------------------------

GEMINI_API_KEY = (os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY") or "").strip()
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash").strip()

# ---------------------------------------------------------------------------
# Coding rules
# ---------------------------------------------------------------------------

UNCATEGORIZED = "Uncategorized"
SENTIMENTS = ("Positive", "Negative", "Neutral")
LOW_CONFIDENCE_THRESHOLD = 0.7

# Header keywords that mark a free-text response column (checked lowercased)
RESPONSE_COLUMN_KEYWORDS = ("response", "comment", "feedback", "suggestion", "text")

# ---------------------------------------------------------------------------
# Export file conventions
# ---------------------------------------------------------------------------

CODEBOOK_EXPORT_SUFFIX = "-codebook.csv"
RESULTS_EXPORT_FILENAME = "coded_responses_with_metadata.csv"

CODEBOOK_HEADERS = ["name", "description"]
RESULT_METADATA_HEADERS = ["Assigned Category", "Sentiment", "Confidence Score", "Reasoning"]

DEFAULT_REPORT_REQUEST = (
    "Generate a summary report based on the provided thematic analysis data. "
    "Include the following sections:\n"
    "1.  **Executive Summary:** A brief overview of the key findings.\n"
    "2.  **Theme Breakdown:** Detail each theme, its frequency, and include 2-3 "
    "illustrative quotes from the original responses.\n"
    "3.  **Key Insights & Recommendations:** Conclude with actionable insights "
    "derived from the analysis."
)
