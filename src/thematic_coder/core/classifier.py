"""
Gemini client for the three model calls the app makes: coding responses
against the codebook, writing a report, and answering chat questions.

Only this module talks to the SDK. Callers get plain strings back and see
every failure as ClassificationError.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

import logging

from google import genai

from thematic_coder.config import GEMINI_API_KEY, GEMINI_MODEL, UNCATEGORIZED
from thematic_coder.core.models import AnnotationResult, Category
from thematic_coder.core.report import results_context

logger = logging.getLogger(__name__)


class ClassificationError(Exception):
    """Raised when the model service is unreachable, rejects the call, or replies with nothing."""


CLASSIFY_INSTRUCTION = f"""You are an expert qualitative data analyst. Your task is to categorize user-provided text responses into a set of predefined themes.
- Analyze each response carefully.
- Assign the single most appropriate theme from the provided list.
- Determine the sentiment of the response (Positive, Negative, or Neutral).
- Provide a confidence score from 0.0 (not confident at all) to 1.0 (completely confident).
- Provide a brief reasoning for your choice.
- Return exactly one result per response, in the order given, repeating the response text verbatim in originalResponse.
- Only use the themes provided. If no theme fits, assign "{UNCATEGORIZED}" and, when a new theme would clearly fit, propose it in suggestedCategory with a short name and a one-sentence description."""

REPORT_INSTRUCTION = (
    "You are an expert report writer specializing in qualitative data analysis. Write a "
    "comprehensive, well-structured report in Markdown format based on the user's prompt and "
    "the provided JSON data of coded survey responses. Use headings, lists, and bold text to "
    "format the report clearly."
)

CHAT_INSTRUCTION = (
    "You are a helpful data analyst. Answer the user's question based ONLY on the provided "
    "JSON data of coded survey responses. Be concise and clear."
)

RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "results": {
            "type": "ARRAY",
            "description": "An array of coding results, one for each user response.",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "originalResponse": {"type": "STRING", "description": "The original response text from the user."},
                    "categoryName": {"type": "STRING", "description": "The name of the theme assigned to the response."},
                    "sentiment": {
                        "type": "STRING",
                        "enum": ["Positive", "Negative", "Neutral"],
                        "description": "The sentiment of the response.",
                    },
                    "confidenceScore": {"type": "NUMBER", "description": "A score between 0.0 and 1.0 indicating confidence."},
                    "reasoning": {"type": "STRING", "description": "A brief justification for the assigned theme."},
                    "suggestedCategory": {
                        "type": "OBJECT",
                        "description": "A proposed new theme, only when no existing theme fits.",
                        "properties": {
                            "name": {"type": "STRING"},
                            "description": {"type": "STRING"},
                        },
                    },
                },
                "required": ["originalResponse", "categoryName", "sentiment", "confidenceScore", "reasoning"],
            },
        },
    },
    "required": ["results"],
}


def build_classification_prompt(responses: Sequence[str], categories: Sequence[Category]) -> str:
    definitions = "\n".join(f"- {c.name}: {c.description}" for c in categories)
    listed = "\n".join(f'- "{r}"' for r in responses)
    return (
        f"Here is the codebook (themes):\n{definitions}\n\n"
        f"Please code the following responses:\n{listed}"
    )


class GeminiClassificationClient:
    """
    Thin wrapper over google-genai's `models.generate_content`.

    The SDK client is created lazily so the app can start (and show the
    codebook pages) without an API key. No retries are configured; a failed
    call is reported once and the user decides whether to try again.
    """

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None) -> None:
        self.api_key = (api_key if api_key is not None else GEMINI_API_KEY).strip()
        self.model = model or GEMINI_MODEL
        self._client: Optional[genai.Client] = None

    def _get_client(self) -> genai.Client:
        if self._client is None:
            if not self.api_key:
                raise ClassificationError("No Gemini API key configured (set GEMINI_API_KEY).")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def _generate(self, contents: str, config: Dict[str, Any]) -> str:
        client = self._get_client()
        try:
            response = client.models.generate_content(model=self.model, contents=contents, config=config)
        except Exception as exc:
            raise ClassificationError(f"Gemini request failed: {exc}") from exc

        text = response.text
        if not text:
            raise ClassificationError("Gemini returned an empty response.")
        return text

    def classify(self, responses: Sequence[str], categories: Sequence[Category]) -> str:
        """Return the raw JSON text of the coding results, in upload order."""
        logger.info("Classifying %d response(s) against %d categor(ies).", len(responses), len(categories))
        return self._generate(
            build_classification_prompt(responses, categories),
            {
                "system_instruction": CLASSIFY_INSTRUCTION,
                "response_mime_type": "application/json",
                "response_schema": RESPONSE_SCHEMA,
            },
        )

    def write_report(self, results: Sequence[AnnotationResult], request: str) -> str:
        prompt = (
            f"Here is the thematic analysis data:\n\n{results_context(results)}\n\n"
            f"Based on that data, please fulfill the following request:\n\n{request}"
        )
        return self._generate(prompt, {"system_instruction": REPORT_INSTRUCTION})

    def answer_question(self, results: Sequence[AnnotationResult], question: str) -> str:
        prompt = (
            f"Based on the following coded data:\n\n{results_context(results)}\n\n"
            f'Please answer this question: "{question}"'
        )
        return self._generate(prompt, {"system_instruction": CHAT_INSTRUCTION})
