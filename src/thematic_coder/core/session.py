"""
Explicit session object for one user's working state.

Everything the pages read or change (codebooks, the current upload, the
running result set, the pending suggestion batch, report text and chat
history) hangs off AnalysisSession. State crosses the storage boundary only
in from_storage() and flush().
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, List, Optional, Protocol, Sequence, Tuple

import logging
import threading

from thematic_coder.config import (
    ACTIVE_CODEBOOK_KEY,
    APPEARANCE_KEY,
    APPEARANCES,
    CODEBOOKS_KEY,
    DEFAULT_APPEARANCE,
    LOW_CONFIDENCE_THRESHOLD,
    UNCATEGORIZED,
)
from thematic_coder.core.classifier import ClassificationError
from thematic_coder.core.column_roles import detect_response_column
from thematic_coder.core.models import AnnotationResult, Category, MergeMode, ResultSet
from thematic_coder.core.persistence import JsonStateStore
from thematic_coder.core.reconciler import ReconcileError, decode_annotations, reconcile
from thematic_coder.core.report import ChatMessage, append_to_report
from thematic_coder.core.row_codec import (
    codebook_filename,
    results_filename,
    serialize_categories,
    serialize_results,
)
from thematic_coder.core.suggestions import SuggestionWorkflow, WorkflowStateError
from thematic_coder.core.tabular_parser import ParsedTable, parse_table
from thematic_coder.core.taxonomy_store import NoActiveTaxonomyError, TaxonomyStore

logger = logging.getLogger(__name__)


class AnalysisRunError(Exception):
    """Raised when a classification, report or chat call fails as a whole."""


class RunInProgressError(Exception):
    """Raised when a request is issued while the same kind of request is still in flight."""


class MergeDecisionRequired(Exception):
    """Raised when a run would touch non-empty results without an append/replace choice."""


class SuggestionsPendingError(Exception):
    """Raised when a new run is started while suggested categories still await approval."""


class ModelService(Protocol):
    def classify(self, responses: Sequence[str], categories: Sequence[Category]) -> str: ...

    def write_report(self, results: Sequence[AnnotationResult], request: str) -> str: ...

    def answer_question(self, results: Sequence[AnnotationResult], question: str) -> str: ...


class RequestSlot:
    """Single-slot token: at most one request of this kind in flight."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def hold(self) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise RunInProgressError(f"A {self.name} request is already in progress.")
        try:
            yield
        finally:
            self._lock.release()


@dataclass
class RunOutcome:
    finalized: int
    suggested: int

    @property
    def needs_approval(self) -> bool:
        return self.suggested > 0


class AnalysisSession:
    def __init__(
        self,
        store: Optional[TaxonomyStore] = None,
        client: Optional[ModelService] = None,
        storage: Optional[JsonStateStore] = None,
        appearance: str = DEFAULT_APPEARANCE,
    ) -> None:
        self.store = store or TaxonomyStore()
        self.client = client
        self.storage = storage
        self.appearance = appearance if appearance in APPEARANCES else DEFAULT_APPEARANCE

        self.upload: Optional[ParsedTable] = None
        self.response_column: Optional[str] = None
        self.results = ResultSet()
        self.workflow = SuggestionWorkflow()
        self.report_content = ""
        self.chat_history: List[ChatMessage] = []

        self.classification_slot = RequestSlot("classification")
        self.report_slot = RequestSlot("report")
        self.chat_slot = RequestSlot("chat")

    # ------------------------------------------------------------------
    # Storage boundary
    # ------------------------------------------------------------------

    @classmethod
    def from_storage(cls, storage: JsonStateStore, client: Optional[ModelService] = None) -> "AnalysisSession":
        codebooks = storage.load(CODEBOOKS_KEY, {})
        active = storage.load(ACTIVE_CODEBOOK_KEY, "") or None
        appearance = storage.load(APPEARANCE_KEY, DEFAULT_APPEARANCE)

        try:
            store = TaxonomyStore.from_dict(codebooks if isinstance(codebooks, dict) else {}, active=active)
        except (TypeError, ValueError) as exc:
            logger.warning("Saved codebooks could not be read, starting empty: %s", exc)
            store = TaxonomyStore()

        logger.info("Loaded %d codebook(s); active=%r.", len(store.names), store.active)
        return cls(store=store, client=client, storage=storage, appearance=appearance)

    def flush(self) -> bool:
        if self.storage is None:
            return False
        return self.storage.save_many(
            {
                CODEBOOKS_KEY: self.store.to_dict(),
                ACTIVE_CODEBOOK_KEY: self.store.active or "",
                APPEARANCE_KEY: self.appearance,
            }
        )

    def toggle_appearance(self) -> str:
        self.appearance = "dark" if self.appearance == "light" else "light"
        return self.appearance

    # ------------------------------------------------------------------
    # Codebooks
    # ------------------------------------------------------------------

    def delete_taxonomy(self, name: str) -> Optional[str]:
        """
        Delete a codebook. Deleting the active one also clears the results,
        report, chat history and any pending suggestions, since they refer
        to categories that no longer exist.
        """
        was_active = name == self.store.active
        new_active = self.store.delete(name)
        if was_active:
            self.workflow.abandon()
            self.results.clear()
            self.report_content = ""
            self.chat_history = []
        return new_active

    def import_codebook(self, text: str) -> List[Category]:
        return self.store.import_csv(text)

    def export_codebook(self) -> Tuple[str, str]:
        name = self.store.active
        if name is None:
            raise NoActiveTaxonomyError("Select or create a codebook first.")
        return codebook_filename(name), serialize_categories(self.store.categories())

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def load_responses(self, text: str) -> ParsedTable:
        """Parse an upload and guess its response column. A failed parse keeps the previous upload."""
        table = parse_table(text)
        self.upload = table
        self.response_column = detect_response_column(table.headers)
        logger.info("Upload has %d row(s); detected response column %r.", len(table.rows), self.response_column)
        return table

    def select_response_column(self, column: str) -> None:
        if self.upload is None:
            raise ValueError("Upload a file first.")
        if column not in self.upload.headers:
            raise ValueError(f"Column {column!r} is not one of {self.upload.headers}")
        self.response_column = column

    # ------------------------------------------------------------------
    # Classification run
    # ------------------------------------------------------------------

    @property
    def needs_merge_decision(self) -> bool:
        return bool(self.results)

    def run_classification(self, mode: Optional[MergeMode] = None) -> RunOutcome:
        """
        Code the current upload against the active codebook.

        The append/replace choice is captured once here and applied to the
        immediately final results and, later, to the approved suggestions:
        it takes effect at the first commit of the run, and anything
        committed afterwards in the same run is appended.

        Nothing is mutated if the call, decoding or matching fails.
        """
        if self.workflow.is_pending:
            raise SuggestionsPendingError("Finish or close the pending category suggestions first.")
        if self.results and mode is None:
            raise MergeDecisionRequired("Existing results found: choose to append or replace.")
        mode = mode or MergeMode.REPLACE

        categories = self.store.categories()
        if not categories:
            raise AnalysisRunError("Please define a codebook and provide some responses to code.")
        if self.upload is None or not self.upload.rows:
            raise AnalysisRunError("Please upload some responses to code.")
        if not self.response_column:
            raise AnalysisRunError("Please choose the column that holds the responses.")
        if self.client is None:
            raise AnalysisRunError("No classification service is configured.")

        rows = list(self.upload.rows)
        column = self.response_column
        with self.classification_slot.hold():
            try:
                raw = self.client.classify([row.get(column, "") for row in rows], categories)
                records = decode_annotations(raw)
                outcome = reconcile(rows, column, categories, records)
            except (ClassificationError, ReconcileError) as exc:
                logger.error("Classification run failed: %s", exc)
                raise AnalysisRunError(
                    f"An error occurred while communicating with the API. Please try again.\nDetails: {exc}"
                ) from exc

        remaining = mode
        if outcome.finalized or not outcome.suggestions:
            self.results.merge(outcome.finalized, mode)
            remaining = MergeMode.APPEND
        self.workflow.begin(outcome.suggestions, remaining)
        return RunOutcome(finalized=len(outcome.finalized), suggested=len(outcome.suggestions))

    def finish_suggestions(self) -> List[AnnotationResult]:
        if not self.workflow.is_pending or self.workflow.mode is None:
            raise WorkflowStateError("No suggestion batch is awaiting approval.")
        mode = self.workflow.mode
        resolved = self.workflow.finish(self.store)
        self.results.merge(resolved, mode)
        return resolved

    def abandon_suggestions(self) -> None:
        self.workflow.abandon()

    # ------------------------------------------------------------------
    # Result edits
    # ------------------------------------------------------------------

    def update_result(
        self,
        index: int,
        *,
        category_name: Optional[str] = None,
        sentiment: Optional[str] = None,
    ) -> AnnotationResult:
        return self.results.update(index, category_name=category_name, sentiment=sentiment)

    def clear_results(self) -> None:
        self.results.clear()

    def low_confidence_results(self, threshold: float = LOW_CONFIDENCE_THRESHOLD) -> List[Tuple[int, AnnotationResult]]:
        return self.results.low_confidence(threshold)

    def category_options(self) -> List[str]:
        return [c.name for c in self.store.categories()] + [UNCATEGORIZED]

    def export_results(self) -> Tuple[str, str]:
        return results_filename(), serialize_results(self.results.to_list())

    # ------------------------------------------------------------------
    # Report & chat
    # ------------------------------------------------------------------

    def generate_report(self, request: str) -> str:
        if self.client is None:
            raise AnalysisRunError("No classification service is configured.")
        with self.report_slot.hold():
            try:
                content = self.client.write_report(self.results.to_list(), request)
            except ClassificationError as exc:
                raise AnalysisRunError(
                    f"An error occurred while generating the report. Details: {exc}"
                ) from exc
        self.report_content = content
        return content

    def ask(self, question: str) -> Optional[ChatMessage]:
        question = question.strip()
        if not question:
            return None
        with self.chat_slot.hold():
            self.chat_history.append(ChatMessage(role="user", text=question))
            try:
                if self.client is None:
                    raise ClassificationError("No classification service is configured.")
                answer = ChatMessage(role="model", text=self.client.answer_question(self.results.to_list(), question))
            except ClassificationError as exc:
                answer = ChatMessage(role="model", text=f"Sorry, an error occurred. Details: {exc}")
            self.chat_history.append(answer)
        return answer

    def add_to_report(self, text: str) -> str:
        self.report_content = append_to_report(self.report_content, text)
        return self.report_content
