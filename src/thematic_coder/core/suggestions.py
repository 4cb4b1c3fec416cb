from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

import logging

from thematic_coder.config import UNCATEGORIZED
from thematic_coder.core.models import AnnotationResult, Category, MergeMode
from thematic_coder.core.taxonomy_store import TaxonomyStore

logger = logging.getLogger(__name__)


class WorkflowStateError(Exception):
    """Raised when the approval workflow is driven from the wrong state."""


class WorkflowState(str, Enum):
    IDLE = "idle"
    AWAITING_APPROVAL = "awaiting_approval"
    COMPLETED = "completed"


@dataclass
class SuggestionApproval:
    """User-editable decision about one proposed category."""
    result: AnnotationResult
    name: str
    description: str
    approved: bool = True

    @property
    def accepted(self) -> bool:
        return self.approved and bool(self.name.strip()) and bool(self.description.strip())


class SuggestionWorkflow:
    """
    Idle -> AwaitingApproval -> Completed.

    While awaiting approval, toggles and edits stay local to the workflow.
    finish() folds every accepted suggestion into the codebook in one step
    and returns all suggestion results (rejected ones as Uncategorized).
    abandon() drops the batch without touching anything.
    """

    def __init__(self) -> None:
        self.state = WorkflowState.IDLE
        self.approvals: List[SuggestionApproval] = []
        self.mode: Optional[MergeMode] = None

    @property
    def is_pending(self) -> bool:
        return self.state is WorkflowState.AWAITING_APPROVAL

    def begin(self, suggestions: Sequence[AnnotationResult], mode: MergeMode) -> bool:
        if self.is_pending:
            raise WorkflowStateError("A suggestion batch is already awaiting approval.")
        if not suggestions:
            return False
        self.approvals = [
            SuggestionApproval(
                result=result,
                name=result.suggested_category.name if result.suggested_category else "",
                description=result.suggested_category.description if result.suggested_category else "",
            )
            for result in suggestions
        ]
        self.mode = mode
        self.state = WorkflowState.AWAITING_APPROVAL
        logger.info("%d suggested categor(ies) awaiting approval.", len(self.approvals))
        return True

    def _approval(self, index: int) -> SuggestionApproval:
        if not self.is_pending:
            raise WorkflowStateError("No suggestion batch is awaiting approval.")
        return self.approvals[index]

    def set_approved(self, index: int, approved: bool) -> None:
        self._approval(index).approved = approved

    def toggle(self, index: int) -> bool:
        approval = self._approval(index)
        approval.approved = not approval.approved
        return approval.approved

    def edit(self, index: int, *, name: Optional[str] = None, description: Optional[str] = None) -> None:
        approval = self._approval(index)
        if name is not None:
            approval.name = name
        if description is not None:
            approval.description = description

    def finish(self, store: TaxonomyStore) -> List[AnnotationResult]:
        if not self.is_pending:
            raise WorkflowStateError("No suggestion batch is awaiting approval.")

        # responses point at the stored spelling of a name, not the edited one
        canonical = {c.key: c.name for c in store.categories()}
        new_categories: List[Category] = []
        resolved: List[AnnotationResult] = []
        for approval in self.approvals:
            if approval.accepted:
                category = Category(name=approval.name.strip(), description=approval.description.strip())
                if category.key not in canonical:
                    canonical[category.key] = category.name
                    new_categories.append(category)
                resolved.append(approval.result.with_category(canonical[category.key]))
            else:
                resolved.append(approval.result.with_category(UNCATEGORIZED))

        added = store.extend_categories(new_categories) if new_categories else []
        logger.info(
            "Approved %d of %d suggestion(s); %d new categor(ies) added.",
            sum(a.accepted for a in self.approvals), len(self.approvals), len(added),
        )
        self.approvals = []
        self.state = WorkflowState.COMPLETED
        return resolved

    def abandon(self) -> None:
        if self.is_pending:
            logger.info("Abandoned %d pending suggestion(s).", len(self.approvals))
        self.approvals = []
        self.mode = None
        self.state = WorkflowState.IDLE
