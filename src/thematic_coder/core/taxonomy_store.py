from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import logging

from thematic_coder.config import CODEBOOK_HEADERS
from thematic_coder.core.models import Category
from thematic_coder.core.tabular_parser import scan_records

logger = logging.getLogger(__name__)


class TaxonomyError(Exception):
    """Base class for codebook validation failures. Failed operations change nothing."""


class DuplicateNameError(TaxonomyError):
    """Raised when creating a codebook whose name is already taken."""


class DuplicateCategoryError(TaxonomyError):
    """Raised when a category name already exists (case-insensitively) in the codebook."""


class UnknownTaxonomyError(TaxonomyError):
    """Raised when a codebook name does not exist."""


class NoActiveTaxonomyError(TaxonomyError):
    """Raised when a category operation needs an active codebook and none is selected."""


class TaxonomyStore:
    """
    Named codebooks (taxonomies) and the pointer to the active one.

    Codebook names are exact, case-sensitive keys. Category names inside one
    codebook are unique under case-insensitive comparison. Each method
    validates fully before mutating, so a raised TaxonomyError leaves the
    store as it was.
    """

    def __init__(
        self,
        taxonomies: Optional[Mapping[str, Sequence[Category]]] = None,
        active: Optional[str] = None,
    ) -> None:
        self._taxonomies: Dict[str, List[Category]] = {
            name: list(categories) for name, categories in (taxonomies or {}).items()
        }
        self._active: Optional[str] = None
        if active is not None and active in self._taxonomies:
            self._active = active
        else:
            self._active = self._first_name()

    # ------------------------------------------------------------------
    # Codebooks
    # ------------------------------------------------------------------

    @property
    def names(self) -> List[str]:
        return sorted(self._taxonomies)

    @property
    def active(self) -> Optional[str]:
        return self._active

    def _first_name(self) -> Optional[str]:
        names = self.names
        return names[0] if names else None

    def __contains__(self, name: object) -> bool:
        return name in self._taxonomies

    def create(self, name: str) -> str:
        """Create an empty codebook and make it active."""
        trimmed = name.strip()
        if not trimmed:
            raise TaxonomyError("Codebook name must not be blank.")
        if trimmed in self._taxonomies:
            raise DuplicateNameError(f'Codebook "{trimmed}" already exists.')
        self._taxonomies[trimmed] = []
        self._active = trimmed
        logger.info("Created codebook %r.", trimmed)
        return trimmed

    def set_active(self, name: str) -> None:
        if name not in self._taxonomies:
            raise UnknownTaxonomyError(f'Codebook "{name}" does not exist.')
        self._active = name

    def delete(self, name: str) -> Optional[str]:
        """
        Remove a codebook. If it was active, the alphabetically first
        remaining codebook (or None) becomes active. Returns the active name.
        """
        if name not in self._taxonomies:
            raise UnknownTaxonomyError(f'Codebook "{name}" does not exist.')
        del self._taxonomies[name]
        if self._active == name:
            self._active = self._first_name()
        logger.info("Deleted codebook %r; active is now %r.", name, self._active)
        return self._active

    # ------------------------------------------------------------------
    # Categories of the active codebook
    # ------------------------------------------------------------------

    def categories(self, name: Optional[str] = None) -> List[Category]:
        key = name if name is not None else self._active
        if key is None:
            return []
        if key not in self._taxonomies:
            raise UnknownTaxonomyError(f'Codebook "{key}" does not exist.')
        return list(self._taxonomies[key])

    def _active_list(self) -> List[Category]:
        if self._active is None:
            raise NoActiveTaxonomyError("Select or create a codebook first.")
        return self._taxonomies[self._active]

    def has_category(self, name: str) -> bool:
        if self._active is None:
            return False
        key = name.strip().lower()
        return any(c.key == key for c in self._taxonomies[self._active])

    def add_category(self, name: str, description: str) -> Category:
        categories = self._active_list()
        category = Category(name=name.strip(), description=description.strip())
        if not category.name or not category.description:
            raise TaxonomyError("Both a category name and a description are required.")
        if any(c.key == category.key for c in categories):
            raise DuplicateCategoryError(f'Category "{category.name}" already exists.')
        categories.append(category)
        return category

    def edit_category(self, index: int, name: str, description: str) -> Category:
        categories = self._active_list()
        if not 0 <= index < len(categories):
            raise IndexError(f"No category at position {index}.")
        category = Category(name=name.strip(), description=description.strip())
        if not category.name or not category.description:
            raise TaxonomyError("Both a category name and a description are required.")
        if any(c.key == category.key for i, c in enumerate(categories) if i != index):
            raise DuplicateCategoryError(f'Category "{category.name}" already exists.')
        categories[index] = category
        return category

    def remove_category(self, index: int) -> Category:
        categories = self._active_list()
        if not 0 <= index < len(categories):
            raise IndexError(f"No category at position {index}.")
        return categories.pop(index)

    def extend_categories(self, candidates: Iterable[Category]) -> List[Category]:
        """
        Append candidates that do not collide (case-insensitively) with the
        codebook or with an earlier candidate. First-seen order is kept.
        Returns the categories actually added.
        """
        categories = self._active_list()
        seen = {c.key for c in categories}
        added: List[Category] = []
        for candidate in candidates:
            if not candidate.name or not candidate.description or candidate.key in seen:
                continue
            seen.add(candidate.key)
            added.append(candidate)
        categories.extend(added)
        return added

    def import_rows(self, rows: Iterable[Sequence[str]]) -> List[Category]:
        """Bulk import from two-column (name, description) rows."""
        candidates = []
        for row in rows:
            if len(row) < 2:
                continue
            candidates.append(Category(name=row[0].strip(), description=row[1].strip()))
        added = self.extend_categories(candidates)
        logger.info("Imported %d of %d category row(s) into %r.", len(added), len(candidates), self._active)
        return added

    def import_csv(self, text: str) -> List[Category]:
        """
        Bulk import from codebook CSV text. A leading name,description header
        (as written by the codebook export) is skipped.
        """
        self._active_list()
        records = scan_records(text)
        if records and [v.strip().lower() for v in records[0][:2]] == CODEBOOK_HEADERS:
            records = records[1:]
        return self.import_rows(records)

    # ------------------------------------------------------------------
    # Persistence shape
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, List[Dict[str, str]]]:
        return {
            name: [{"name": c.name, "description": c.description} for c in categories]
            for name, categories in self._taxonomies.items()
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], active: Optional[str] = None) -> "TaxonomyStore":
        taxonomies: Dict[str, List[Category]] = {}
        for name, entries in (data or {}).items():
            categories: List[Category] = []
            for entry in entries or []:
                if not isinstance(entry, Mapping):
                    continue
                categories.append(
                    Category(name=str(entry.get("name", "")), description=str(entry.get("description", "")))
                )
            taxonomies[str(name)] = categories
        return cls(taxonomies, active=active)
