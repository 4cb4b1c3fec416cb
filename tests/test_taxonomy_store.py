"""
Unit tests for the codebook store
"""

import pytest

from thematic_coder.core.models import Category
from thematic_coder.core.taxonomy_store import (
    DuplicateCategoryError,
    DuplicateNameError,
    NoActiveTaxonomyError,
    TaxonomyError,
    TaxonomyStore,
    UnknownTaxonomyError,
)


class TestCodebooks:
    """Test cases for codebook create/select/delete"""

    def setup_method(self):
        """Set up test fixtures"""
        self.store = TaxonomyStore()

    def test_create_makes_active(self):
        """Test a new codebook becomes the active one"""
        self.store.create("  Employees ")
        assert self.store.active == "Employees"
        assert self.store.categories() == []

    def test_duplicate_name(self):
        """Test codebook names must be unique"""
        self.store.create("Employees")
        with pytest.raises(DuplicateNameError):
            self.store.create("Employees")
        assert self.store.names == ["Employees"]

    def test_names_are_case_sensitive(self):
        """Test codebook keys are compared exactly"""
        self.store.create("Employees")
        self.store.create("employees")
        assert self.store.names == ["Employees", "employees"]

    def test_blank_name(self):
        """Test a blank codebook name is rejected"""
        with pytest.raises(TaxonomyError):
            self.store.create("   ")

    def test_delete_active_reassigns_first_remaining(self):
        """Test deleting the active codebook picks the alphabetically first one left"""
        for name in ["Gamma", "Alpha", "Beta"]:
            self.store.create(name)
        self.store.set_active("Beta")

        assert self.store.delete("Beta") == "Alpha"
        assert self.store.active == "Alpha"

    def test_delete_last(self):
        """Test deleting the only codebook leaves none active"""
        self.store.create("Only")
        assert self.store.delete("Only") is None
        assert self.store.active is None

    def test_delete_inactive_keeps_active(self):
        """Test deleting another codebook leaves the active pointer alone"""
        self.store.create("Alpha")
        self.store.create("Beta")
        assert self.store.delete("Alpha") == "Beta"

    def test_unknown(self):
        """Test operations on unknown codebooks fail"""
        with pytest.raises(UnknownTaxonomyError):
            self.store.set_active("nope")
        with pytest.raises(UnknownTaxonomyError):
            self.store.delete("nope")

    def test_initial_active_falls_back(self):
        """Test a missing saved pointer falls back to the first name"""
        store = TaxonomyStore({"b": [], "a": []}, active="gone")
        assert store.active == "a"


class TestCategories:
    """Test cases for category rules in the active codebook"""

    def setup_method(self):
        """Set up test fixtures"""
        self.store = TaxonomyStore()
        self.store.create("Survey")
        self.store.add_category("Support", "Help desk interactions")

    def test_case_insensitive_duplicate(self):
        """Test adding the same name in another case fails"""
        with pytest.raises(DuplicateCategoryError):
            self.store.add_category("support", "Again")
        assert [c.name for c in self.store.categories()] == ["Support"]

    def test_requires_name_and_description(self):
        """Test both fields are required"""
        with pytest.raises(TaxonomyError):
            self.store.add_category("Pricing", "  ")

    def test_requires_active(self):
        """Test category operations need an active codebook"""
        store = TaxonomyStore()
        with pytest.raises(NoActiveTaxonomyError):
            store.add_category("A", "B")

    def test_remove_by_position(self):
        """Test removal by index"""
        self.store.add_category("Pricing", "Cost")
        removed = self.store.remove_category(0)
        assert removed.name == "Support"
        assert [c.name for c in self.store.categories()] == ["Pricing"]
        with pytest.raises(IndexError):
            self.store.remove_category(5)

    def test_edit(self):
        """Test editing keeps uniqueness but allows renaming itself"""
        self.store.add_category("Pricing", "Cost")
        self.store.edit_category(0, "SUPPORT", "Renamed case")
        assert self.store.categories()[0] == Category("SUPPORT", "Renamed case")
        with pytest.raises(DuplicateCategoryError):
            self.store.edit_category(0, "pricing", "clash")

    def test_categories_scoped_per_codebook(self):
        """Test the same category name may exist in another codebook"""
        self.store.create("Other")
        self.store.add_category("support", "Fine here")
        assert self.store.categories("Survey")[0].name == "Support"
        assert self.store.categories()[0].name == "support"

    def test_import_dedupes_and_keeps_order(self):
        """Test bulk import skips collisions, first seen wins"""
        added = self.store.import_csv(
            "name,description\n"
            "support,duplicate of existing\n"
            "Pricing,Cost mentions\n"
            "pricing,duplicate within file\n"
            'Speed,"Fast, or slow"\n'
            "NoDescription\n"
        )

        assert [c.name for c in added] == ["Pricing", "Speed"]
        assert self.store.categories() == [
            Category("Support", "Help desk interactions"),
            Category("Pricing", "Cost mentions"),
            Category("Speed", "Fast, or slow"),
        ]

    def test_import_without_header(self):
        """Test a headerless two-column file imports every row"""
        added = self.store.import_csv("Pricing,Cost\nSpeed,Latency\n")
        assert [c.name for c in added] == ["Pricing", "Speed"]

    def test_dict_round_trip(self):
        """Test persistence shape"""
        data = self.store.to_dict()
        restored = TaxonomyStore.from_dict(data, active="Survey")
        assert restored.active == "Survey"
        assert restored.categories() == self.store.categories()
