"""
Unit tests for results and the running result set
"""

import pytest

from thematic_coder.core.models import AnnotationResult, MergeMode, ResultSet

from tests.conftest import make_result


class TestAnnotationResult:
    """Test cases for AnnotationResult"""

    def test_requires_source_column(self):
        """Test raw_row must contain the source column"""
        with pytest.raises(ValueError):
            AnnotationResult("Support", "Neutral", 0.5, "r", "comment", {"id": "1"})

    def test_rejects_unknown_sentiment(self):
        """Test sentiment is limited to Positive/Negative/Neutral"""
        with pytest.raises(ValueError):
            make_result("ok", sentiment="Mixed")

    def test_owns_row_copy(self):
        """Test the result keeps its own copy of the row"""
        row = {"comment": "ok"}
        result = AnnotationResult("Support", "Neutral", 0.5, "r", "comment", row)
        row["comment"] = "changed"
        assert result.response_text == "ok"


class TestResultSet:
    """Test cases for ResultSet"""

    def setup_method(self):
        """Set up test fixtures"""
        self.initial = [make_result(f"r{i}") for i in range(5)]
        self.results = ResultSet(self.initial)

    def test_append(self):
        """Test append keeps the originals first and in order"""
        self.results.merge([make_result("n1"), make_result("n2"), make_result("n3")], MergeMode.APPEND)

        assert len(self.results) == 8
        assert [r.response_text for r in self.results][:5] == ["r0", "r1", "r2", "r3", "r4"]
        assert all(self.results[i] is self.initial[i] for i in range(5))

    def test_replace(self):
        """Test replace drops earlier results"""
        self.results.merge([make_result("n1"), make_result("n2"), make_result("n3")], MergeMode.REPLACE)
        assert [r.response_text for r in self.results] == ["n1", "n2", "n3"]

    def test_update_fields(self):
        """Test post-hoc edits change only the chosen fields"""
        updated = self.results.update(2, category_name="Pricing", sentiment="Negative")

        assert updated.category_name == "Pricing"
        assert updated.sentiment == "Negative"
        assert self.results[2].response_text == "r2"
        assert self.results[1].category_name == "Support"

    def test_invalid_edit_leaves_set_unchanged(self):
        """Test a rejected edit does not replace the result"""
        with pytest.raises(ValueError):
            self.results.update(0, sentiment="Angry")
        assert self.results[0] is self.initial[0]

    def test_low_confidence(self):
        """Test the low-confidence filter keeps positions"""
        results = ResultSet([make_result("a", confidence=0.9), make_result("b", confidence=0.3)])
        assert [(i, r.response_text) for i, r in results.low_confidence()] == [(1, "b")]

    def test_clear_and_frame(self):
        """Test clearing and the DataFrame view"""
        frame = self.results.to_frame()
        assert list(frame["Response"]) == ["r0", "r1", "r2", "r3", "r4"]

        self.results.clear()
        assert len(self.results) == 0
        assert not self.results
        assert self.results.to_frame().empty
