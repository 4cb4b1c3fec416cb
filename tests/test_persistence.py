"""
Unit tests for the JSON state file
"""

from thematic_coder.core.persistence import JsonStateStore


class TestJsonStateStore:
    """Test cases for JsonStateStore"""

    def test_missing_file_gives_default(self, tmp_path):
        """Test load-or-default on a fresh profile"""
        store = JsonStateStore(tmp_path / "state.json")
        assert store.load("thematicCoder-codebooks", {}) == {}

    def test_save_then_load(self, tmp_path):
        """Test values survive a new store instance"""
        path = tmp_path / "nested" / "state.json"
        assert JsonStateStore(path).save("k", {"a": [1, 2]}) is True
        assert JsonStateStore(path).load("k") == {"a": [1, 2]}

    def test_save_keeps_other_keys(self, tmp_path):
        """Test saving one key does not drop the others"""
        store = JsonStateStore(tmp_path / "state.json")
        store.save("a", 1)
        store.save("b", 2)
        assert store.load("a") == 1
        assert store.load("b") == 2

    def test_corrupt_file_gives_default(self, tmp_path):
        """Test unreadable JSON is ignored"""
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")
        assert JsonStateStore(path).load("k", "default") == "default"

    def test_save_failure_is_reported_not_raised(self, tmp_path):
        """Test best-effort save returns False when the folder cannot be created"""
        blocker = tmp_path / "file.txt"
        blocker.write_text("x", encoding="utf-8")
        assert JsonStateStore(blocker / "state.json").save("k", 1) is False
