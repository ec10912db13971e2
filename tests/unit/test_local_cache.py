"""Unit tests for the local progress cache."""

from pathlib import Path

import pytest

from assessment_engine.config import get_settings
from assessment_engine.schemas.progress import ProgressRecord
from assessment_engine.services.progress_store import LocalProgressCache


@pytest.fixture
def cache(tmp_path) -> LocalProgressCache:
    return LocalProgressCache(str(tmp_path / "cache"))


class TestLocalProgressCache:
    """Tests for LocalProgressCache."""

    def test_read_missing(self, cache):
        assert cache.read("user-1", "leadership_assessment") is None

    def test_write_then_read(self, cache):
        record = ProgressRecord(current_section=2, current_question=1, answers={"a": "1"}, version=3)
        cache.write("user-1", "leadership_assessment", record)

        loaded = cache.read("user-1", "leadership_assessment")
        assert loaded.current_section == 2
        assert loaded.answers == {"a": "1"}
        assert loaded.version == 3
        assert loaded.updated_at is not None

    def test_write_replaces(self, cache):
        cache.write("user-1", "s", ProgressRecord(answers={"a": "1"}))
        cache.write("user-1", "s", ProgressRecord(answers={"b": "2"}))
        assert cache.read("user-1", "s").answers == {"b": "2"}

    def test_keys_are_separate(self, cache):
        cache.write("user-1", "s", ProgressRecord(answers={"a": "1"}))
        assert cache.read("user-2", "s") is None
        assert cache.read("user-1", "other") is None

    def test_delete(self, cache):
        cache.write("user-1", "s", ProgressRecord())
        assert cache.delete("user-1", "s") is True
        assert cache.delete("user-1", "s") is False
        assert cache.read("user-1", "s") is None

    def test_corrupt_file_treated_as_missing(self, cache):
        cache.write("user-1", "s", ProgressRecord())
        cache._path("user-1", "s").write_text("{not json", encoding="utf-8")
        assert cache.read("user-1", "s") is None

    def test_default_directory_from_settings(self):
        assert LocalProgressCache().cache_dir == Path(get_settings().local_cache_dir)
