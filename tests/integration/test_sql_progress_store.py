"""Integration tests for the SQL-backed remote progress store."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from assessment_engine.schemas.progress import ProgressRecord
from assessment_engine.services.progress_store import (
    ProgressConflictError,
    ProgressStoreError,
    SqlProgressStore,
)


@pytest.fixture
def store(session_factory) -> SqlProgressStore:
    return SqlProgressStore(session_factory, conflict_guard=True)


class TestSqlProgressStore:
    """Tests for SqlProgressStore."""

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        assert await store.get("user-1", "s") is None

    @pytest.mark.asyncio
    async def test_upsert_and_get(self, store):
        record = ProgressRecord(
            current_section=2,
            current_question=1,
            answers={"q": "x", "grid_0": "3"},
            participant_info={"fullName": "Ann"},
        )
        stored = await store.upsert("user-1", "s", record)

        assert stored.version == 1
        assert stored.updated_at is not None
        assert stored.updated_at.tzinfo is not None

        loaded = await store.get("user-1", "s")
        assert loaded.current_section == 2
        assert loaded.answers == {"q": "x", "grid_0": "3"}
        assert loaded.participant_info == {"fullName": "Ann"}

    @pytest.mark.asyncio
    async def test_last_write_wins_without_version(self, store):
        await store.upsert("user-1", "s", ProgressRecord(answers={"a": "1"}))
        stored = await store.upsert("user-1", "s", ProgressRecord(answers={"b": "2"}))

        assert stored.version == 2
        assert (await store.get("user-1", "s")).answers == {"b": "2"}

    @pytest.mark.asyncio
    async def test_expected_version_guard(self, store):
        """Test a write based on an old version is refused."""
        await store.upsert("user-1", "s", ProgressRecord(answers={"a": "1"}), expected_version=0)
        await store.upsert("user-1", "s", ProgressRecord(answers={"a": "2"}), expected_version=1)

        with pytest.raises(ProgressConflictError) as exc_info:
            await store.upsert("user-1", "s", ProgressRecord(answers={"a": "stale"}), expected_version=1)

        assert exc_info.value.stored_version == 2
        assert (await store.get("user-1", "s")).answers == {"a": "2"}

    @pytest.mark.asyncio
    async def test_guard_disabled(self, session_factory):
        store = SqlProgressStore(session_factory, conflict_guard=False)
        await store.upsert("user-1", "s", ProgressRecord(answers={"a": "1"}))
        stored = await store.upsert("user-1", "s", ProgressRecord(answers={"a": "2"}), expected_version=0)
        assert stored.version == 2

    @pytest.mark.asyncio
    async def test_delete(self, store):
        await store.upsert("user-1", "s", ProgressRecord())
        assert await store.delete("user-1", "s") is True
        assert await store.delete("user-1", "s") is False
        assert await store.get("user-1", "s") is None

    @pytest.mark.asyncio
    async def test_database_errors_wrapped(self):
        """Test SQLAlchemy failures surface as ProgressStoreError."""
        failing_session = MagicMock()
        failing_session.__enter__.return_value.execute.side_effect = OperationalError(
            "SELECT", {}, Exception("database is locked")
        )
        store = SqlProgressStore(lambda: failing_session)

        with pytest.raises(ProgressStoreError):
            await store.get("user-1", "s")
        with pytest.raises(ProgressStoreError):
            await store.upsert("user-1", "s", ProgressRecord())
