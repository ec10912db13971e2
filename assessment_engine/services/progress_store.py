"""Progress stores: the remote database copy and the local durable cache.

Both are keyed by ``(user_id, survey_type)`` and hold a ``ProgressRecord``.
A write fully replaces the previous record for the key.
"""

import hashlib
import json
import os
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from assessment_engine.config import get_settings
from assessment_engine.models.database import SessionLocal
from assessment_engine.models.progress import SurveyProgress
from assessment_engine.schemas.progress import ProgressRecord
from assessment_engine.logging_config import get_logger

logger = get_logger(__name__)


class ProgressStoreError(Exception):
    """Raised when the remote progress store cannot be read or written."""
    pass


class ProgressConflictError(ProgressStoreError):
    """Raised when a write is based on a version that is no longer current."""

    def __init__(self, message: str, stored_version: int):
        super().__init__(message)
        self.stored_version = stored_version


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RemoteProgressStore(ABC):
    """Asynchronous key-value store for progress records."""

    @abstractmethod
    async def get(self, user_id: str, survey_type: str) -> Optional[ProgressRecord]:
        """Return the stored record, or None if there is none.

        Raises:
            ProgressStoreError: If the store cannot be read
        """

    @abstractmethod
    async def upsert(
        self,
        user_id: str,
        survey_type: str,
        record: ProgressRecord,
        expected_version: Optional[int] = None,
    ) -> ProgressRecord:
        """Insert or replace the record and return it as stored.

        Args:
            expected_version: Version the writer last saw (0 for "no record").
                When given and the stored version differs, the write is
                refused with ProgressConflictError.

        Raises:
            ProgressConflictError: If expected_version is stale
            ProgressStoreError: If the store cannot be written
        """

    @abstractmethod
    async def delete(self, user_id: str, survey_type: str) -> bool:
        """Delete the record; True if one existed.

        Raises:
            ProgressStoreError: If the store cannot be written
        """


class SqlProgressStore(RemoteProgressStore):
    """Remote progress store backed by the ``survey_progress`` table."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        conflict_guard: bool = True,
    ):
        self.session_factory = session_factory
        self.conflict_guard = conflict_guard

    @staticmethod
    def _to_record(row: SurveyProgress) -> ProgressRecord:
        return ProgressRecord(
            current_section=row.current_section,
            current_question=row.current_question,
            answers=row.answers or {},
            participant_info=row.participant_info,
            updated_at=_utc(row.updated_at),
            version=row.version,
        )

    async def get(self, user_id: str, survey_type: str) -> Optional[ProgressRecord]:
        try:
            with self.session_factory() as db:
                row = SurveyProgress.find(db, user_id, survey_type)
                return self._to_record(row) if row is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to read progress: {e}", extra={"user_id": user_id, "survey_type": survey_type})
            raise ProgressStoreError(f"Failed to read progress: {e}")

    async def upsert(
        self,
        user_id: str,
        survey_type: str,
        record: ProgressRecord,
        expected_version: Optional[int] = None,
    ) -> ProgressRecord:
        try:
            with self.session_factory() as db:
                if self.conflict_guard and expected_version is not None:
                    existing = SurveyProgress.find(db, user_id, survey_type)
                    stored_version = existing.version if existing is not None else 0
                    if stored_version != expected_version:
                        logger.warning(
                            f"Refusing stale progress write (expected v{expected_version}, "
                            f"stored v{stored_version})",
                            extra={"user_id": user_id, "survey_type": survey_type},
                        )
                        raise ProgressConflictError(
                            f"Progress was updated elsewhere (version {stored_version})",
                            stored_version=stored_version,
                        )

                row = SurveyProgress.upsert(
                    db,
                    user_id=user_id,
                    survey_type=survey_type,
                    current_section=record.current_section,
                    current_question=record.current_question,
                    answers=record.answers,
                    participant_info=record.participant_info,
                )
                db.commit()
                logger.debug(
                    f"Upserted progress v{row.version}",
                    extra={"user_id": user_id, "survey_type": survey_type},
                )
                return self._to_record(row)
        except IntegrityError as e:
            # Another writer inserted the same key between our read and insert.
            logger.warning(f"Concurrent progress insert: {e}", extra={"user_id": user_id})
            raise ProgressConflictError("Progress was created elsewhere", stored_version=-1)
        except SQLAlchemyError as e:
            logger.error(f"Failed to write progress: {e}", extra={"user_id": user_id, "survey_type": survey_type})
            raise ProgressStoreError(f"Failed to write progress: {e}")

    async def delete(self, user_id: str, survey_type: str) -> bool:
        try:
            with self.session_factory() as db:
                removed = SurveyProgress.remove(db, user_id, survey_type)
                db.commit()
                return removed
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete progress: {e}", extra={"user_id": user_id, "survey_type": survey_type})
            raise ProgressStoreError(f"Failed to delete progress: {e}")


class LocalProgressCache:
    """Durable local fallback: one JSON file per (user, survey type).

    All operations are synchronous so they can run on the page-exit path.
    Unreadable cache files are treated as missing.
    """

    def __init__(self, cache_dir: Optional[str] = None):
        if cache_dir is None:
            cache_dir = get_settings().local_cache_dir
        self.cache_dir = Path(cache_dir)

    def _path(self, user_id: str, survey_type: str) -> Path:
        digest = hashlib.sha256(f"{user_id}:{survey_type}".encode("utf-8")).hexdigest()
        return self.cache_dir / f"{digest}.json"

    def read(self, user_id: str, survey_type: str) -> Optional[ProgressRecord]:
        path = self._path(user_id, survey_type)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return ProgressRecord.model_validate(json.load(f))
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable progress cache {path.name}: {e}")
            return None

    def write(self, user_id: str, survey_type: str, record: ProgressRecord) -> None:
        """Replace the cached record.

        Raises:
            OSError: If the cache directory cannot be written
        """
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        path = self._path(user_id, survey_type)
        if record.updated_at is None:
            record = record.model_copy(update={"updated_at": datetime.now(timezone.utc)})

        tmp_path = path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(record.model_dump_json())
        os.replace(tmp_path, path)

    def delete(self, user_id: str, survey_type: str) -> bool:
        path = self._path(user_id, survey_type)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
