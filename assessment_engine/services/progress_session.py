"""Persistence and activity tracking for one learner's survey session.

A ``ProgressSession`` owns the save triggers for a ``ProgressStateMachine``:

- interval auto-save while any answers exist
- idle save once no activity has been seen for the idle timeout
- visibility-loss save when the page is hidden
- best-effort exit save (local write now, remote write queued)

Every remote write goes through a ``SaveCoordinator`` so only one flush is
in flight at a time. Remote failures fall back to the local cache and are
reported through the notifier; no store error escapes the session.
"""

import asyncio
from datetime import datetime
from typing import Optional

from assessment_engine.config import get_settings
from assessment_engine.schemas.progress import ProgressRecord
from assessment_engine.services.activity import ActivityMonitor, Clock, utc_now
from assessment_engine.services.notifications import LoggingNotifier, Notifier
from assessment_engine.services.progress_machine import ProgressStateMachine
from assessment_engine.services.progress_store import (
    LocalProgressCache,
    ProgressConflictError,
    ProgressStoreError,
    RemoteProgressStore,
)
from assessment_engine.services.save_coordinator import (
    SaveCoordinator,
    SaveOutcome,
    SaveRequest,
    SaveTrigger,
)
from assessment_engine.logging_config import get_logger

logger = get_logger(__name__)

RESTORED_MESSAGE = "Previous progress restored! You can continue where you left off."
SAVED_MESSAGE = "Progress saved successfully! It's safe to exit and resume later."
SAVED_LOCALLY_MESSAGE = "Could not reach the server. Your progress was saved on this device only."
CONFLICT_MESSAGE = (
    "Your progress was changed in another session. "
    "This session's answers were kept on this device and will be saved with your next change."
)
SAVE_FAILED_MESSAGE = "Failed to save progress. Please try again."
IDLE_SAVED_MESSAGE = "Your progress has been saved due to inactivity. You can safely resume later."


def _is_newer(candidate: ProgressRecord, than: ProgressRecord) -> bool:
    if candidate.updated_at is None or than.updated_at is None:
        return False
    return candidate.updated_at > than.updated_at


class ProgressSession:
    """Load, auto-save and clean up progress for one (user, survey type)."""

    def __init__(
        self,
        machine: ProgressStateMachine,
        user_id: str,
        survey_type: str,
        remote: RemoteProgressStore,
        local: LocalProgressCache,
        notifier: Optional[Notifier] = None,
        clock: Clock = utc_now,
        autosave_interval: Optional[float] = None,
        idle_timeout: Optional[float] = None,
        idle_check_interval: Optional[float] = None,
    ):
        settings = get_settings()
        self.machine = machine
        self.user_id = user_id
        self.survey_type = survey_type
        self.remote = remote
        self.local = local
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock
        self.activity = ActivityMonitor(clock)
        self.coordinator = SaveCoordinator(self._flush)

        self.autosave_interval = autosave_interval or settings.autosave_interval_seconds
        self.idle_timeout = idle_timeout or settings.idle_timeout_seconds
        self.idle_check_interval = idle_check_interval or settings.idle_check_interval_seconds
        self.conflict_guard = settings.progress_conflict_guard

        self.version = 0
        self.last_saved: Optional[datetime] = None
        self._saved_revision = machine.revision
        # Restored from a local copy newer than the remote record
        self._remote_behind = False
        self._tasks: list[asyncio.Task] = []
        self._active = False

    @property
    def _log_context(self) -> dict:
        return {"user_id": self.user_id, "survey_type": self.survey_type}

    @property
    def has_unsaved_changes(self) -> bool:
        return self._remote_behind or self.machine.revision != self._saved_revision

    @property
    def active(self) -> bool:
        return self._active

    def _has_content(self) -> bool:
        return bool(self.machine.answers) or self.machine.participant_info is not None

    # Lifecycle

    async def start(self) -> Optional[str]:
        """Load prior progress and start the save triggers.

        Returns:
            Where the state came from: "remote", "local", or None for a
            fresh start
        """
        source = await self.load()
        self.coordinator.start()
        loop = asyncio.get_running_loop()
        self._tasks = [
            loop.create_task(self._autosave_loop()),
            loop.create_task(self._idle_loop()),
        ]
        self._active = True
        logger.info(f"Progress session started (source={source})", extra=self._log_context)
        return source

    async def load(self) -> Optional[str]:
        """Restore the newest of the remote record and the local copy.

        The local copy wins when the remote store is unreachable, holds
        nothing, or holds an older record. The remote version is still
        adopted so the next save is not refused as stale.
        """
        remote_record: Optional[ProgressRecord] = None
        remote_reachable = True
        try:
            remote_record = await self.remote.get(self.user_id, self.survey_type)
        except ProgressStoreError as e:
            remote_reachable = False
            logger.warning(f"Remote progress unavailable, trying local cache: {e}", extra=self._log_context)

        local_record = self.local.read(self.user_id, self.survey_type)

        if remote_record is not None and (local_record is None or not _is_newer(local_record, remote_record)):
            record, source = remote_record, "remote"
        elif local_record is not None:
            record, source = local_record, "local"
        else:
            self._saved_revision = self.machine.revision
            return None

        self.machine.restore(record, notify=False)
        self.version = remote_record.version if remote_record is not None else record.version
        self.last_saved = record.updated_at
        self._saved_revision = self.machine.revision
        self._remote_behind = source == "local" and remote_reachable
        if self._remote_behind:
            logger.info("Local progress is newer than the remote copy", extra=self._log_context)
        if record.has_content:
            self.notifier.success(RESTORED_MESSAGE)
        return source

    async def close(self) -> None:
        """Cancel every timer and stop the save worker."""
        self._active = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []

        await self.coordinator.stop()
        logger.info("Progress session closed", extra=self._log_context)

    # Events

    def record_activity(self, kind: str) -> bool:
        if not self._active:
            return False
        return self.activity.record(kind)

    def on_visibility_change(self, hidden: bool) -> Optional[asyncio.Future]:
        """Flush when the page is hidden with unsaved changes."""
        if not self._active or not hidden or not self.has_unsaved_changes:
            return None
        return self._request(SaveTrigger.VISIBILITY)

    def on_page_exit(self) -> Optional[asyncio.Future]:
        """Best-effort save while the page is going away.

        Writes the local cache synchronously, then queues the remote write
        behind any flush already in flight. The caller need not await it.

        Returns:
            Future for the remote write, or None if there was nothing to save
        """
        if not self._active or not self.has_unsaved_changes:
            return None

        self._write_local(self._snapshot())
        return self._request(SaveTrigger.EXIT, coalesce=True)

    # Saving

    async def save(self, notify: bool = False) -> SaveOutcome:
        """Request a manual save and wait for it.

        Returns SKIPPED when another flush is already outstanding.
        """
        future = self.coordinator.request(SaveTrigger.MANUAL, notify=notify)
        if future is None:
            return SaveOutcome.SKIPPED
        return await future

    def _request(self, trigger: SaveTrigger, coalesce: bool = False) -> Optional[asyncio.Future]:
        future = self.coordinator.request(trigger, coalesce=coalesce)
        if future is not None:
            future.add_done_callback(self._log_failed_flush)
        return future

    def _log_failed_flush(self, future: asyncio.Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(f"Background save failed: {error}", extra=self._log_context)

    def _expected_version(self) -> Optional[int]:
        return self.version if self.conflict_guard else None

    def _snapshot(self) -> ProgressRecord:
        return self.machine.to_record().model_copy(
            update={"version": self.version, "updated_at": self.clock()}
        )

    def _write_local(self, record: ProgressRecord) -> bool:
        try:
            self.local.write(self.user_id, self.survey_type, record)
            return True
        except OSError as e:
            logger.error(f"Local progress write failed: {e}", extra=self._log_context)
            return False

    async def _adopt_stored_version(self, error: ProgressConflictError) -> None:
        if error.stored_version >= 0:
            self.version = error.stored_version
            return
        try:
            current = await self.remote.get(self.user_id, self.survey_type)
        except ProgressStoreError as e:
            logger.warning(f"Could not re-read progress after conflict: {e}", extra=self._log_context)
            return
        self.version = current.version if current is not None else 0

    async def _flush(self, request: SaveRequest) -> SaveOutcome:
        record = self._snapshot()
        revision = self.machine.revision
        context = {**self._log_context, "trigger": request.trigger.value}

        try:
            stored = await self.remote.upsert(
                self.user_id, self.survey_type, record, expected_version=self._expected_version()
            )
        except ProgressConflictError as e:
            logger.warning(f"Progress conflict, keeping local copy: {e}", extra=context)
            await self._adopt_stored_version(e)
            if not self._write_local(record):
                self.notifier.error(SAVE_FAILED_MESSAGE)
                return SaveOutcome.FAILED
            self._saved_revision = revision
            self._remote_behind = True
            self.notifier.warning(CONFLICT_MESSAGE)
            return SaveOutcome.CONFLICT
        except ProgressStoreError as e:
            logger.warning(f"Remote save failed, falling back to local cache: {e}", extra=context)
            if not self._write_local(record):
                self.notifier.error(SAVE_FAILED_MESSAGE)
                return SaveOutcome.FAILED
            self._saved_revision = revision
            self.last_saved = self.clock()
            self.notifier.warning(SAVED_LOCALLY_MESSAGE)
            return SaveOutcome.SAVED_LOCAL

        self.version = stored.version
        self._saved_revision = revision
        self._remote_behind = False
        self.last_saved = self.clock()
        if self.machine.revision == revision:
            # otherwise the local copy may already hold newer answers
            self._write_local(stored)
        logger.info(f"Progress saved (v{stored.version})", extra=context)
        if request.notify:
            self.notifier.success(SAVED_MESSAGE)
        return SaveOutcome.SAVED_REMOTE

    async def complete(self) -> bool:
        """Delete stored progress after final submission.

        Returns:
            True if the remote record was deleted (or absent)
        """
        self.local.delete(self.user_id, self.survey_type)
        self._saved_revision = self.machine.revision
        self._remote_behind = False
        try:
            await self.remote.delete(self.user_id, self.survey_type)
        except ProgressStoreError as e:
            logger.error(f"Failed to delete remote progress: {e}", extra=self._log_context)
            return False
        self.version = 0
        logger.info("Progress cleared after submission", extra=self._log_context)
        return True

    # Timers

    async def _autosave_loop(self) -> None:
        while True:
            await asyncio.sleep(self.autosave_interval)
            if self._has_content():
                self._request(SaveTrigger.INTERVAL)

    async def _idle_loop(self) -> None:
        while True:
            await asyncio.sleep(self.idle_check_interval)
            if not (self.activity.is_idle(self.idle_timeout) and self.has_unsaved_changes):
                continue
            future = self.coordinator.request(SaveTrigger.IDLE)
            if future is None:
                continue
            try:
                outcome = await future
            except Exception as e:
                logger.error(f"Idle save failed: {e}", extra=self._log_context)
                continue
            if outcome in (SaveOutcome.SAVED_REMOTE, SaveOutcome.SAVED_LOCAL):
                self.notifier.info(IDLE_SAVED_MESSAGE)
