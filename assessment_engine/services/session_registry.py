"""Live progress sessions for learners taking a survey through the API.

One ``ProgressSession`` runs per (user, survey type) while the learner is
active. The registry is created at startup, kept on ``app.state`` and closes
every session (stopping its timers) at shutdown.
"""

import asyncio
from typing import Optional

from assessment_engine.schemas.survey import Survey
from assessment_engine.services.notifications import CollectingNotifier
from assessment_engine.services.progress_machine import ProgressStateMachine
from assessment_engine.services.progress_session import ProgressSession
from assessment_engine.services.progress_store import LocalProgressCache, RemoteProgressStore
from assessment_engine.logging_config import get_logger

logger = get_logger(__name__)


class SessionNotFoundError(Exception):
    """Raised when no session is open for a (user, survey type)."""
    pass


class SessionRegistry:
    """Opens, looks up and closes progress sessions.

    Attributes:
        remote: Remote progress store shared by every session
        local: Local durable cache shared by every session
    """

    def __init__(
        self,
        remote: RemoteProgressStore,
        local: Optional[LocalProgressCache] = None,
        **session_options,
    ):
        self.remote = remote
        self.local = local or LocalProgressCache()
        self.session_options = session_options
        self._sessions: dict[tuple[str, str], ProgressSession] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    async def open(
        self,
        user_id: str,
        survey_type: str,
        survey: Survey,
        collect_participant_info: bool = False,
    ) -> tuple[ProgressSession, Optional[str]]:
        """Return the learner's session, starting one if none is open.

        Returns:
            The session and where its state was loaded from ("remote",
            "local", "active" for an already open session, or None)
        """
        key = (user_id, survey_type)
        async with self._lock:
            session = self._sessions.get(key)
            if session is not None:
                return session, "active"

            session = ProgressSession(
                ProgressStateMachine(survey, collect_participant_info=collect_participant_info),
                user_id,
                survey_type,
                self.remote,
                self.local,
                notifier=CollectingNotifier(),
                **self.session_options,
            )
            source = await session.start()
            self._sessions[key] = session
            return session, source

    def get(self, user_id: str, survey_type: str) -> ProgressSession:
        """Look up an open session.

        Raises:
            SessionNotFoundError: If no session is open
        """
        session = self._sessions.get((user_id, survey_type))
        if session is None:
            raise SessionNotFoundError(f"No open session for survey '{survey_type}'")
        return session

    async def close(self, user_id: str, survey_type: str) -> bool:
        session = self._sessions.pop((user_id, survey_type), None)
        if session is None:
            return False
        await session.close()
        return True

    async def close_all(self) -> None:
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for session in sessions:
            await session.close()
        if sessions:
            logger.info(f"Closed {len(sessions)} progress sessions")
