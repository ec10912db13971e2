"""Tracks the last time the learner interacted with the survey."""

from datetime import datetime, timezone
from typing import Callable

from assessment_engine.logging_config import get_logger

logger = get_logger(__name__)

Clock = Callable[[], datetime]

# Event kinds that count as user activity
ACTIVITY_EVENTS = frozenset({"pointer", "keyboard", "scroll", "touch"})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ActivityMonitor:
    """Remembers the most recent tracked activity event."""

    def __init__(self, clock: Clock = utc_now):
        self.clock = clock
        self.last_activity = clock()

    def record(self, kind: str) -> bool:
        """Record an activity event; untracked kinds are ignored."""
        if kind not in ACTIVITY_EVENTS:
            logger.debug(f"Ignoring untracked activity event: {kind}")
            return False
        self.last_activity = self.clock()
        return True

    def idle_seconds(self) -> float:
        return (self.clock() - self.last_activity).total_seconds()

    def is_idle(self, timeout_seconds: float) -> bool:
        return self.idle_seconds() >= timeout_seconds
