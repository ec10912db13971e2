"""Non-blocking user notifications (the "toast" surface).

The progress session reports save results through a ``Notifier``. Sessions
opened over HTTP collect them and return them with the next response;
sessions without a caller log them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from assessment_engine.logging_config import get_logger

logger = get_logger(__name__)


class NotificationLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    level: NotificationLevel
    message: str


class Notifier(ABC):
    """Destination for user-facing notifications."""

    @abstractmethod
    def notify(self, notification: Notification) -> None:
        ...

    def info(self, message: str) -> None:
        self.notify(Notification(NotificationLevel.INFO, message))

    def success(self, message: str) -> None:
        self.notify(Notification(NotificationLevel.SUCCESS, message))

    def warning(self, message: str) -> None:
        self.notify(Notification(NotificationLevel.WARNING, message))

    def error(self, message: str) -> None:
        self.notify(Notification(NotificationLevel.ERROR, message))


class LoggingNotifier(Notifier):
    """Writes notifications to the application log."""

    _LEVELS = {
        NotificationLevel.INFO: 20,
        NotificationLevel.SUCCESS: 20,
        NotificationLevel.WARNING: 30,
        NotificationLevel.ERROR: 40,
    }

    def notify(self, notification: Notification) -> None:
        logger.log(self._LEVELS[notification.level], f"[notify] {notification.message}")


class CollectingNotifier(Notifier):
    """Keeps notifications in memory so a request can return them."""

    def __init__(self):
        self.notifications: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    def as_dicts(self) -> list[dict[str, str]]:
        return [
            {"level": n.level.value, "message": n.message}
            for n in self.notifications
        ]

    def drain(self) -> list[dict[str, str]]:
        """Return the collected notifications as dicts and forget them."""
        drained = self.as_dicts()
        self.notifications.clear()
        return drained
