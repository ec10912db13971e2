"""In-process holder for the current survey definition.

One store exists per survey type for the lifetime of the application. Code
that renders or reports on a survey reads ``get_snapshot()``; code that needs
to react to an administrator editing the survey calls ``subscribe()``.
"""

from typing import Callable, Optional

from assessment_engine.schemas.survey import Survey
from assessment_engine.logging_config import get_logger

logger = get_logger(__name__)

SurveyListener = Callable[[Survey], None]


class SurveyDefinitionStore:
    """Observable container for one survey type's definition."""

    def __init__(self, survey_type: str, survey: Optional[Survey] = None):
        self.survey_type = survey_type
        self._survey = survey
        self._listeners: list[SurveyListener] = []

    def get_snapshot(self) -> Optional[Survey]:
        """Return the current definition (None until first loaded)."""
        return self._survey

    def subscribe(self, callback: SurveyListener) -> Callable[[], None]:
        """Register a callback fired on every update.

        Returns:
            A function that removes the callback again. Calling it more
            than once is harmless.
        """
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def update(self, survey: Survey) -> None:
        """Replace the definition and notify subscribers in registration order."""
        self._survey = survey
        logger.info(
            f"Survey definition updated for {self.survey_type}; "
            f"notifying {len(self._listeners)} subscriber(s)"
        )
        for listener in list(self._listeners):
            listener(survey)
