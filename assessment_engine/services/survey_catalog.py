"""Application-wide set of survey definition stores and their registries.

Created once at startup and kept on ``app.state``. Each survey type gets a
``SurveyDefinitionStore`` the first time it is requested; the catalog
subscribes to that store so the question registry is rebuilt whenever the
definition changes.
"""

from typing import Optional

from sqlalchemy.orm import Session

from assessment_engine.schemas.survey import Survey
from assessment_engine.services.question_registry import QuestionRegistry
from assessment_engine.services.survey_configuration import SurveyConfigurationService
from assessment_engine.services.survey_loader import SurveyLoader, get_survey_loader
from assessment_engine.services.survey_store import SurveyDefinitionStore
from assessment_engine.logging_config import get_logger

logger = get_logger(__name__)


class SurveyCatalog:
    """Lazily populated stores and registries, keyed by survey type."""

    def __init__(self, loader: Optional[SurveyLoader] = None):
        self.loader = loader or get_survey_loader()
        self._stores: dict[str, SurveyDefinitionStore] = {}
        self._registries: dict[str, QuestionRegistry] = {}

    def store(self, survey_type: str, db: Session) -> SurveyDefinitionStore:
        """Get the store for a survey type, loading it on first use.

        Raises:
            SurveyNotFoundError: If the survey type has no definition
            SurveyValidationError: If the shipped definition is invalid
        """
        store = self._stores.get(survey_type)
        if store is not None:
            return store

        store = SurveyDefinitionStore(survey_type)
        store.subscribe(lambda survey: self._rebuild_registry(survey_type, survey))
        SurveyConfigurationService(db, self.loader).publish(store)
        self._stores[survey_type] = store
        return store

    def _rebuild_registry(self, survey_type: str, survey: Survey) -> None:
        self._registries[survey_type] = QuestionRegistry.from_survey(survey)
        logger.debug(f"Rebuilt question registry for {survey_type}")

    def survey(self, survey_type: str, db: Session) -> Survey:
        return self.store(survey_type, db).get_snapshot()

    def registry(self, survey_type: str, db: Session) -> QuestionRegistry:
        self.store(survey_type, db)
        return self._registries[survey_type]

    def refresh(self, survey_type: str, db: Session) -> Survey:
        """Re-resolve the definition (after an edit) and notify subscribers."""
        store = self._stores.get(survey_type)
        if store is None:
            return self.survey(survey_type, db)
        return SurveyConfigurationService(db, self.loader).publish(store)
