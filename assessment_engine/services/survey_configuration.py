"""Stored survey definitions: resolve, save, list history and restore.

Administrators may edit a survey; the edited definition is stored in the
database and takes precedence over the YAML file shipped with the service.
"""

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from assessment_engine.models.configuration import SurveyConfiguration
from assessment_engine.schemas.survey import Survey
from assessment_engine.services.survey_loader import (
    SurveyLoader,
    SurveyValidationError,
    get_survey_loader,
    parse_survey,
)
from assessment_engine.services.survey_store import SurveyDefinitionStore
from assessment_engine.logging_config import get_logger

logger = get_logger(__name__)


class ConfigurationNotFoundError(Exception):
    """Raised when a stored configuration id does not exist."""
    pass


class SurveyConfigurationService:
    """Service for reading and writing stored survey definitions."""

    def __init__(self, db: Session, loader: Optional[SurveyLoader] = None):
        self.db = db
        self.loader = loader or get_survey_loader()

    def get_active_survey(self, survey_type: str) -> Optional[Survey]:
        """Return the active stored definition, or None.

        A stored definition that no longer validates is logged and ignored
        so the caller can fall back to the shipped default.
        """
        try:
            record = SurveyConfiguration.get_active(self.db, survey_type)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching survey configuration for {survey_type}: {e}")
            return None

        if record is None:
            return None

        try:
            return parse_survey(record.configuration, f"{survey_type}#{record.id}")
        except SurveyValidationError as e:
            logger.warning(f"Ignoring invalid stored configuration {record.id}: {e}")
            return None

    def resolve_survey(self, survey_type: str) -> Survey:
        """Return the stored definition if any, otherwise the YAML default.

        Raises:
            SurveyNotFoundError: If neither exists
            SurveyValidationError: If the YAML default is invalid
        """
        survey = self.get_active_survey(survey_type)
        if survey is not None:
            return survey
        return self.loader.load_survey(survey_type)

    def save_survey(
        self,
        survey: Survey,
        survey_type: str,
        created_by: Optional[str] = None,
    ) -> SurveyConfiguration:
        """Store a new active definition, deactivating the previous one."""
        SurveyConfiguration.deactivate_all(self.db, survey_type)
        record = SurveyConfiguration(
            survey_type=survey_type,
            configuration=survey.model_dump(mode="json", by_alias=True, exclude_none=True),
            is_active=True,
            created_by=created_by,
        )
        self.db.add(record)
        self.db.commit()
        logger.info(f"Saved survey configuration {record.id} for {survey_type}")
        return record

    def history(self, survey_type: str) -> list[SurveyConfiguration]:
        """All stored definitions for a survey type, newest first."""
        return (
            self.db.query(SurveyConfiguration)
            .filter(SurveyConfiguration.survey_type == survey_type)
            .order_by(SurveyConfiguration.id.desc())
            .all()
        )

    def restore(self, configuration_id: int) -> SurveyConfiguration:
        """Copy an earlier definition into a new active row.

        Raises:
            ConfigurationNotFoundError: If the id does not exist
        """
        source = self.db.get(SurveyConfiguration, configuration_id)
        if source is None:
            raise ConfigurationNotFoundError(f"Configuration {configuration_id} not found")

        SurveyConfiguration.deactivate_all(self.db, source.survey_type)
        restored = SurveyConfiguration(
            survey_type=source.survey_type,
            configuration=dict(source.configuration),
            is_active=True,
            created_by=source.created_by,
        )
        self.db.add(restored)
        self.db.commit()
        logger.info(f"Restored configuration {configuration_id} as {restored.id}")
        return restored

    def publish(self, store: SurveyDefinitionStore) -> Survey:
        """Resolve the current definition and push it into a store."""
        survey = self.resolve_survey(store.survey_type)
        store.update(survey)
        return survey
