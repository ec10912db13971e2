"""Survey loader service with caching and validation.

This module loads survey definitions from YAML files, validates them against
Pydantic schemas, and caches the results for performance.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from assessment_engine.config import get_settings
from assessment_engine.schemas.survey import Survey
from assessment_engine.logging_config import get_logger

logger = get_logger(__name__)


class SurveyNotFoundError(Exception):
    """Raised when a survey file is not found."""
    pass


class SurveyValidationError(Exception):
    """Raised when a survey fails validation."""
    pass


def parse_survey(raw_data: Any, source: str = "<data>") -> Survey:
    """Validate raw survey data (from YAML or a stored configuration).

    Args:
        raw_data: Parsed mapping describing the survey
        source: Label used in error messages

    Returns:
        Validated Survey object

    Raises:
        SurveyValidationError: If the data is not a valid survey
    """
    if not isinstance(raw_data, dict):
        raise SurveyValidationError(f"Survey '{source}' must be a mapping")

    try:
        return Survey.model_validate(raw_data)
    except ValidationError as e:
        logger.error(f"Validation error for survey {source}: {e}")
        raise SurveyValidationError(f"Validation failed for survey '{source}': {e}")


class SurveyLoader:
    """Service for loading and caching survey definitions.

    Surveys are loaded from ``<surveys_dir>/<survey_type>.yaml`` and validated
    against Pydantic schemas. Results are cached for performance.
    """

    def __init__(self, surveys_dir: Optional[str] = None):
        """Initialize survey loader.

        Args:
            surveys_dir: Path to surveys directory (defaults to settings.surveys_dir)
        """
        if surveys_dir is None:
            surveys_dir = get_settings().surveys_dir

        self.surveys_dir = Path(surveys_dir)

        if not self.surveys_dir.exists():
            logger.warning(f"Surveys directory not found: {self.surveys_dir}")

    @lru_cache(maxsize=128)
    def load_survey(self, survey_type: str) -> Survey:
        """Load and validate a survey from YAML file.

        Results are cached for performance. Clear cache with
        clear_cache() if needed.

        Args:
            survey_type: Survey type (matches YAML filename without .yaml)

        Returns:
            Validated Survey object

        Raises:
            SurveyNotFoundError: If survey file doesn't exist
            SurveyValidationError: If survey fails validation

        Example:
            >>> loader = SurveyLoader()
            >>> survey = loader.load_survey("leadership_assessment")
            >>> survey.sections[0].type
            <SectionType.INSTRUCTIONS: 'instructions'>
        """
        yaml_path = self.surveys_dir / f"{survey_type}.yaml"

        if not yaml_path.exists():
            logger.error(f"Survey file not found: {yaml_path}")
            raise SurveyNotFoundError(f"Survey '{survey_type}' not found at {yaml_path}")

        try:
            with open(yaml_path, 'r', encoding='utf-8') as f:
                raw_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"YAML parsing error for {survey_type}: {e}")
            raise SurveyValidationError(f"Invalid YAML in survey '{survey_type}': {e}")
        except OSError as e:
            logger.error(f"Error reading survey file {yaml_path}: {e}")
            raise SurveyValidationError(f"Error reading survey '{survey_type}': {e}")

        survey = parse_survey(raw_data, survey_type)
        logger.info(f"Successfully loaded survey: {survey_type} ({len(survey.sections)} sections)")
        return survey

    def list_surveys(self) -> list[str]:
        """List all available survey types.

        Returns:
            Sorted survey types (filenames without .yaml extension)
        """
        if not self.surveys_dir.exists():
            return []

        survey_types = [f.stem for f in self.surveys_dir.glob("*.yaml")]

        logger.debug(f"Found {len(survey_types)} surveys: {survey_types}")
        return sorted(survey_types)

    def clear_cache(self):
        """Clear the survey cache.

        Useful during development or when surveys are updated at runtime.
        """
        self.load_survey.cache_clear()
        logger.info("Survey cache cleared")


# Global singleton instance
_loader_instance: Optional[SurveyLoader] = None


def get_survey_loader() -> SurveyLoader:
    """Get global SurveyLoader instance.

    Creates singleton instance on first call.

    Returns:
        Global SurveyLoader instance
    """
    global _loader_instance
    if _loader_instance is None:
        _loader_instance = SurveyLoader()
    return _loader_instance
