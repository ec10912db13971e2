"""Survey definition endpoints: read, edit, history and restore."""

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from assessment_engine.models.configuration import SurveyConfiguration
from assessment_engine.models.database import get_db
from assessment_engine.routes.dependencies import get_catalog, load_survey, survey_registry
from assessment_engine.services.question_registry import QuestionRegistry
from assessment_engine.services.survey_catalog import SurveyCatalog
from assessment_engine.services.survey_configuration import (
    ConfigurationNotFoundError,
    SurveyConfigurationService,
)
from assessment_engine.services.survey_loader import SurveyValidationError, parse_survey
from assessment_engine.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/surveys")


class ConfigurationSummary(BaseModel):
    id: int
    survey_type: str
    is_active: bool
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None


def _summary(record: SurveyConfiguration) -> ConfigurationSummary:
    return ConfigurationSummary(
        id=record.id,
        survey_type=record.survey_type,
        is_active=record.is_active,
        created_by=record.created_by,
        created_at=record.created_at,
    )


@router.get("")
async def list_surveys(catalog: SurveyCatalog = Depends(get_catalog)) -> dict:
    """Survey types shipped with the service."""
    return {"surveys": catalog.loader.list_surveys()}


@router.get("/{survey_type}")
async def get_survey(
    survey_type: str,
    catalog: SurveyCatalog = Depends(get_catalog),
    db: Session = Depends(get_db),
) -> dict:
    """Current definition of a survey type."""
    survey = load_survey(survey_type, catalog, db)
    return survey.model_dump(mode="json", by_alias=True, exclude_none=True)


@router.get("/{survey_type}/questions")
async def get_question_reference(registry: QuestionRegistry = Depends(survey_registry)) -> list[dict]:
    """Question reference table (one row per question and grid prompt)."""
    return registry.reference_rows()


@router.put("/{survey_type}", response_model=ConfigurationSummary)
async def save_survey(
    survey_type: str,
    definition: dict[str, Any] = Body(...),
    created_by: Optional[str] = Query(default=None),
    catalog: SurveyCatalog = Depends(get_catalog),
    db: Session = Depends(get_db),
) -> ConfigurationSummary:
    """Store an edited definition and make it the active one."""
    try:
        survey = parse_survey(definition, f"{survey_type} (submitted)")
    except SurveyValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    record = SurveyConfigurationService(db, catalog.loader).save_survey(
        survey, survey_type, created_by=created_by
    )
    catalog.refresh(survey_type, db)
    return _summary(record)


@router.get("/{survey_type}/history", response_model=list[ConfigurationSummary])
async def configuration_history(
    survey_type: str,
    catalog: SurveyCatalog = Depends(get_catalog),
    db: Session = Depends(get_db),
) -> list[ConfigurationSummary]:
    """Stored definitions for a survey type, newest first."""
    records = SurveyConfigurationService(db, catalog.loader).history(survey_type)
    return [_summary(record) for record in records]


@router.post("/configurations/{configuration_id}/restore", response_model=ConfigurationSummary)
async def restore_configuration(
    configuration_id: int,
    catalog: SurveyCatalog = Depends(get_catalog),
    db: Session = Depends(get_db),
) -> ConfigurationSummary:
    """Make a copy of an earlier definition the active one."""
    try:
        record = SurveyConfigurationService(db, catalog.loader).restore(configuration_id)
    except ConfigurationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    catalog.refresh(record.survey_type, db)
    return _summary(record)
