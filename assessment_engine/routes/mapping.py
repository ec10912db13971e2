"""Column auto-mapping endpoints used by the response import screen."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from assessment_engine.config import get_settings
from assessment_engine.models.database import get_db
from assessment_engine.routes.dependencies import get_catalog, load_registry
from assessment_engine.schemas.submission import MappingSuggestion
from assessment_engine.services.auto_mapper import auto_map_columns, get_mapping_suggestions
from assessment_engine.services.survey_catalog import SurveyCatalog

router = APIRouter(prefix="/api/mapping")


class MappingRequest(BaseModel):
    headers: list[str] = Field(default_factory=list)
    survey_type: Optional[str] = None


@router.post("/auto-map")
async def auto_map(
    payload: MappingRequest,
    catalog: SurveyCatalog = Depends(get_catalog),
    db: Session = Depends(get_db),
) -> dict:
    """Map column headers to question ids; weak matches are omitted."""
    survey_type = payload.survey_type or get_settings().default_survey_type
    registry = load_registry(survey_type, catalog, db)
    return {"mapping": auto_map_columns(payload.headers, registry)}


@router.post("/suggestions", response_model=list[MappingSuggestion])
async def suggestions(
    payload: MappingRequest,
    catalog: SurveyCatalog = Depends(get_catalog),
    db: Session = Depends(get_db),
) -> list[MappingSuggestion]:
    """Best candidate and score for every header, for reviewing mappings."""
    survey_type = payload.survey_type or get_settings().default_survey_type
    registry = load_registry(survey_type, catalog, db)
    return get_mapping_suggestions(payload.headers, registry)
