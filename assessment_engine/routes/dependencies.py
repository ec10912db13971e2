"""Shared FastAPI dependencies for the API routes."""

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from assessment_engine.models.database import get_db
from assessment_engine.services.progress_store import RemoteProgressStore
from assessment_engine.services.question_registry import QuestionRegistry
from assessment_engine.services.session_registry import SessionRegistry
from assessment_engine.services.survey_catalog import SurveyCatalog
from assessment_engine.services.survey_loader import SurveyNotFoundError, SurveyValidationError
from assessment_engine.schemas.survey import Survey
from assessment_engine.logging_config import get_logger

logger = get_logger(__name__)


def get_catalog(request: Request) -> SurveyCatalog:
    return request.app.state.catalog


def get_progress_store(request: Request) -> RemoteProgressStore:
    return request.app.state.progress_store


def get_session_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_user_id(x_user_id: str = Header(..., min_length=1)) -> str:
    """Learner identifier supplied by the authenticating front end."""
    return x_user_id


def load_survey(survey_type: str, catalog: SurveyCatalog, db: Session) -> Survey:
    """Resolve a survey definition, translating lookup failures to HTTP errors."""
    try:
        return catalog.survey(survey_type, db)
    except SurveyNotFoundError as e:
        logger.warning(f"Unknown survey type requested: {survey_type}")
        raise HTTPException(status_code=404, detail=str(e))
    except SurveyValidationError as e:
        logger.error(f"Survey definition for {survey_type} is invalid: {e}")
        raise HTTPException(status_code=500, detail="Survey definition is invalid")


def load_registry(survey_type: str, catalog: SurveyCatalog, db: Session) -> QuestionRegistry:
    load_survey(survey_type, catalog, db)
    return catalog.registry(survey_type, db)


def survey_registry(
    survey_type: str,
    catalog: SurveyCatalog = Depends(get_catalog),
    db: Session = Depends(get_db),
) -> QuestionRegistry:
    """Question registry for the ``survey_type`` path parameter."""
    return load_registry(survey_type, catalog, db)
