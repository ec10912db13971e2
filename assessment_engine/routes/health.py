"""Health check endpoint for monitoring and deployment verification.

Verifies the service can reach the progress database and sees at least one
survey definition.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from assessment_engine.models.database import get_db
from assessment_engine.routes.dependencies import get_catalog
from assessment_engine.services.survey_catalog import SurveyCatalog
from assessment_engine.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(
    db: Session = Depends(get_db),
    catalog: SurveyCatalog = Depends(get_catalog),
) -> dict:
    """Health check endpoint.

    Returns:
        dict: Health status, database state and available survey types

    Raises:
        HTTPException: 503 if the database cannot be queried

    Example response:
        {
            "status": "healthy",
            "database": "connected",
            "surveys": ["leadership_assessment"]
        }
    """
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(
            status_code=503,
            detail="Service unavailable - database connection failed"
        )

    surveys = catalog.loader.list_surveys()
    logger.debug(f"Health check passed ({len(surveys)} surveys)")
    return {
        "status": "healthy" if surveys else "degraded",
        "database": "connected",
        "surveys": surveys,
    }
