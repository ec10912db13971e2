"""Submission export endpoint (CSV or Excel download)."""

from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from assessment_engine.config import get_settings
from assessment_engine.models.database import get_db
from assessment_engine.models.submission import SurveySubmissionRecord
from assessment_engine.routes.dependencies import get_catalog, load_registry
from assessment_engine.schemas.submission import ExportFormat, ExportOptions
from assessment_engine.services.export_pipeline import (
    MEDIA_TYPES,
    ExportError,
    NoSubmissionsError,
    build_export,
    export_filename,
    render,
)
from assessment_engine.services.survey_catalog import SurveyCatalog
from assessment_engine.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/exports")


@router.get("/{survey_type}")
async def export_submissions(
    survey_type: str,
    format: ExportFormat = Query(default=ExportFormat.EXCEL),
    include_only_completed: bool = Query(default=True),
    start: Optional[date] = Query(default=None),
    end: Optional[date] = Query(default=None),
    catalog: SurveyCatalog = Depends(get_catalog),
    db: Session = Depends(get_db),
) -> Response:
    """Download submissions for a survey type.

    Raises:
        HTTPException: 404 if no submissions match, 422 for an invalid
            date range, 503 if submissions cannot be read
    """
    try:
        options = ExportOptions(
            format=format,
            include_only_completed=include_only_completed,
            start=start,
            end=end,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))

    registry = load_registry(survey_type, catalog, db)

    try:
        records = SurveySubmissionRecord.query_for_export(
            db,
            survey_type,
            only_completed=options.include_only_completed,
            start=options.start,
            end=options.end,
        )
    except SQLAlchemyError as e:
        logger.error(f"Failed to read submissions for export: {e}")
        raise HTTPException(status_code=503, detail="Submissions are unavailable")

    now = datetime.now(timezone.utc)
    try:
        tables = build_export(
            [record.to_schema() for record in records],
            registry,
            options,
            now=now,
            recent_days=get_settings().recent_activity_days,
        )
        content = render(tables, options.format)
    except NoSubmissionsError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ExportError as e:
        raise HTTPException(status_code=500, detail=str(e))

    filename = export_filename(options.format, now.date())
    logger.info(f"Exported {len(tables.rows)} submissions for {survey_type} as {filename}")
    return Response(
        content=content,
        media_type=MEDIA_TYPES[options.format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
