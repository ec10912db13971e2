"""Remote progress store endpoints.

The survey front end loads progress on session start, saves it from its
auto-save triggers, and sends a beacon to ``/api/save-progress`` as the page
unloads. Progress is deleted once the learner submits.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from assessment_engine.models.database import get_db
from assessment_engine.routes.dependencies import (
    get_catalog,
    get_progress_store,
    get_user_id,
    load_survey,
)
from assessment_engine.schemas.progress import (
    BeaconSaveRequest,
    ProgressRecord,
    ProgressResponse,
    ProgressSaveRequest,
)
from assessment_engine.schemas.survey import Survey
from assessment_engine.services.progress_machine import ProgressStateMachine
from assessment_engine.services.progress_store import (
    ProgressConflictError,
    ProgressStoreError,
    RemoteProgressStore,
)
from assessment_engine.services.survey_catalog import SurveyCatalog
from assessment_engine.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api")


def _normalize(survey: Survey, record: ProgressRecord) -> ProgressStateMachine:
    """Restore a record into a state machine (clamps stale cursors)."""
    return ProgressStateMachine(survey, state=record)


def _response(survey_type: str, survey: Survey, record: Optional[ProgressRecord]) -> ProgressResponse:
    if record is None:
        return ProgressResponse(survey_type=survey_type, total_items=survey.total_items)

    machine = _normalize(survey, record)
    return ProgressResponse(
        survey_type=survey_type,
        record=record,
        progress_percent=round(machine.progress, 1),
        total_items=machine.total_items,
        is_last_item=machine.is_last_item,
    )


async def _write(
    store: RemoteProgressStore,
    survey: Survey,
    user_id: str,
    survey_type: str,
    payload: ProgressSaveRequest,
) -> ProgressRecord:
    record = _normalize(survey, payload.to_record()).to_record()
    try:
        return await store.upsert(user_id, survey_type, record, expected_version=payload.expected_version)
    except ProgressConflictError as e:
        raise HTTPException(
            status_code=409,
            detail={"message": str(e), "stored_version": e.stored_version},
        )
    except ProgressStoreError as e:
        raise HTTPException(status_code=503, detail=f"Progress store unavailable: {e}")


@router.get("/progress/{survey_type}", response_model=ProgressResponse)
async def get_progress(
    survey_type: str,
    user_id: str = Depends(get_user_id),
    catalog: SurveyCatalog = Depends(get_catalog),
    store: RemoteProgressStore = Depends(get_progress_store),
    db: Session = Depends(get_db),
) -> ProgressResponse:
    """Load stored progress for the current learner.

    Returns an empty response (no record) when nothing has been saved.
    """
    survey = load_survey(survey_type, catalog, db)
    try:
        record = await store.get(user_id, survey_type)
    except ProgressStoreError as e:
        raise HTTPException(status_code=503, detail=f"Progress store unavailable: {e}")
    return _response(survey_type, survey, record)


@router.put("/progress/{survey_type}", response_model=ProgressResponse)
async def save_progress(
    survey_type: str,
    payload: ProgressSaveRequest,
    user_id: str = Depends(get_user_id),
    catalog: SurveyCatalog = Depends(get_catalog),
    store: RemoteProgressStore = Depends(get_progress_store),
    db: Session = Depends(get_db),
) -> ProgressResponse:
    """Upsert progress for the current learner.

    Responds 409 when ``expected_version`` is stale.
    """
    survey = load_survey(survey_type, catalog, db)
    stored = await _write(store, survey, user_id, survey_type, payload)
    logger.info(
        f"Saved progress v{stored.version}",
        extra={"user_id": user_id, "survey_type": survey_type},
    )
    return _response(survey_type, survey, stored)


@router.delete("/progress/{survey_type}")
async def delete_progress(
    survey_type: str,
    user_id: str = Depends(get_user_id),
    store: RemoteProgressStore = Depends(get_progress_store),
) -> dict:
    """Delete stored progress after the learner submits."""
    try:
        deleted = await store.delete(user_id, survey_type)
    except ProgressStoreError as e:
        raise HTTPException(status_code=503, detail=f"Progress store unavailable: {e}")
    return {"deleted": deleted}


@router.post("/save-progress", status_code=202)
async def beacon_save(
    payload: BeaconSaveRequest,
    catalog: SurveyCatalog = Depends(get_catalog),
    store: RemoteProgressStore = Depends(get_progress_store),
    db: Session = Depends(get_db),
) -> dict:
    """Exit-time save sent as a beacon; the sender never reads the reply."""
    survey = load_survey(payload.survey_type, catalog, db)
    stored = await _write(store, survey, payload.user_id, payload.survey_type, payload)
    return {"status": "saved", "version": stored.version}
