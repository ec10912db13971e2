"""Live survey session endpoints.

A learner opens a session for a survey type, answers and navigates through
it, and reports page activity, visibility changes and exit. The session
saves progress on its own triggers; save notices are returned with the next
response. Writing the final submission is left to the portal.
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.orm import Session

from assessment_engine.models.database import get_db
from assessment_engine.routes.dependencies import (
    get_catalog,
    get_session_registry,
    get_user_id,
    load_survey,
)
from assessment_engine.schemas.progress import AnswerValue
from assessment_engine.services.progress_session import ProgressSession
from assessment_engine.services.save_coordinator import SaveOutcome
from assessment_engine.services.session_registry import SessionNotFoundError, SessionRegistry
from assessment_engine.services.survey_catalog import SurveyCatalog
from assessment_engine.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/sessions")

INCOMPLETE_ANSWER_MESSAGE = "Please answer the current question before continuing."


class AnswerRequest(BaseModel):
    value: AnswerValue
    prompt_index: Optional[int] = Field(default=None, ge=0)


class OptionRequest(BaseModel):
    option: str


class ActivityRequest(BaseModel):
    kind: str


class VisibilityRequest(BaseModel):
    hidden: bool


class SessionState(BaseModel):
    """Snapshot of a session returned by every session endpoint."""
    survey_type: str
    source: Optional[str] = None
    current_section: int
    current_question: int
    section_title: str
    collecting_participant_info: bool
    question: Optional[dict[str, Any]] = None
    answers: dict[str, Any] = Field(default_factory=dict)
    progress_percent: float
    is_last_item: bool
    is_current_answered: bool
    has_unsaved_changes: bool
    completed: bool = False
    outcome: Optional[SaveOutcome] = None
    notifications: list[dict[str, str]] = Field(default_factory=list)


def _state(
    session: ProgressSession,
    source: Optional[str] = None,
    completed: bool = False,
    outcome: Optional[SaveOutcome] = None,
) -> SessionState:
    machine = session.machine
    question = machine.current_question_data
    return SessionState(
        survey_type=session.survey_type,
        source=source,
        current_section=machine.current_section,
        current_question=machine.current_question,
        section_title=machine.current_section_data.title,
        collecting_participant_info=machine.collecting_participant_info,
        question=question.model_dump(mode="json", by_alias=True, exclude_none=True) if question else None,
        answers=machine.answers,
        progress_percent=round(machine.progress, 1),
        is_last_item=machine.is_last_item,
        is_current_answered=machine.is_current_answered(),
        has_unsaved_changes=session.has_unsaved_changes,
        completed=completed,
        outcome=outcome,
        notifications=session.notifier.drain(),
    )


def _session(registry: SessionRegistry, user_id: str, survey_type: str) -> ProgressSession:
    try:
        return registry.get(user_id, survey_type)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{survey_type}", response_model=SessionState)
async def open_session(
    survey_type: str,
    collect_participant_info: bool = Query(default=False),
    user_id: str = Depends(get_user_id),
    catalog: SurveyCatalog = Depends(get_catalog),
    registry: SessionRegistry = Depends(get_session_registry),
    db: Session = Depends(get_db),
) -> SessionState:
    """Open (or rejoin) the learner's session, restoring saved progress."""
    survey = load_survey(survey_type, catalog, db)
    session, source = await registry.open(
        user_id, survey_type, survey, collect_participant_info=collect_participant_info
    )
    return _state(session, source=source)


@router.get("/{survey_type}", response_model=SessionState)
async def get_session(
    survey_type: str,
    user_id: str = Depends(get_user_id),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionState:
    return _state(_session(registry, user_id, survey_type))


@router.post("/{survey_type}/answer", response_model=SessionState)
async def answer(
    survey_type: str,
    payload: AnswerRequest,
    user_id: str = Depends(get_user_id),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionState:
    """Answer the current question; ``prompt_index`` targets a scale-grid prompt."""
    session = _session(registry, user_id, survey_type)
    if payload.prompt_index is not None:
        accepted = session.machine.set_scale_grid_answer(payload.prompt_index, str(payload.value))
    else:
        accepted = session.machine.set_answer(payload.value)
    if not accepted:
        raise HTTPException(status_code=422, detail="Answer not accepted for the current question")
    return _state(session)


@router.post("/{survey_type}/toggle", response_model=SessionState)
async def toggle_option(
    survey_type: str,
    payload: OptionRequest,
    user_id: str = Depends(get_user_id),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionState:
    """Select or deselect a checkbox option (refused past the selection limit)."""
    session = _session(registry, user_id, survey_type)
    if not session.machine.toggle_option(payload.option):
        raise HTTPException(status_code=422, detail=f"Option '{payload.option}' cannot be toggled")
    return _state(session)


@router.post("/{survey_type}/participant-info", response_model=SessionState)
async def participant_info(
    survey_type: str,
    info: dict[str, Any] = Body(...),
    user_id: str = Depends(get_user_id),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionState:
    session = _session(registry, user_id, survey_type)
    try:
        session.machine.set_participant_info(info)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
    return _state(session)


@router.post("/{survey_type}/next", response_model=SessionState)
async def next_item(
    survey_type: str,
    user_id: str = Depends(get_user_id),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionState:
    """Advance; on the final item this completes the survey and ends the session.

    Raises:
        HTTPException: 422 if the current item is not fully answered
    """
    session = _session(registry, user_id, survey_type)
    if not session.machine.is_current_answered():
        raise HTTPException(status_code=422, detail=INCOMPLETE_ANSWER_MESSAGE)

    if not session.machine.next():
        return _state(session)

    await session.complete()
    await registry.close(user_id, survey_type)
    logger.info("Survey completed", extra={"user_id": user_id, "survey_type": survey_type})
    return _state(session, completed=True)


@router.post("/{survey_type}/previous", response_model=SessionState)
async def previous_item(
    survey_type: str,
    user_id: str = Depends(get_user_id),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionState:
    session = _session(registry, user_id, survey_type)
    session.machine.previous()
    return _state(session)


@router.post("/{survey_type}/activity", status_code=204)
async def activity(
    survey_type: str,
    payload: ActivityRequest,
    user_id: str = Depends(get_user_id),
    registry: SessionRegistry = Depends(get_session_registry),
) -> None:
    """Report a pointer, keyboard, scroll or touch event."""
    session = _session(registry, user_id, survey_type)
    if not session.record_activity(payload.kind):
        raise HTTPException(status_code=422, detail=f"Untracked activity event: {payload.kind}")


@router.post("/{survey_type}/visibility", response_model=SessionState)
async def visibility(
    survey_type: str,
    payload: VisibilityRequest,
    user_id: str = Depends(get_user_id),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionState:
    """Report the page being hidden or shown; hiding saves unsaved changes."""
    session = _session(registry, user_id, survey_type)
    future = session.on_visibility_change(payload.hidden)
    outcome = await future if future is not None else None
    return _state(session, outcome=outcome)


@router.post("/{survey_type}/save", response_model=SessionState)
async def save(
    survey_type: str,
    user_id: str = Depends(get_user_id),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionState:
    session = _session(registry, user_id, survey_type)
    outcome = await session.save(notify=True)
    return _state(session, outcome=outcome)


@router.post("/{survey_type}/exit", response_model=SessionState)
async def exit_session(
    survey_type: str,
    user_id: str = Depends(get_user_id),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionState:
    """Save what is unsaved and end the session."""
    session = _session(registry, user_id, survey_type)
    future = session.on_page_exit()
    outcome = await future if future is not None else None
    await registry.close(user_id, survey_type)
    return _state(session, outcome=outcome)
