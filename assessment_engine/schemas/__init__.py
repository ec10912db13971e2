"""Pydantic schemas for data validation.

This package contains the Pydantic models for survey definitions, stored
progress, historical submissions and export options.
"""

from assessment_engine.schemas.survey import (
    COMPOSITE_KEY_SEPARATOR,
    QuestionType,
    SectionType,
    Question,
    Section,
    Survey,
)
from assessment_engine.schemas.progress import (
    AnswerValue,
    ParticipantInfo,
    ProgressRecord,
    ProgressSaveRequest,
    BeaconSaveRequest,
    ProgressResponse,
)
from assessment_engine.schemas.submission import (
    COMPLETED_STATUSES,
    SurveySubmission,
    ExportFormat,
    ExportOptions,
    MappingSuggestion,
)

__all__ = [
    "COMPOSITE_KEY_SEPARATOR",
    "QuestionType",
    "SectionType",
    "Question",
    "Section",
    "Survey",
    "AnswerValue",
    "ParticipantInfo",
    "ProgressRecord",
    "ProgressSaveRequest",
    "BeaconSaveRequest",
    "ProgressResponse",
    "COMPLETED_STATUSES",
    "SurveySubmission",
    "ExportFormat",
    "ExportOptions",
    "MappingSuggestion",
]
