"""Pydantic schemas for historical submissions, exports and column mapping."""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

COMPLETED_STATUSES = frozenset({"completed", "approved"})


class SurveySubmission(BaseModel):
    """A learner's submitted questionnaire as read back for reporting.

    ``responses`` may hold either historical shape: entries keyed by literal
    question text wrapping ``{"question": ..., "answer": ...}``, or entries
    keyed by question id holding the raw (or wrapped) value.
    """
    id: int
    learner_name: str = Field(default="")
    learner_id: Optional[int] = None
    status: str = Field(default="")
    responses: Optional[dict[str, Any]] = Field(default_factory=dict)
    submitted_at: Optional[datetime] = None

    @property
    def is_completed(self) -> bool:
        return self.status in COMPLETED_STATUSES


class ExportFormat(str, Enum):
    """Supported export artifacts."""
    CSV = "csv"
    EXCEL = "excel"


class ExportOptions(BaseModel):
    """Filters and output format for a submission export.

    Attributes:
        format: csv (detailed responses only) or excel (three sheets)
        include_only_completed: Keep only completed/approved submissions
        start: Earliest submission date to include (inclusive)
        end: Latest submission date to include (inclusive)
    """
    format: ExportFormat = ExportFormat.EXCEL
    include_only_completed: bool = True
    start: Optional[date] = None
    end: Optional[date] = None

    @model_validator(mode='after')
    def validate_date_range(self):
        if self.start and self.end and self.end < self.start:
            raise ValueError("end date must not be before start date")
        return self


class MappingSuggestion(BaseModel):
    """Best mapping candidate found for one column header."""
    column_header: str
    suggested_mapping: str
    confidence: float = Field(ge=0.0, le=1.0)
    match_reason: str
