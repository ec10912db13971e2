"""Submission model for finished questionnaires.

Rows are written by the wider portal when a learner submits. This service
only reads them back for exports, so ``responses`` is stored exactly as it
arrived, in whichever historical shape that was.
"""

from datetime import date, datetime, time, timezone
from typing import Optional

from sqlalchemy import (
    Index,
    Integer,
    String,
    DateTime,
    JSON,
    select,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, Session

from assessment_engine.models.database import Base
from assessment_engine.schemas.submission import COMPLETED_STATUSES, SurveySubmission


class SurveySubmissionRecord(Base):
    """Model for stored survey submissions.

    Attributes:
        id: Primary key
        survey_type: Survey the submission answers
        learner_id: Optional learner identifier
        learner_name: Learner display name at submission time
        status: Review status (pending, completed, approved, rejected)
        responses: JSON responses, old or new format
        submitted_at: When the learner submitted
    """

    __tablename__ = "survey_submissions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    survey_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Survey the submission answers"
    )
    learner_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Learner identifier, if known"
    )
    learner_name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        default="",
        comment="Learner display name"
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="pending",
        comment="Review status"
    )
    responses: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        server_default=text("'{}'"),
        comment="Submitted responses in old or new format"
    )
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        comment="When the survey was submitted"
    )

    __table_args__ = (
        Index("idx_submissions_survey_submitted", "survey_type", "submitted_at"),
    )

    @classmethod
    def query_for_export(
        cls,
        db: Session,
        survey_type: str,
        only_completed: bool = False,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list["SurveySubmissionRecord"]:
        """Fetch submissions for a survey type, newest first.

        Date bounds are inclusive whole days in UTC.
        """
        stmt = select(cls).where(cls.survey_type == survey_type)

        if only_completed:
            stmt = stmt.where(cls.status.in_(sorted(COMPLETED_STATUSES)))
        if start:
            stmt = stmt.where(cls.submitted_at >= datetime.combine(start, time.min, tzinfo=timezone.utc))
        if end:
            stmt = stmt.where(cls.submitted_at <= datetime.combine(end, time.max, tzinfo=timezone.utc))

        return list(db.execute(stmt.order_by(cls.submitted_at.desc())).scalars())

    def to_schema(self) -> SurveySubmission:
        """Convert to the export-facing pydantic model."""
        return SurveySubmission(
            id=self.id,
            learner_name=self.learner_name or "",
            learner_id=self.learner_id,
            status=self.status or "",
            responses=self.responses or {},
            submitted_at=self.submitted_at,
        )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<SurveySubmissionRecord(id={self.id}, "
            f"survey_type={self.survey_type}, "
            f"status={self.status})>"
        )
