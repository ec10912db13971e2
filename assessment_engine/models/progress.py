"""SurveyProgress model for the remote copy of in-progress survey state.

One row exists per (user_id, survey_type). Writes replace the whole row
(upsert); the row is deleted once the learner submits the survey.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Index,
    Integer,
    String,
    DateTime,
    JSON,
    UniqueConstraint,
    text,
    select,
)
from sqlalchemy.orm import Mapped, mapped_column, Session

from assessment_engine.models.database import Base


class SurveyProgress(Base):
    """Model for stored survey progress.

    Attributes:
        id: Primary key
        user_id: Identifier of the learner
        survey_type: Survey being taken (e.g. leadership_assessment)
        current_section: Index of the active section
        current_question: Index of the active question within the section
        answers: JSON answer map
        participant_info: JSON participant details (NULL until collected)
        version: Incremented on every write; guards against stale sessions
        created_at: When the first write happened
        updated_at: Last write timestamp
    """

    __tablename__ = "survey_progress"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    user_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Learner identifier"
    )
    survey_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Survey type the progress belongs to"
    )

    # Cursor
    current_section: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Index of the active section"
    )
    current_question: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Index of the active question in the section"
    )

    # Answers
    answers: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        server_default=text("'{}'"),
        comment="Answer map keyed by question id or grid prompt key"
    )
    participant_info: Mapped[Optional[dict]] = mapped_column(
        JSON,
        nullable=True,
        comment="Participant details collected before the questions"
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Write counter for stale-write detection"
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        comment="When the progress was first saved"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
        comment="Last update timestamp"
    )

    __table_args__ = (
        UniqueConstraint("user_id", "survey_type", name="uq_progress_user_survey"),
        Index("idx_progress_updated_at", "updated_at"),
    )

    @classmethod
    def find(cls, db: Session, user_id: str, survey_type: str) -> Optional["SurveyProgress"]:
        """Get the progress row for a (user, survey type) pair, if any."""
        return db.execute(
            select(cls).where(cls.user_id == user_id, cls.survey_type == survey_type)
        ).scalar_one_or_none()

    @classmethod
    def upsert(
        cls,
        db: Session,
        user_id: str,
        survey_type: str,
        current_section: int,
        current_question: int,
        answers: dict,
        participant_info: Optional[dict],
    ) -> "SurveyProgress":
        """Insert the progress row or fully replace the existing one.

        Returns:
            SurveyProgress: The written row (version already incremented)

        Example:
            row = SurveyProgress.upsert(db, "user-1", "leadership_assessment", 2, 0, {}, None)
            db.commit()
        """
        now = datetime.now(timezone.utc)
        existing = cls.find(db, user_id, survey_type)

        if existing:
            existing.current_section = current_section
            existing.current_question = current_question
            existing.answers = dict(answers)
            existing.participant_info = participant_info
            existing.version = existing.version + 1
            existing.updated_at = now
            return existing

        progress = cls(
            user_id=user_id,
            survey_type=survey_type,
            current_section=current_section,
            current_question=current_question,
            answers=dict(answers),
            participant_info=participant_info,
            version=1,
            created_at=now,
            updated_at=now,
        )
        db.add(progress)
        return progress

    @classmethod
    def remove(cls, db: Session, user_id: str, survey_type: str) -> bool:
        """Delete the progress row.

        Returns:
            bool: True if a row was deleted, False if none existed
        """
        progress = cls.find(db, user_id, survey_type)
        if progress:
            db.delete(progress)
            return True
        return False

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<SurveyProgress(id={self.id}, "
            f"user_id={self.user_id}, "
            f"survey_type={self.survey_type}, "
            f"section={self.current_section}, "
            f"question={self.current_question}, "
            f"version={self.version})>"
        )
