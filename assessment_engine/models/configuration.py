"""SurveyConfiguration model for administrator-edited survey definitions.

Every save inserts a new row and deactivates the previous one, so the table
doubles as the edit history for each survey type.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    Index,
    String,
    DateTime,
    JSON,
    select,
    text,
    update,
)
from sqlalchemy.orm import Mapped, mapped_column, Session

from assessment_engine.models.database import Base


class SurveyConfiguration(Base):
    """Model for stored survey definitions.

    Attributes:
        id: Primary key
        survey_type: Survey type the definition belongs to
        configuration: Survey definition as JSON
        is_active: Whether this is the definition currently in use
        created_by: Who saved the definition, if known
        created_at: When the definition was saved
    """

    __tablename__ = "survey_configurations"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    survey_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Survey type the definition belongs to"
    )
    configuration: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        comment="Survey definition"
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        comment="Whether this definition is in use"
    )
    created_by: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment="Who saved the definition"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        comment="When the definition was saved"
    )

    __table_args__ = (
        Index("idx_configurations_type_active", "survey_type", "is_active"),
    )

    @classmethod
    def get_active(cls, db: Session, survey_type: str) -> Optional["SurveyConfiguration"]:
        """Get the active definition for a survey type, if one was saved."""
        return db.execute(
            select(cls)
            .where(cls.survey_type == survey_type, cls.is_active.is_(True))
            .order_by(cls.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    @classmethod
    def deactivate_all(cls, db: Session, survey_type: str) -> None:
        """Mark every definition for the survey type inactive."""
        db.execute(
            update(cls)
            .where(cls.survey_type == survey_type, cls.is_active.is_(True))
            .values(is_active=False)
        )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<SurveyConfiguration(id={self.id}, "
            f"survey_type={self.survey_type}, "
            f"is_active={self.is_active})>"
        )
