"""Database models and session management.

This package contains all SQLAlchemy ORM models and database utilities.
"""

from assessment_engine.models.database import Base, engine, SessionLocal, get_db
from assessment_engine.models.progress import SurveyProgress
from assessment_engine.models.submission import SurveySubmissionRecord
from assessment_engine.models.configuration import SurveyConfiguration

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_db",
    "SurveyProgress",
    "SurveySubmissionRecord",
    "SurveyConfiguration",
]
