"""Pytest configuration and shared fixtures.

This module provides fixtures and configuration used across all tests.
"""

import os
from pathlib import Path
from typing import Generator

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

SURVEYS_DIR = Path(__file__).resolve().parent.parent / "surveys"

# Set required environment variables for tests BEFORE importing package modules
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("SURVEYS_DIR", str(SURVEYS_DIR))
os.environ.setdefault("LOCAL_CACHE_DIR", "/tmp/assessment_engine_test_cache")

from assessment_engine.models.database import Base
from assessment_engine.schemas.survey import Survey
from assessment_engine.services.question_registry import QuestionRegistry
from assessment_engine.services.survey_loader import SurveyLoader


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine with SQLite in-memory database.

    Yields:
        Engine: SQLAlchemy engine for testing

    Note:
        StaticPool keeps a single connection so every session (including
        those opened by the progress store and by TestClient's worker
        thread) sees the same in-memory database.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,  # Set to True for SQL debugging
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Enable foreign key support for SQLite
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    # Create all tables
    Base.metadata.create_all(engine)

    yield engine

    # Drop all tables after test
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine) -> sessionmaker:
    """Session factory bound to the test engine."""
    return sessionmaker(
        bind=db_engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """Create a test database session.

    Yields:
        Session: SQLAlchemy session for testing

    Note:
        Session is rolled back after each test to ensure isolation.
    """
    session = session_factory()

    yield session

    # Rollback any uncommitted changes
    session.rollback()
    session.close()


@pytest.fixture
def survey_loader() -> SurveyLoader:
    """Loader for the survey definitions shipped in surveys/."""
    return SurveyLoader(str(SURVEYS_DIR))


@pytest.fixture
def leadership_survey(survey_loader) -> Survey:
    """The shipped leadership assessment definition."""
    return survey_loader.load_survey("leadership_assessment")


@pytest.fixture
def leadership_registry(leadership_survey) -> QuestionRegistry:
    return QuestionRegistry.from_survey(leadership_survey)


@pytest.fixture
def small_survey_data() -> dict:
    """Minimal survey covering every question type.

    Sections: instructions (1 item), questions (4 items), questions (1 item).
    """
    return {
        "title": "Small Survey",
        "description": "Fixture survey",
        "grid_scale_points": 5,
        "sections": [
            {
                "title": "Welcome",
                "type": "instructions",
                "content": "Read me first.",
            },
            {
                "title": "About You",
                "type": "questions",
                "questions": [
                    {
                        "id": "style",
                        "type": "radio",
                        "question": "Which style fits you best?",
                        "options": ["Calm", "Busy", "Stuck"],
                    },
                    {
                        "id": "values",
                        "type": "checkbox",
                        "question": "What matters most to you?",
                        "options": ["Growth", "Impact", "Balance", "Money"],
                        "maxSelections": 2,
                    },
                    {
                        "id": "energy",
                        "type": "scale",
                        "question": "How energised are you?",
                        "scaleLabels": ["Low", "Mid", "High"],
                    },
                    {
                        "id": "confidence",
                        "type": "scale-grid",
                        "question": "How confident are you to:",
                        "prompts": ["Decide", "Delegate", "Debate"],
                    },
                ],
            },
            {
                "title": "Reflection",
                "type": "questions",
                "questions": [
                    {
                        "id": "notes",
                        "type": "text",
                        "question": "Anything else you would like to share?",
                    },
                ],
            },
        ],
    }


@pytest.fixture
def small_survey(small_survey_data) -> Survey:
    return Survey.model_validate(small_survey_data)


@pytest.fixture
def small_registry(small_survey) -> QuestionRegistry:
    return QuestionRegistry.from_survey(small_survey)
