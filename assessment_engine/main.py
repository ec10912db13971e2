"""FastAPI application entry point for the Assessment Engine.

This module initializes the FastAPI application, sets up logging, creates
the shared survey catalog and progress store, registers routers, and handles
global exception handling.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from assessment_engine.config import get_settings
from assessment_engine.logging_config import setup_logging, get_logger
from assessment_engine.models.database import Base, SessionLocal, engine
from assessment_engine.routes import exports, health, mapping, progress, sessions, surveys
from assessment_engine.services.progress_store import LocalProgressCache, SqlProgressStore
from assessment_engine.services.session_registry import SessionRegistry
from assessment_engine.services.survey_catalog import SurveyCatalog

# Initialize logger (will be configured during startup)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Startup:
    - Configure logging
    - Create database tables that do not exist yet
    - Build the survey catalog, the remote progress store and the
      live session registry

    Shutdown:
    - Close open sessions (stopping their save timers)
    - Log shutdown event
    - Dispose of the database engine

    Args:
        app: FastAPI application instance

    Yields:
        None
    """
    # Startup
    settings = get_settings()
    setup_logging()

    Base.metadata.create_all(engine)
    app.state.catalog = SurveyCatalog()
    app.state.progress_store = SqlProgressStore(
        SessionLocal,
        conflict_guard=settings.progress_conflict_guard,
    )
    app.state.sessions = SessionRegistry(app.state.progress_store, LocalProgressCache())

    logger.info(
        f"Assessment Engine starting - "
        f"Environment: {settings.environment}, "
        f"Log Level: {settings.log_level}, "
        f"Database: {settings.database_url.split('@')[-1] if '@' in settings.database_url else 'configured'}, "
        f"Surveys: {', '.join(app.state.catalog.loader.list_surveys()) or 'none'}"
    )

    yield

    # Shutdown
    await app.state.sessions.close_all()
    logger.info("Assessment Engine shutting down")
    engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title="Assessment Engine",
    description="Survey delivery, progress persistence and response export for leadership assessments",
    version="1.0.0",
    lifespan=lifespan
)


# Root endpoint
@app.get("/")
async def root() -> dict:
    """Root endpoint with basic API information.

    Returns:
        dict: API information and status
    """
    settings = get_settings()
    return {
        "service": "Assessment Engine",
        "version": "1.0.0",
        "environment": settings.environment,
        "default_survey": settings.default_survey_type,
        "status": "operational"
    }


# Register routers
app.include_router(health.router, tags=["Health"])
app.include_router(surveys.router, tags=["Surveys"])
app.include_router(progress.router, tags=["Progress"])
app.include_router(sessions.router, tags=["Sessions"])
app.include_router(mapping.router, tags=["Mapping"])
app.include_router(exports.router, tags=["Exports"])


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for unhandled exceptions.

    Logs all unhandled exceptions and returns a generic error response
    to prevent leaking sensitive information.

    Args:
        request: FastAPI request object
        exc: Exception that was raised

    Returns:
        JSONResponse: Generic error response
    """
    logger.error(
        f"Unhandled exception for {request.method} {request.url}: {exc}",
        exc_info=True
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred. Please try again later."
        }
    )
