"""Routes package for FastAPI endpoints.

This package contains all API route modules for the Assessment Engine.
"""

from assessment_engine.routes import exports, health, mapping, progress, sessions, surveys

__all__ = ["exports", "health", "mapping", "progress", "sessions", "surveys"]
