"""Database utilities for the syllabus tracker."""

from .session import (
    create_schema,
    dispose_engine,
    get_engine,
    get_session_dependency,
    get_session_factory,
    reset_schema,
    session_scope,
)

__all__ = [
    "create_schema",
    "dispose_engine",
    "get_engine",
    "get_session_dependency",
    "get_session_factory",
    "reset_schema",
    "session_scope",
]
