"""
CODETIME — API Dependencies.
Shared dependencies for FastAPI routes.
"""

from __future__ import annotations

from fastapi import Request

from codetime.engine import CodetimeEngine


def get_engine(request: Request) -> CodetimeEngine:
    """Inject the engine from app state."""
    return request.app.state.engine
