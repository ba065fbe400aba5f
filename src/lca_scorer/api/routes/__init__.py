"""API routes module."""

from .scoring import router as scoring_router
from .health import router as health_router

__all__ = ["scoring_router", "health_router"]
