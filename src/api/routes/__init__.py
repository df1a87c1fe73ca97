"""API routes module for spec-agents service.

This module exports all API routers for registration in main.py.
"""

from src.api.routes.health import router as health_router
from src.api.routes.pipeline import router as pipeline_router


__all__ = [
    "health_router",
    "pipeline_router",
]
