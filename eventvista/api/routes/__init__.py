"""API routes package."""

from .dev_routes import router as dev_router
from .events_routes import router as events_router
from .health_routes import router as health_router
from .jobs_routes import router as jobs_router

__all__ = ["dev_router", "events_router", "health_router", "jobs_router"]
