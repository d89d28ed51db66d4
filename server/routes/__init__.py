"""Register all route modules on the FastAPI app."""

from fastapi import FastAPI

from .root import router as root_router
from .recommendations import router as recommendations_router
from .schedules import router as schedules_router
from .events import router as events_router


def register_routes(app: FastAPI) -> None:
    """Attach all API routers to the app."""
    app.include_router(root_router)
    app.include_router(recommendations_router, prefix="/classes", tags=["classes"])
    app.include_router(schedules_router, prefix="/schedules", tags=["schedules"])
    app.include_router(events_router, prefix="/internal/events", tags=["events"])
