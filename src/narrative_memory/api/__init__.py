"""API module."""

from fastapi import APIRouter

from .endpoints import conversations, core, events

router = APIRouter()

# Include endpoint routers
router.include_router(conversations.router, prefix="/api/v1/conversations", tags=["conversations"])
router.include_router(events.router, prefix="/api/v1/events", tags=["events"])
router.include_router(core.router)
