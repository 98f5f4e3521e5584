"""FastAPI API endpoints under /api.

Endpoint groups: settings, sessions (one taxi ride of six rounds, nested
actions under /api/sessions/{id}/), and the stand-alone collaborators
(generate-game, driver-response, tts, transcribe) used by the frontend
directly.
"""

from fastapi import APIRouter

from .collaborators import router as collaborators_router
from .sessions import router as sessions_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(sessions_router)
router.include_router(collaborators_router)
