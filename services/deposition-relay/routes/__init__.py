"""API route exports."""

from routes.audio_depositions import router as audio_depositions_router
from routes.cases import router as cases_router
from routes.health import router as health_router
from routes.recording import router as recording_router

__all__ = [
    "audio_depositions_router",
    "cases_router",
    "health_router",
    "recording_router",
]
