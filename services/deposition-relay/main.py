"""FastAPI application entry point."""

from ddtrace import patch_all
from fastapi import FastAPI

from routes import (
    audio_depositions_router,
    cases_router,
    health_router,
    recording_router,
)

patch_all()

app = FastAPI(title="Deposition Relay")
app.include_router(recording_router)
app.include_router(cases_router)
app.include_router(audio_depositions_router)
app.include_router(health_router)
