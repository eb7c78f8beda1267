"""Health endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends

from dependencies import get_registry
from domain.session_registry import SessionRegistry
from response_models import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health(registry: Annotated[SessionRegistry, Depends(get_registry)]):
    """Reports liveness and the number of recordings in progress."""
    return HealthResponse(status="ok", active_sessions=len(registry))
