"""
Control API endpoints: health, run status and abort.
"""

from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, status

from meeting_recorder import __version__
from meeting_recorder.api.schemas import (
    AbortRequest,
    AbortResponse,
    HealthCheckResponse,
    RunStatusResponse,
)
from meeting_recorder.config import get_logger
from meeting_recorder.core.exceptions import HTTPConflict, HTTPInternalServerError

logger = get_logger("control_api")

router = APIRouter()


def get_orchestrator(request: Request):
    """
    Dependency injection for the run's orchestrator.

    Raises:
        HTTPException: If no orchestrator is attached to the app
    """
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPInternalServerError("Recording run not initialized")
    return orchestrator


@router.get("/health", response_model=HealthCheckResponse, tags=["Health"])
async def health_check() -> Dict[str, Any]:
    """Health check endpoint."""
    return {
        "status": "ok",
        "timestamp": datetime.now(),
        "version": __version__,
    }


@router.get("/status", response_model=RunStatusResponse, tags=["Run"])
async def get_run_status(orchestrator=Depends(get_orchestrator)) -> Dict[str, Any]:
    """Current state of the recording run."""
    return orchestrator.get_status()


@router.post("/abort", response_model=AbortResponse, status_code=status.HTTP_202_ACCEPTED, tags=["Run"])
async def abort_run(body: AbortRequest, orchestrator=Depends(get_orchestrator)) -> Dict[str, Any]:
    """
    End the run early.

    While recording, the capture is stopped and uploaded right away.
    """
    logger.info(f"Abort requested through control API: {body.reason}")
    if not orchestrator.request_abort(f"control API: {body.reason}"):
        raise HTTPConflict(f"Run already finished as '{orchestrator.state.value}'")

    return {"accepted": True, "state": orchestrator.state.value}
