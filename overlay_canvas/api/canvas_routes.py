"""
Canvas Routes
==============

API routes for canvas state management and export.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..errors import OverlayCanvasError, PermissionDenied
from ..models.canvas_models import AspectRatio, CanvasState
from ..models.composition_models import ComposeOptions, OutputFormat
from ..canvas.state_manager import CanvasSession, StateManager
from ..services.compose_service import ComposeScheduler, request_from_snapshot
from .compose_routes import error_response

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/canvas", tags=["canvas"])

# Injected by server
state_manager: Optional[StateManager] = None
compose_scheduler: Optional[ComposeScheduler] = None
default_options: ComposeOptions = ComposeOptions()


class CanvasStateResponse(BaseModel):
    """Response for canvas state."""
    session_id: str
    state: CanvasState
    is_empty: bool
    element_count: int
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class AspectRatioRequest(BaseModel):
    aspect_ratio: AspectRatio


class AdvancedModeRequest(BaseModel):
    enabled: bool


class ExportRequest(BaseModel):
    output_format: Optional[OutputFormat] = None


def get_session_or_404(session_id: str) -> CanvasSession:
    if not state_manager:
        raise HTTPException(status_code=500, detail="State manager not initialized")
    session = state_manager.get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def state_response(session: CanvasSession) -> CanvasStateResponse:
    return CanvasStateResponse(
        session_id=session.id,
        state=session.model.snapshot,
        is_empty=session.model.is_empty(),
        element_count=session.model.element_count(),
        created_at=session.created_at.isoformat(),
        updated_at=session.updated_at.isoformat() if session.updated_at else None,
    )


@router.post("/session")
async def create_session():
    """Create a new canvas session."""
    if not state_manager:
        raise HTTPException(status_code=500, detail="State manager not initialized")

    session_id = state_manager.create_session()
    return {"session_id": session_id, "message": "Session created"}


@router.get("/state/{session_id}")
async def get_state(session_id: str) -> CanvasStateResponse:
    """Get canvas state for session."""
    return state_response(get_session_or_404(session_id))


@router.delete("/state/{session_id}")
async def clear_canvas(session_id: str):
    """Clear all elements from canvas."""
    if not state_manager:
        raise HTTPException(status_code=500, detail="State manager not initialized")

    if not state_manager.clear_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found")

    return {"message": "Canvas cleared", "session_id": session_id}


@router.delete("/session/{session_id}")
async def end_session(session_id: str):
    """End a session and discard its canvas."""
    if not state_manager:
        raise HTTPException(status_code=500, detail="State manager not initialized")

    if not state_manager.end_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    if compose_scheduler:
        compose_scheduler.forget(session_id)

    return {"message": "Session ended", "session_id": session_id}


@router.put("/{session_id}/aspect-ratio")
async def set_aspect_ratio(session_id: str, request: AspectRatioRequest) -> CanvasStateResponse:
    """Change the aspect ratio. Rejected with 403 unless advanced mode is on."""
    session = get_session_or_404(session_id)
    try:
        session.model.set_aspect_ratio(request.aspect_ratio)
    except PermissionDenied as e:
        raise HTTPException(status_code=403, detail=e.to_dict())
    return state_response(session)


@router.put("/{session_id}/advanced-mode")
async def set_advanced_mode(session_id: str, request: AdvancedModeRequest) -> CanvasStateResponse:
    """Enable or disable advanced mode."""
    session = get_session_or_404(session_id)
    session.model.set_advanced_mode(request.enabled)
    return state_response(session)


@router.post("/{session_id}/export")
async def export_canvas(session_id: str, request: Optional[ExportRequest] = None):
    """Render the current canvas snapshot to an image."""
    session = get_session_or_404(session_id)
    if not compose_scheduler:
        raise HTTPException(status_code=500, detail="Compose scheduler not initialized")

    options = default_options
    if request and request.output_format:
        options = default_options.model_copy(update={"output_format": request.output_format})

    try:
        compose_request = request_from_snapshot(session.model.snapshot, options)
        result = await compose_scheduler.submit(session_id, compose_request)
    except OverlayCanvasError as e:
        return error_response(e)

    if result is None:
        # Superseded by a newer export of the same canvas
        return JSONResponse(status_code=409, content={"message": "Superseded by a newer export"})

    return Response(
        content=result.data,
        media_type=result.media_type,
        headers={"X-Compose-Token": str(result.token)},
    )
