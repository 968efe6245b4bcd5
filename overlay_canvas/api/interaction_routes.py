"""
Interaction Routes
===================

Feeds pointer events from the editor into a session's InteractionController.
"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ..errors import ElementNotFound
from ..models.canvas_models import Corner, Transform
from ..canvas.coordinates import Viewport
from ..canvas.interaction import HitTarget, InteractionState
from ..canvas.state_manager import CanvasSession, StateManager

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/interaction", tags=["interaction"])

# Injected by server
state_manager: Optional[StateManager] = None


class PointerEvent(BaseModel):
    """A pointer event in display coordinates."""
    type: Literal["pointer_down", "pointer_move", "pointer_up", "pointer_cancel", "cancel"]
    x: float = 0.0
    y: float = 0.0
    pointer_id: int = 0
    is_primary: bool = True
    viewport: Optional[Viewport] = None
    # Explicit target; when omitted pointer_down hit-tests the canvas
    element_id: Optional[str] = None
    handle: Optional[Corner] = None


class InteractionResponse(BaseModel):
    state: InteractionState
    element_id: Optional[str] = None
    transform: Optional[Transform] = None
    version: int


def _session(session_id: str) -> CanvasSession:
    if not state_manager:
        raise HTTPException(status_code=500, detail="State manager not initialized")
    session = state_manager.get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


@router.post("/{session_id}/pointer")
async def pointer_event(session_id: str, event: PointerEvent) -> InteractionResponse:
    """Apply one pointer event and return the controller state afterwards."""
    session = _session(session_id)
    controller = session.controller
    point = (event.x, event.y)

    if event.type == "pointer_down":
        if event.viewport is None:
            raise HTTPException(status_code=422, detail="pointer_down requires a viewport")
        target = HitTarget(element_id=event.element_id, handle=event.handle) if event.element_id else None
        try:
            controller.pointer_down(
                point,
                event.viewport,
                target=target,
                pointer_id=event.pointer_id,
                is_primary=event.is_primary,
            )
        except ElementNotFound:
            raise HTTPException(status_code=404, detail="Element not found")
    elif event.type == "pointer_move":
        controller.pointer_move(point, pointer_id=event.pointer_id)
    elif event.type == "pointer_up":
        controller.pointer_up(pointer_id=event.pointer_id)
    elif event.type == "pointer_cancel":
        controller.pointer_cancel(pointer_id=event.pointer_id)
    else:
        controller.cancel()

    element_id = controller.session.element_id if controller.session else controller.selected_id
    element = session.model.snapshot.get(element_id) if element_id else None
    return InteractionResponse(
        state=controller.state,
        element_id=element_id,
        transform=element.transform if element is not None else None,
        version=session.model.snapshot.version,
    )
