"""
Element Routes
===============

API routes for element management.
"""

import logging
from typing import Optional, Literal

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ..errors import ElementNotFound
from ..models.canvas_models import ElementKind, Transform
from ..models.composition_models import ComposeOptions
from ..canvas.state_manager import CanvasSession, StateManager
from ..canvas.state_model import LEGACY_TEXT_ID
from ..services.composition_engine import overlay_target_size

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/element", tags=["elements"])

# Injected by server
state_manager: Optional[StateManager] = None
default_options: ComposeOptions = ComposeOptions()


class ElementRequest(BaseModel):
    """Request to add an element."""
    kind: ElementKind
    transform: Optional[Transform] = None
    url: Optional[str] = None
    filename: Optional[str] = None
    asset_type: Literal["logo", "photo"] = "logo"
    natural_width: Optional[int] = Field(default=None, gt=0)
    natural_height: Optional[int] = Field(default=None, gt=0)
    text: Optional[str] = None
    color: Optional[str] = None
    font_size: Optional[float] = Field(default=None, gt=0)


class ElementResponse(BaseModel):
    """Response for element operations."""
    element_id: str
    kind: ElementKind
    message: str


class VisibilityRequest(BaseModel):
    visible: bool


class TextRequest(BaseModel):
    text: Optional[str] = None
    color: Optional[str] = None
    font_size: Optional[float] = Field(default=None, gt=0)
    is_bold: Optional[bool] = None
    is_italic: Optional[bool] = None


class LegacyTextRequest(TextRequest):
    """The single text field older canvases carry next to the overlay list."""
    visible: Optional[bool] = None
    transform: Optional[Transform] = None


def _session(session_id: str) -> CanvasSession:
    if not state_manager:
        raise HTTPException(status_code=500, detail="State manager not initialized")
    session = state_manager.get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def _default_transform(session: CanvasSession, request: ElementRequest) -> Transform:
    """Initial transform when the client doesn't send one."""
    if request.kind == ElementKind.TEXT:
        size = request.font_size or 32.0
        base = session.model.snapshot.base_image
        x, y = (base.natural_width / 2, base.natural_height / 2) if base else (0.0, 0.0)
        return Transform(x=x, y=y, width=size * 8, height=size * 1.2)

    if not request.natural_width or not request.natural_height:
        raise HTTPException(status_code=422, detail="natural_width and natural_height are required")

    if request.kind == ElementKind.BASE_IMAGE:
        return Transform(width=request.natural_width, height=request.natural_height)

    base = session.model.snapshot.base_image
    if base is None:
        return Transform(width=request.natural_width, height=request.natural_height)

    # Same sizing the composition engine applies, centered on the base image
    width, height = overlay_target_size(
        request.natural_width,
        request.natural_height,
        base.natural_width,
        base.natural_height,
        target_width_fraction=default_options.target_width_fraction,
        allow_upscale=default_options.allow_upscale,
    )
    return Transform(
        x=(base.natural_width - width) / 2,
        y=(base.natural_height - height) / 2,
        width=width,
        height=height,
    )


@router.post("/{session_id}")
async def add_element(session_id: str, request: ElementRequest) -> ElementResponse:
    """Add element to canvas."""
    session = _session(session_id)

    if request.kind == ElementKind.TEXT:
        fields = {"text": request.text or "", "color": request.color, "font_size": request.font_size}
    else:
        fields = {
            "url": request.url,
            "filename": request.filename,
            "natural_width": request.natural_width,
            "natural_height": request.natural_height,
        }
        if request.kind == ElementKind.LOGO:
            fields["asset_type"] = request.asset_type
    attrs = {k: v for k, v in fields.items() if v is not None}

    if request.transform is None:
        transform = _default_transform(session, request)
    elif request.kind == ElementKind.LOGO and request.natural_width and request.natural_height:
        transform = session.controller.conform(request.transform, request.natural_width, request.natural_height)
    else:
        transform = request.transform
    try:
        element_id = session.model.add_element(request.kind, transform, **attrs)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    logger.info(f"[ELEMENTS] Added {request.kind.value} {element_id} to {session_id}")
    return ElementResponse(
        element_id=element_id,
        kind=request.kind,
        message="Element added"
    )


@router.delete("/{session_id}/{element_id}")
async def remove_element(session_id: str, element_id: str):
    """Remove element from canvas."""
    session = _session(session_id)
    if session.controller.session and session.controller.session.element_id == element_id:
        session.controller.cancel()
    try:
        session.model.remove_element(element_id)
    except ElementNotFound:
        raise HTTPException(status_code=404, detail="Element not found")

    return {"message": "Element removed", "element_id": element_id}


@router.put("/{session_id}/{element_id}/transform")
async def update_transform(session_id: str, element_id: str, transform: Transform):
    """Replace an element's transform."""
    session = _session(session_id)
    try:
        transform = session.controller.set_transform(element_id, transform)
    except ElementNotFound:
        raise HTTPException(status_code=404, detail="Element not found")

    return {"message": "Element updated", "element_id": element_id, "transform": transform}


@router.put("/{session_id}/{element_id}/visibility")
async def set_visibility(session_id: str, element_id: str, request: VisibilityRequest):
    """Show or hide an element."""
    session = _session(session_id)
    try:
        session.model.set_visibility(element_id, request.visible)
    except ElementNotFound:
        raise HTTPException(status_code=404, detail="Element not found")

    return {"message": "Visibility updated", "element_id": element_id, "visible": request.visible}


@router.put("/{session_id}/{element_id}/text")
async def update_text(session_id: str, element_id: str, request: TextRequest):
    """Change the content or style of a text overlay."""
    session = _session(session_id)
    changes = request.model_dump(exclude_none=True)
    try:
        session.model.update_text(element_id, **changes)
    except ElementNotFound:
        raise HTTPException(status_code=404, detail="Element not found")
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return {"message": "Text updated", "element_id": element_id}


@router.put("/{session_id}/legacy-text")
async def set_legacy_text(session_id: str, request: LegacyTextRequest):
    """Create or update the legacy text. Afterwards it is addressed by its id like any element."""
    session = _session(session_id)
    fields = request.model_dump(exclude_none=True, exclude={"transform"})
    transform = request.transform
    if transform is None and session.model.snapshot.legacy_text is None:
        transform = _default_transform(
            session, ElementRequest(kind=ElementKind.TEXT, font_size=request.font_size)
        )
    try:
        state = session.model.set_legacy_text(transform=transform, **fields)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return {"message": "Legacy text updated", "element_id": LEGACY_TEXT_ID, "legacy_text": state.legacy_text}
