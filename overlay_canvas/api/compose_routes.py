"""
Compose Routes
===============

Stateless composition endpoint and asset listing passthrough.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Header, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from ..errors import (
    AssetFetchFailed,
    CompositionFailed,
    InvalidAsset,
    OverlayCanvasError,
    PermissionDenied,
    ElementNotFound,
)
from ..models.composition_models import AssetRef, ComposeRequest
from ..services.asset_client import AssetClient
from ..services.compose_service import CompositionService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["compose"])

# Injected by server
composition_service: Optional[CompositionService] = None
asset_client: Optional[AssetClient] = None

_STATUS = {
    AssetFetchFailed: 502,
    InvalidAsset: 422,
    CompositionFailed: 500,
    PermissionDenied: 403,
    ElementNotFound: 404,
}


def error_response(error: OverlayCanvasError) -> JSONResponse:
    """Tagged JSON error for a core failure."""
    status = next((code for cls, code in _STATUS.items() if isinstance(error, cls)), 500)
    if isinstance(error, CompositionFailed):
        logger.error(f"[COMPOSE] {error.message} (asset={error.asset})", exc_info=error)
    else:
        logger.warning(f"[COMPOSE] {error.code}: {error.message} (asset={error.asset})")
    return JSONResponse(status_code=status, content=error.to_dict())


@router.post("/compose")
async def compose_image(request: ComposeRequest):
    """Composite overlays onto a base image and return the encoded image."""
    if not composition_service:
        raise HTTPException(status_code=500, detail="Composition service not initialized")

    try:
        data = await composition_service.render(request)
    except OverlayCanvasError as e:
        return error_response(e)

    return Response(content=data, media_type=request.options.media_type)


@router.get("/assets/{folder}")
async def list_assets(folder: str, x_user_id: Optional[str] = Header(default=None)) -> List[AssetRef]:
    """List selectable logos/photos in a folder for the calling user."""
    if not asset_client:
        raise HTTPException(status_code=500, detail="Asset client not initialized")

    try:
        return await asset_client.list_assets(folder, user_id=x_user_id)
    except OverlayCanvasError as e:
        return error_response(e)


@router.post("/assets/upload")
async def upload_asset(request: Request, filename: str = "upload.png"):
    """Forward raw image bytes to the upload service and return the stable URL."""
    if not asset_client:
        raise HTTPException(status_code=500, detail="Asset client not initialized")

    data = await request.body()
    if not data:
        raise HTTPException(status_code=422, detail="Empty upload")
    content_type = request.headers.get("content-type", "application/octet-stream")

    try:
        url = await asset_client.upload(data, filename, content_type=content_type)
    except OverlayCanvasError as e:
        return error_response(e)

    return {"url": url, "filename": filename}
