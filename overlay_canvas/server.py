"""
Overlay Canvas Server
======================

FastAPI server for placing logos, photos and text over a base image and
rendering the result.

Features:
- Per-session canvas state with drag/resize interaction
- Deterministic server-side composition (Pillow)
- Debounced, last-write-wins export per canvas
- Asset listing/fetching through the asset service
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .settings import load_settings

settings = load_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Import services
from .models.composition_models import ComposeOptions
from .services.asset_client import AssetClient
from .services.compose_service import ComposeScheduler, CompositionService

# Import canvas manager
from .canvas.state_manager import StateManager

# Import API routers
from .api import canvas_routes, compose_routes, element_routes, interaction_routes


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("[OVERLAY-CANVAS] Starting up...")

    asset_client = AssetClient(
        base_url=settings.asset_api_url,
        upload_url=settings.upload_api_url,
        timeout=settings.asset_fetch_timeout,
    )
    composition_service = CompositionService(asset_client)
    compose_scheduler = ComposeScheduler(
        composition_service.render,
        debounce_ms=settings.compose_debounce_ms,
    )
    default_options = ComposeOptions(
        target_width_fraction=settings.target_width_fraction,
        allow_upscale=settings.allow_upscale,
    )
    state_manager = StateManager(options=default_options)

    # Inject into route modules
    canvas_routes.state_manager = state_manager
    canvas_routes.compose_scheduler = compose_scheduler
    canvas_routes.default_options = default_options

    element_routes.state_manager = state_manager
    element_routes.default_options = default_options

    interaction_routes.state_manager = state_manager

    compose_routes.composition_service = composition_service
    compose_routes.asset_client = asset_client

    logger.info("[OVERLAY-CANVAS] Services initialized")

    yield

    logger.info("[OVERLAY-CANVAS] Shutting down...")
    for session_id in state_manager.list_sessions():
        compose_scheduler.forget(session_id)


# Create FastAPI app
app = FastAPI(
    title="Overlay Canvas",
    description="Overlay placement and WYSIWYG image composition",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins for development
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(canvas_routes.router)
app.include_router(element_routes.router)
app.include_router(interaction_routes.router)
app.include_router(compose_routes.router)


@app.get("/")
async def root():
    """Return API info."""
    return {
        "service": "Overlay Canvas",
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "canvas": "/api/canvas/state/{session_id}",
            "elements": "/api/element/{session_id}/{element_id}",
            "interaction": "/api/interaction/{session_id}/pointer",
            "compose": "/api/compose",
            "export": "/api/canvas/{session_id}/export",
        }
    }


@app.get("/health")
async def health_check():
    """Health check endpoint. Degraded when the asset service is unreachable."""
    asset_client = compose_routes.asset_client
    asset_api_healthy = await asset_client.health_check() if asset_client else False
    return {
        "status": "healthy" if asset_api_healthy else "degraded",
        "service": "overlay-canvas",
        "asset_api": asset_client.base_url if asset_client else settings.asset_api_url,
        "asset_api_healthy": asset_api_healthy,
    }


@app.get("/api/info")
async def api_info():
    """Composition policy and canvas options."""
    return {
        "service": "Overlay Canvas",
        "version": "1.0.0",
        "aspect_ratios": ["16:9", "1:1", "9:16", "4:3", "3:4"],
        "element_kinds": ["base_image", "logo", "text"],
        "composition": {
            "target_width_fraction": settings.target_width_fraction,
            "allow_upscale": settings.allow_upscale,
            "output_formats": ["png", "jpeg", "webp"],
            "default_format": "png",
        },
        "compose_debounce_ms": settings.compose_debounce_ms,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "overlay_canvas.server:app",
        host="0.0.0.0",
        port=8080,
        reload=True
    )
