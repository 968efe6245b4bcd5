"""
Settings
========

Environment-driven configuration for the Overlay Canvas service.
"""

import os
from dataclasses import dataclass

ASSET_API_URL = os.getenv("ASSET_API_URL", "http://localhost:8081")

_TRUTHY = {"1", "true", "yes", "y", "on"}


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise RuntimeError(f"Invalid float for env var {name}: {raw!r}") from e


@dataclass(frozen=True)
class Settings:
    # Collaborators
    asset_api_url: str
    upload_api_url: str
    asset_fetch_timeout: float

    # Composition policy
    target_width_fraction: float
    allow_upscale: bool

    # Compose scheduling
    compose_debounce_ms: float

    log_level: str = "INFO"


def load_settings() -> Settings:
    upscale_raw = os.getenv("OVERLAY_ALLOW_UPSCALE", "false").lower().strip()

    fraction = _get_float("OVERLAY_TARGET_WIDTH_FRACTION", 0.2)
    if not 0 < fraction <= 1:
        raise RuntimeError(f"OVERLAY_TARGET_WIDTH_FRACTION must be in (0, 1], got {fraction}")

    asset_url = os.getenv("ASSET_API_URL", ASSET_API_URL)
    return Settings(
        asset_api_url=asset_url,
        upload_api_url=os.getenv("UPLOAD_API_URL", asset_url),
        asset_fetch_timeout=_get_float("ASSET_FETCH_TIMEOUT", 30.0),
        target_width_fraction=fraction,
        allow_upscale=upscale_raw in _TRUTHY,
        compose_debounce_ms=_get_float("COMPOSE_DEBOUNCE_MS", 250.0),
        log_level=os.getenv("OVERLAY_CANVAS_LOG_LEVEL", "INFO").upper(),
    )
