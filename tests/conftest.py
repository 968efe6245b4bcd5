"""
Shared fixtures: in-memory rasters and a stubbed asset service.
"""

import io
from typing import Dict, Tuple

import httpx
import pytest
from PIL import Image

BASE_COLOR = (200, 30, 30)
LOGO_COLOR = (20, 40, 220, 255)


def make_png(size: Tuple[int, int], color, mode: str = "RGB") -> bytes:
    buf = io.BytesIO()
    Image.new(mode, size, color).save(buf, format="PNG")
    return buf.getvalue()


def open_png(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


@pytest.fixture
def base_png() -> bytes:
    return make_png((1000, 800), BASE_COLOR)


@pytest.fixture
def logo_png() -> bytes:
    return make_png((500, 300), LOGO_COLOR, mode="RGBA")


@pytest.fixture
def asset_files(base_png, logo_png) -> Dict[str, bytes]:
    return {
        "/base.png": base_png,
        "/logos/acme.png": logo_png,
    }


@pytest.fixture
def asset_transport(asset_files) -> httpx.MockTransport:
    """Serves `asset_files` by path; anything else is a 404."""

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path in asset_files:
            return httpx.Response(200, content=asset_files[path])
        if path == "/api/assets":
            folder = request.url.params.get("folder")
            return httpx.Response(200, json={"resources": [
                {"public_id": f"{folder}/acme", "secure_url": "https://assets.test/logos/acme.png"},
                {"id": "plain", "url": "https://assets.test/plain.png", "filename": "plain.png"},
                {"public_id": "broken"},
            ]})
        if path == "/health":
            return httpx.Response(200, json={"status": "ok"})
        if path == "/api/upload":
            return httpx.Response(201, json={"secure_url": "https://assets.test/uploads/new.png"})
        return httpx.Response(404)

    return httpx.MockTransport(handler)
