"""
Overlay Canvas Errors
=====================

Error taxonomy shared by the canvas core, the composition engine and the API.
"""

from typing import Optional


class OverlayCanvasError(Exception):
    """Base error. `asset` names the element or asset the failure concerns."""

    code = "OverlayCanvasError"

    def __init__(self, message: str, asset: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.asset = asset

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message, "asset": self.asset}


class AssetFetchFailed(OverlayCanvasError):
    """Network error, 404 or timeout while fetching asset bytes. Retryable."""

    code = "AssetFetchFailed"


class InvalidAsset(OverlayCanvasError):
    """Missing/zero dimensions or undecodable bytes. Not retried."""

    code = "InvalidAsset"


class CompositionFailed(OverlayCanvasError):
    """Internal compose or encode failure."""

    code = "CompositionFailed"


class PermissionDenied(OverlayCanvasError):
    """Aspect ratio change attempted while advanced mode is disabled."""

    code = "PermissionDenied"


class ElementNotFound(OverlayCanvasError, KeyError):
    """No element with the given id on the canvas."""

    code = "ElementNotFound"

    def __str__(self) -> str:
        return self.message
