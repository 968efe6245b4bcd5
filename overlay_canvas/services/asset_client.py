"""
Asset Client for Overlay Canvas
===============================

HTTP client for the asset collaborators:
- fetching base/overlay bytes from any URL
- listing selectable logos/photos for a folder
- uploading raw bytes to obtain a stable URL

Listing payloads are normalized to `AssetRef` here so upstream schema changes
stay out of the canvas core.
"""

import base64
import binascii
import logging
import os
from typing import Any, Dict, List, Optional

import httpx

from ..errors import AssetFetchFailed, InvalidAsset
from ..models.composition_models import AssetRef, AssetSource

logger = logging.getLogger(__name__)

ASSET_SERVICE_URL = os.getenv("ASSET_API_URL", "http://localhost:8081")


def normalize_asset(resource: Dict[str, Any]) -> Optional[AssetRef]:
    """
    Map a listing resource to `{id, url, filename}`.

    Accepts both plain `{id, url, filename}` records and storage-provider
    resources shaped like `{public_id, secure_url}`. Returns None when the
    resource has no usable id or URL.
    """
    asset_id = resource.get("id") or resource.get("public_id")
    url = resource.get("secure_url") or resource.get("url")
    if not asset_id or not url:
        return None
    filename = resource.get("filename") or str(asset_id).split("/")[-1]
    return AssetRef(id=str(asset_id), url=str(url), filename=str(filename))


class AssetClient:
    """
    HTTP client for asset bytes, listing and upload.

    Usage:
        client = AssetClient()
        data = await client.fetch("https://cdn.example.com/logos/acme.png")
        logos = await client.list_assets("logos", user_id="user-1")
    """

    def __init__(
        self,
        base_url: str = None,
        upload_url: str = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize asset client.

        Args:
            base_url: Asset service URL (defaults to ASSET_API_URL env var)
            upload_url: Upload service URL (defaults to base_url)
            timeout: Request timeout in seconds
            transport: Optional httpx transport, used to stub the network in tests
        """
        self.base_url = (base_url or ASSET_SERVICE_URL).rstrip("/")
        self.upload_url = (upload_url or self.base_url).rstrip("/")
        self.timeout = timeout
        self._transport = transport
        logger.info(f"[AssetClient] Initialized with base URL: {self.base_url}")

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout or self.timeout,
            transport=self._transport,
            follow_redirects=True,
        )

    def _absolute(self, url: str) -> str:
        if url.startswith(("http://", "https://")):
            return url
        return f"{self.base_url}/{url.lstrip('/')}"

    async def fetch(self, url: str) -> bytes:
        """
        Download asset bytes.

        Raises:
            AssetFetchFailed: on timeout, network error or non-200 status
        """
        target = self._absolute(url)
        try:
            async with self._client() as client:
                response = await client.get(target)
        except httpx.TimeoutException as e:
            logger.error(f"[AssetClient] Timeout fetching {target}")
            raise AssetFetchFailed(f"Timeout fetching asset: {target}", asset=url) from e
        except httpx.RequestError as e:
            logger.error(f"[AssetClient] Network error fetching {target}: {e}")
            raise AssetFetchFailed(f"Network error: {e}", asset=url) from e

        if response.status_code != 200:
            logger.error(f"[AssetClient] HTTP {response.status_code} fetching {target}")
            raise AssetFetchFailed(
                f"Asset service error: HTTP {response.status_code}",
                asset=url,
            )
        return response.content

    async def resolve(self, source: AssetSource) -> bytes:
        """Bytes for an asset source: decode inline data or fetch the URL."""
        if source.data is not None:
            try:
                return base64.b64decode(source.data, validate=True)
            except (binascii.Error, ValueError) as e:
                raise InvalidAsset(f"Inline data is not valid base64: {e}", asset=source.label) from e
        return await self.fetch(source.url)

    async def list_assets(self, folder: str, user_id: Optional[str] = None) -> List[AssetRef]:
        """
        List selectable assets in a folder (e.g. "logos", "photos").

        Args:
            folder: Folder to search
            user_id: Opaque identity forwarded to scope the listing

        Returns:
            Normalized asset references; malformed resources are dropped
        """
        url = f"{self.base_url}/api/assets"
        headers = {"X-User-Id": user_id} if user_id else {}
        try:
            async with self._client() as client:
                response = await client.get(url, params={"folder": folder}, headers=headers)
        except httpx.RequestError as e:
            logger.error(f"[AssetClient] Network error listing {folder}: {e}")
            raise AssetFetchFailed(f"Network error: {e}", asset=folder) from e

        if response.status_code != 200:
            logger.error(f"[AssetClient] HTTP {response.status_code} listing {folder}")
            raise AssetFetchFailed(f"Asset listing error: HTTP {response.status_code}", asset=folder)

        data = response.json()
        if isinstance(data, dict):
            resources = data.get("resources") or data.get("assets") or data.get(folder) or []
        else:
            resources = data

        assets = []
        for resource in resources:
            ref = normalize_asset(resource) if isinstance(resource, dict) else None
            if ref is None:
                logger.warning(f"[AssetClient] Dropping malformed resource in {folder}: {resource!r}")
                continue
            assets.append(ref)
        logger.info(f"[AssetClient] Listed {len(assets)} assets in {folder}")
        return assets

    async def upload(self, data: bytes, filename: str, content_type: str = "image/png") -> str:
        """
        Upload raw bytes and return the stable URL assigned by the upload service.
        """
        url = f"{self.upload_url}/api/upload"
        try:
            async with self._client() as client:
                response = await client.post(url, files={"file": (filename, data, content_type)})
        except httpx.RequestError as e:
            logger.error(f"[AssetClient] Network error uploading {filename}: {e}")
            raise AssetFetchFailed(f"Network error: {e}", asset=filename) from e

        if response.status_code not in (200, 201):
            raise AssetFetchFailed(f"Upload error: HTTP {response.status_code}", asset=filename)

        body = response.json()
        stable_url = body.get("secure_url") or body.get("url")
        if not stable_url:
            raise AssetFetchFailed("Upload response has no URL", asset=filename)
        return stable_url

    async def health_check(self) -> bool:
        """
        Check if the asset service is available.

        Returns:
            True if service is healthy, False otherwise
        """
        url = f"{self.base_url}/health"

        try:
            async with self._client(timeout=5.0) as client:
                response = await client.get(url)
                return response.status_code == 200
        except httpx.HTTPError:
            return False
