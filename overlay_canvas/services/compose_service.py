"""
Compose Service
===============

Async front of the composition engine:
- resolves asset sources concurrently through the AssetClient
- decodes and composites in a worker thread, keeping the event loop free
- turns a canvas snapshot into a compose request
- schedules per-canvas compose requests with debounce and last-write-wins
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional

from ..errors import InvalidAsset
from ..models.canvas_models import CanvasState, LogoOverlay, TextOverlay
from ..models.composition_models import (
    AssetSource,
    ComposeOptions,
    ComposeRequest,
    OverlaySpec,
    Placement,
)
from .asset_client import AssetClient
from .composition_engine import OverlayLayer, compose, decode_image, open_image

logger = logging.getLogger(__name__)


def request_from_snapshot(
    snapshot: CanvasState,
    options: Optional[ComposeOptions] = None,
) -> ComposeRequest:
    """
    Build a compose request from a canvas snapshot.

    Raises:
        InvalidAsset: the canvas has no base image, or an overlay has no source
    """
    base = snapshot.base_image
    if base is None or not base.url:
        raise InvalidAsset("Canvas has no base image to compose onto", asset="base")

    overlays: List[OverlaySpec] = []
    for element in snapshot.overlays:
        t = element.transform
        if isinstance(element, LogoOverlay):
            if not element.url:
                raise InvalidAsset(f"Overlay {element.id} has no source URL", asset=element.id)
            overlays.append(OverlaySpec(
                id=element.id,
                kind="image",
                source=AssetSource(url=element.url, filename=element.filename),
                transform=Placement(x=t.x, y=t.y, scale=t.scale),
                z_order=element.z_order,
                visible=element.visible,
            ))
        elif isinstance(element, TextOverlay):
            overlays.append(_text_spec(element))

    legacy = snapshot.legacy_text
    if legacy is not None and legacy.visible and legacy.text:
        spec = _text_spec(legacy)
        # Legacy text paints above the list overlays
        top = max((o.z_order for o in overlays), default=0) + 1
        overlays.append(spec.model_copy(update={"z_order": top}))

    return ComposeRequest(
        base=AssetSource(url=base.url, filename=base.filename),
        overlays=overlays,
        options=options or ComposeOptions(),
    )


def _text_spec(element: TextOverlay) -> OverlaySpec:
    t = element.transform
    return OverlaySpec(
        id=element.id,
        kind="text",
        text=element.text,
        color=element.color,
        font_size=element.font_size,
        is_bold=element.is_bold,
        is_italic=element.is_italic,
        transform=Placement(x=t.x, y=t.y, scale=t.scale, width=t.width),
        z_order=element.z_order,
        visible=element.visible,
    )


def _layer(spec: OverlaySpec, index: int, data: Optional[bytes]) -> OverlayLayer:
    """Decode one overlay. Text specs carry no bytes."""
    label = spec.id or (spec.source.label if spec.source else f"overlay[{index}]")
    placement = spec.transform
    if spec.kind == "text":
        return OverlayLayer(
            x=placement.x,
            y=placement.y,
            scale=placement.scale,
            text=spec.text or "",
            color=spec.color,
            font_size=spec.font_size,
            max_width=placement.width,
            is_bold=spec.is_bold,
            is_italic=spec.is_italic,
            z_order=spec.z_order,
            visible=spec.visible,
            asset=label,
        )
    return OverlayLayer(
        x=placement.x,
        y=placement.y,
        scale=placement.scale,
        image=decode_image(data, asset=label),
        z_order=spec.z_order,
        visible=spec.visible,
        asset=label,
    )


def _decode_and_compose(
    base_bytes: bytes,
    base_label: str,
    specs: List[OverlaySpec],
    payloads: List[Optional[bytes]],
    options: ComposeOptions,
) -> bytes:
    base = open_image(base_bytes, asset=base_label)
    layers = [_layer(spec, i, data) for i, (spec, data) in enumerate(zip(specs, payloads))]
    return compose(base, layers, options)


class CompositionService:
    """Fetches assets for a ComposeRequest and renders it."""

    def __init__(self, asset_client: AssetClient):
        self.asset_client = asset_client

    async def _fetch_all(self, sources: List[AssetSource]) -> List[bytes]:
        """Resolve sources concurrently. The first failure cancels the rest."""
        tasks = [asyncio.ensure_future(self.asset_client.resolve(source)) for source in sources]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            # Reap the siblings so none is left running or unretrieved
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def render(self, request: ComposeRequest) -> bytes:
        """
        Render a request to encoded bytes. Nothing is returned on failure.

        Only fetching happens on the event loop; decoding and compositing
        run in a worker thread.

        Raises:
            AssetFetchFailed, InvalidAsset, CompositionFailed
        """
        # Hidden overlays are skipped by the engine, so don't fetch them
        specs = [s for s in request.overlays if s.visible]
        fetched = [s for s in specs if s.kind != "text"]
        base_bytes, *overlay_bytes = await self._fetch_all(
            [request.base] + [s.source for s in fetched]
        )
        remaining = iter(overlay_bytes)
        payloads = [None if s.kind == "text" else next(remaining) for s in specs]
        return await asyncio.to_thread(
            _decode_and_compose,
            base_bytes,
            request.base.label,
            specs,
            payloads,
            request.options,
        )


@dataclass(frozen=True)
class ComposeResult:
    token: int
    data: bytes
    media_type: str


class ComposeScheduler:
    """
    Debounced, last-write-wins compose dispatch per canvas.

    Each submit takes the next token for its canvas and cancels the previous
    in-flight request. A finished render is only published if its token is
    still the newest one, so stale results never replace newer ones.
    """

    def __init__(
        self,
        render: Callable[[ComposeRequest], Awaitable[bytes]],
        debounce_ms: float = 250.0,
    ):
        self._render = render
        self.debounce_s = max(0.0, debounce_ms) / 1000.0
        self._tokens: Dict[str, int] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._latest: Dict[str, ComposeResult] = {}

    def latest(self, canvas_id: str) -> Optional[ComposeResult]:
        """Last successfully published render for a canvas."""
        return self._latest.get(canvas_id)

    def current_token(self, canvas_id: str) -> int:
        return self._tokens.get(canvas_id, 0)

    async def submit(self, canvas_id: str, request: ComposeRequest) -> Optional[ComposeResult]:
        """
        Schedule a render. Returns the published result, or None if a newer
        submit superseded this one. Errors of the newest request propagate.
        """
        token = self.current_token(canvas_id) + 1
        self._tokens[canvas_id] = token

        previous = self._tasks.get(canvas_id)
        if previous is not None and not previous.done():
            previous.cancel()

        task = asyncio.ensure_future(self._run(canvas_id, token, request))
        self._tasks[canvas_id] = task
        await asyncio.wait({task})

        if task.cancelled():
            return None
        error = task.exception()
        if error is not None:
            if token != self.current_token(canvas_id):
                return None
            raise error
        return task.result()

    async def _run(self, canvas_id: str, token: int, request: ComposeRequest) -> Optional[ComposeResult]:
        if self.debounce_s:
            await asyncio.sleep(self.debounce_s)
        data = await self._render(request)
        if token != self.current_token(canvas_id):
            logger.info(f"[COMPOSE] Dropping stale render {token} for canvas {canvas_id}")
            return None
        result = ComposeResult(token=token, data=data, media_type=request.options.media_type)
        self._latest[canvas_id] = result
        return result

    def forget(self, canvas_id: str) -> None:
        task = self._tasks.pop(canvas_id, None)
        if task is not None and not task.done():
            task.cancel()
        self._tokens.pop(canvas_id, None)
        self._latest.pop(canvas_id, None)
