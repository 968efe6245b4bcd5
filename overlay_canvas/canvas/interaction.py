"""
Interaction Controller
======================

Pointer-driven state machine that drags and resizes canvas elements.

States: IDLE -> DRAGGING | RESIZING -> IDLE. Only one gesture is active at a
time and only the pointer that started it can drive it. Pointer positions
arrive in display space and are mapped into base-image space with the
viewport captured at pointer-down.
"""

import logging
from enum import Enum
from typing import Callable, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict

from ..models.canvas_models import (
    BaseImage,
    Corner,
    DragSession,
    LogoOverlay,
    Point,
    ResizeSession,
    Transform,
)
from ..models.composition_models import ComposeOptions
from ..services.composition_engine import overlay_target_size
from .coordinates import Viewport, delta_to_image_space, scale_factor, to_image_space
from .state_model import CanvasStateModel

logger = logging.getLogger(__name__)

DEFAULT_MIN_SCALE = 0.05
DEFAULT_HANDLE_SIZE = 8.0
MIN_TEXT_WIDTH = 1.0


class InteractionState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    RESIZING = "resizing"


class HitTarget(BaseModel):
    """What a pointer-down landed on. `handle` is set for resize handles."""
    model_config = ConfigDict(frozen=True)

    element_id: str
    handle: Optional[Corner] = None


class InteractionEvent(BaseModel):
    """Emitted after every transition, including moves within a gesture."""
    model_config = ConfigDict(frozen=True)

    state: InteractionState
    element_id: Optional[str] = None
    transform: Optional[Transform] = None
    version: int


InteractionListener = Callable[[InteractionEvent], None]
Session = Union[DragSession, ResizeSession]


class InteractionController:
    """Consumes pointer events and writes transforms to a CanvasStateModel."""

    def __init__(
        self,
        model: CanvasStateModel,
        min_scale: float = DEFAULT_MIN_SCALE,
        handle_size: float = DEFAULT_HANDLE_SIZE,
        options: Optional[ComposeOptions] = None,
    ):
        if min_scale <= 0:
            raise ValueError("min_scale must be positive")
        self.model = model
        self.min_scale = min_scale
        self.handle_size = handle_size
        self.options = options or ComposeOptions()
        self.selected_id: Optional[str] = None
        self._session: Optional[Session] = None
        self._viewport: Optional[Viewport] = None
        self._pointer_id: Optional[int] = None
        self._listeners: List[InteractionListener] = []

    @property
    def state(self) -> InteractionState:
        if isinstance(self._session, DragSession):
            return InteractionState.DRAGGING
        if isinstance(self._session, ResizeSession):
            return InteractionState.RESIZING
        return InteractionState.IDLE

    @property
    def session(self) -> Optional[Session]:
        return self._session

    def subscribe(self, listener: InteractionListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def _emit(self, element_id: Optional[str], transform: Optional[Transform]) -> None:
        event = InteractionEvent(
            state=self.state,
            element_id=element_id,
            transform=transform,
            version=self.model.snapshot.version,
        )
        for listener in list(self._listeners):
            listener(event)

    # ---------- Hit testing ----------

    def hit_test(self, display_point: Point, viewport: Viewport) -> Optional[HitTarget]:
        """Resize handles of the selected element win, then the topmost visible layer."""
        snapshot = self.model.snapshot
        px, py = to_image_space(display_point, viewport)
        half = self.handle_size / scale_factor(viewport) / 2

        selected = snapshot.get(self.selected_id) if self.selected_id else None
        if selected is not None and selected.visible and not isinstance(selected, BaseImage):
            for corner in Corner:
                cx, cy = selected.transform.corner(corner)
                if abs(px - cx) <= half and abs(py - cy) <= half:
                    return HitTarget(element_id=selected.id, handle=corner)

        for element in reversed(snapshot.layers):
            if element.visible and element.transform.contains((px, py)):
                return HitTarget(element_id=element.id)
        return None

    # ---------- Transitions ----------

    def pointer_down(
        self,
        point: Point,
        viewport: Viewport,
        target: Optional[HitTarget] = None,
        pointer_id: int = 0,
        is_primary: bool = True,
    ) -> bool:
        """Start a drag (element) or resize (handle). Returns True if a gesture started."""
        if self._session is not None or not is_primary:
            return False

        if target is None:
            target = self.hit_test(point, viewport)
        if target is None:
            self.selected_id = None
            return False

        element = self.model.get(target.element_id)
        if isinstance(element, BaseImage):
            return False

        if target.handle is None:
            self._session = DragSession(
                element_id=element.id,
                pointer_start=point,
                transform_start=element.transform,
            )
        else:
            self._session = ResizeSession(
                element_id=element.id,
                pointer_start=point,
                transform_start=element.transform,
                anchor_corner=target.handle.opposite,
            )
        self.selected_id = element.id
        self._viewport = viewport
        self._pointer_id = pointer_id
        logger.debug(f"[INTERACTION] {self.state.value} started on {element.id}")
        self._emit(element.id, element.transform)
        return True

    def pointer_move(self, point: Point, pointer_id: int = 0) -> Optional[Transform]:
        """Advance the active gesture. Ignored without a session or from another pointer."""
        session = self._session
        if session is None or pointer_id != self._pointer_id:
            return None

        dx, dy = delta_to_image_space(
            point[0] - session.pointer_start[0],
            point[1] - session.pointer_start[1],
            self._viewport,
        )
        if isinstance(session, DragSession):
            start = session.transform_start
            transform = start.model_copy(update={"x": start.x + dx, "y": start.y + dy})
        else:
            transform = self._resized(session, dx, dy)

        self.model.update_transform(session.element_id, transform)
        self._emit(session.element_id, transform)
        return transform

    def pointer_up(self, pointer_id: int = 0) -> None:
        """Finish the gesture, keeping the last transform."""
        if self._session is None or pointer_id != self._pointer_id:
            return
        self._end()

    def pointer_cancel(self, pointer_id: int = 0) -> None:
        """Platform cancelled the pointer. Keeps the last transform like pointer_up."""
        self.pointer_up(pointer_id)

    def cancel(self) -> None:
        """Abort the gesture and restore the transform it started from."""
        session = self._session
        if session is None:
            return
        self.model.update_transform(session.element_id, session.transform_start)
        logger.debug(f"[INTERACTION] Gesture on {session.element_id} cancelled, transform restored")
        self._end()

    def _end(self) -> None:
        session = self._session
        self._session = None
        self._viewport = None
        self._pointer_id = None
        element = self.model.snapshot.get(session.element_id)
        self._emit(session.element_id, element.transform if element is not None else None)

    # ---------- Resize math ----------

    def locked_size(self, natural_width: float, natural_height: float, scale: float) -> Tuple[float, float]:
        """
        On-canvas box of an aspect-locked overlay at `scale`.

        With a base image this is exactly the size the composition engine
        renders; without one the natural size is scaled directly.
        """
        base = self.model.snapshot.base_image
        if base is None:
            return natural_width * scale, natural_height * scale
        width, height = overlay_target_size(
            natural_width,
            natural_height,
            base.natural_width,
            base.natural_height,
            scale=scale,
            target_width_fraction=self.options.target_width_fraction,
            allow_upscale=self.options.allow_upscale,
        )
        return float(width), float(height)

    def conform(self, transform: Transform, natural_width: float, natural_height: float) -> Transform:
        """Recompute an aspect-locked box from its scale, keeping the top-left corner."""
        width, height = self.locked_size(natural_width, natural_height, transform.scale)
        return transform.model_copy(update={"width": width, "height": height})

    def set_transform(self, element_id: str, transform: Transform) -> Transform:
        """Write a transform from outside a gesture. Logo boxes follow their scale."""
        element = self.model.get(element_id)
        if isinstance(element, LogoOverlay):
            transform = self.conform(transform, element.natural_width, element.natural_height)
        self.model.update_transform(element_id, transform)
        return transform

    def _resized(self, session: ResizeSession, dx: float, dy: float) -> Transform:
        start = session.transform_start
        ax, ay = start.corner(session.anchor_corner)
        hx, hy = start.corner(session.anchor_corner.opposite)
        # Signed diagonal from the fixed corner to the grabbed handle
        vx, vy = hx - ax, hy - ay

        element = self.model.get(session.element_id)
        if element.aspect_locked:
            t = ((vx + dx) * vx + (vy + dy) * vy) / (vx * vx + vy * vy)
            scale = max(self.min_scale, start.scale + start.scale * (t - 1))
            width, height = self.locked_size(element.natural_width, element.natural_height, scale)
        else:
            # Text: the box width follows the pointer, height comes from content
            direction = 1.0 if vx > 0 else -1.0
            width = max(MIN_TEXT_WIDTH, start.width + direction * dx)
            height = start.height
            scale = start.scale

        x = ax if vx > 0 else ax - width
        y = ay if vy > 0 else ay - height
        return Transform(x=x, y=y, width=width, height=height, scale=scale)
