"""
Canvas State Model
==================

Authoritative in-memory canvas for one editing session.

Every mutation replaces the current `CanvasState` with a new frozen snapshot
and notifies subscribers. Nothing here performs I/O.
"""

import logging
import uuid
from typing import Any, Callable, Dict, List, Optional, Union

from ..errors import ElementNotFound, PermissionDenied
from ..models.canvas_models import (
    AspectRatio,
    BaseImage,
    CanvasState,
    ElementKind,
    LogoOverlay,
    TextOverlay,
    Transform,
)

logger = logging.getLogger(__name__)

LEGACY_TEXT_ID = "legacy-text"

SnapshotListener = Callable[[CanvasState], None]

_ELEMENT_TYPES = {
    ElementKind.BASE_IMAGE: BaseImage,
    ElementKind.LOGO: LogoOverlay,
    ElementKind.TEXT: TextOverlay,
}

_TEXT_FIELDS = ("text", "color", "font_size", "is_bold", "is_italic")


class CanvasStateModel:
    """Owns the current snapshot of a canvas and applies mutations to it."""

    def __init__(self, state: Optional[CanvasState] = None):
        self._state = state or CanvasState()
        self._listeners: List[SnapshotListener] = []
        self._next_z = max((e.z_order for e in self._state.elements), default=0) + 1

    @property
    def snapshot(self) -> CanvasState:
        return self._state

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a listener for new snapshots. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, **update: Any) -> CanvasState:
        update["version"] = self._state.version + 1
        self._state = self._state.model_copy(update=update)
        for listener in list(self._listeners):
            listener(self._state)
        return self._state

    def get(self, element_id: str) -> Union[BaseImage, LogoOverlay, TextOverlay]:
        element = self._state.get(element_id)
        if element is None:
            raise ElementNotFound(f"Element not found: {element_id}", asset=element_id)
        return element

    def _replace(self, element_id: str, **update: Any) -> CanvasState:
        index = self._state.index_of(element_id)
        if index < 0:
            raise ElementNotFound(f"Element not found: {element_id}", asset=element_id)
        elements = list(self._state.elements)
        elements[index] = elements[index].model_copy(update=update)
        return self._commit(elements=tuple(elements))

    # ---------- Elements ----------

    def add_element(
        self,
        kind: Union[ElementKind, str],
        initial_transform: Transform,
        element_id: Optional[str] = None,
        **attrs: Any,
    ) -> str:
        """Place a new element on top of the paint order and return its id."""
        kind = ElementKind(kind)
        element_id = element_id or str(uuid.uuid4())
        if self._state.get(element_id) is not None or element_id == LEGACY_TEXT_ID:
            raise ValueError(f"Duplicate element id: {element_id}")
        if kind == ElementKind.BASE_IMAGE and self._state.base_image is not None:
            raise ValueError("Canvas already has a base image")

        if kind == ElementKind.BASE_IMAGE:
            z_order = 0
        else:
            z_order = self._next_z
            self._next_z += 1

        element = _ELEMENT_TYPES[kind](
            id=element_id,
            z_order=z_order,
            transform=initial_transform,
            **attrs,
        )
        elements = list(self._state.elements)
        if kind == ElementKind.BASE_IMAGE:
            elements.insert(0, element)
        else:
            elements.append(element)
        self._commit(elements=tuple(elements))
        logger.debug(f"[CANVAS] Added {kind.value} element {element_id} (z={z_order})")
        return element_id

    def remove_element(self, element_id: str) -> None:
        if element_id == LEGACY_TEXT_ID and self._state.legacy_text is not None:
            self.clear_legacy_text()
            return
        if self._state.index_of(element_id) < 0:
            raise ElementNotFound(f"Element not found: {element_id}", asset=element_id)
        self._commit(elements=tuple(e for e in self._state.elements if e.id != element_id))
        logger.debug(f"[CANVAS] Removed element {element_id}")

    def update_transform(self, element_id: str, transform: Transform) -> CanvasState:
        """Replace an element's transform wholesale."""
        if element_id == LEGACY_TEXT_ID and self._state.legacy_text is not None:
            return self._commit(
                legacy_text=self._state.legacy_text.model_copy(update={"transform": transform})
            )
        return self._replace(element_id, transform=transform)

    def set_visibility(self, element_id: str, visible: bool) -> CanvasState:
        if element_id == LEGACY_TEXT_ID and self._state.legacy_text is not None:
            return self._commit(
                legacy_text=self._state.legacy_text.model_copy(update={"visible": visible})
            )
        return self._replace(element_id, visible=bool(visible))

    def update_text(self, element_id: str, **changes: Any) -> CanvasState:
        """Change text content or styling of a text overlay."""
        unknown = set(changes) - set(_TEXT_FIELDS)
        if unknown:
            raise ValueError(f"Unknown text fields: {sorted(unknown)}")
        if element_id == LEGACY_TEXT_ID and self._state.legacy_text is not None:
            return self.set_legacy_text(**changes)
        element = self.get(element_id)
        if not isinstance(element, TextOverlay):
            raise ValueError(f"Element {element_id} is not a text overlay")
        # Re-validate so color/font_size constraints hold
        updated = TextOverlay.model_validate({**element.model_dump(), **changes})
        index = self._state.index_of(element_id)
        elements = list(self._state.elements)
        elements[index] = updated
        return self._commit(elements=tuple(elements))

    def reorder(self, from_index: int, to_index: int) -> CanvasState:
        """Move an overlay within the paint order. The base image stays at the bottom."""
        overlays = list(self._state.overlays)
        if not (0 <= from_index < len(overlays)) or not (0 <= to_index < len(overlays)):
            raise IndexError(f"Reorder indices out of range: {from_index} -> {to_index}")
        moved = overlays.pop(from_index)
        overlays.insert(to_index, moved)
        renumbered = [o.model_copy(update={"z_order": i + 1}) for i, o in enumerate(overlays)]
        self._next_z = len(renumbered) + 1
        base = self._state.base_image
        elements = ([base] if base is not None else []) + renumbered
        return self._commit(elements=tuple(elements))

    def clear(self) -> CanvasState:
        self._next_z = 1
        return self._commit(elements=(), legacy_text=None)

    def restore(self, snapshot: CanvasState) -> CanvasState:
        """Roll back to an earlier snapshot. The version keeps increasing."""
        self._next_z = max((e.z_order for e in snapshot.elements), default=0) + 1
        return self._commit(
            elements=snapshot.elements,
            aspect_ratio=snapshot.aspect_ratio,
            advanced_mode_enabled=snapshot.advanced_mode_enabled,
            legacy_text=snapshot.legacy_text,
        )

    # ---------- Canvas settings ----------

    def set_advanced_mode(self, enabled: bool) -> CanvasState:
        return self._commit(advanced_mode_enabled=bool(enabled))

    def set_aspect_ratio(self, ratio: Union[AspectRatio, str]) -> CanvasState:
        """Change the canvas aspect ratio. Requires advanced mode."""
        ratio = AspectRatio(ratio)
        if not self._state.advanced_mode_enabled:
            logger.info(f"[CANVAS] Rejected aspect ratio change to {ratio.value}: advanced mode disabled")
            raise PermissionDenied(
                f"Aspect ratio {ratio.value} requires advanced mode",
                asset="aspect_ratio",
            )
        if ratio == self._state.aspect_ratio:
            return self._state
        return self._commit(aspect_ratio=ratio)

    # ---------- Legacy single text ----------

    def set_legacy_text(self, transform: Optional[Transform] = None, **fields: Any) -> CanvasState:
        """Create or update the legacy single text overlay."""
        current = self._state.legacy_text
        data: Dict[str, Any] = current.model_dump() if current is not None else {
            "id": LEGACY_TEXT_ID,
            "transform": Transform(width=1, height=1).model_dump(),
        }
        if transform is not None:
            data["transform"] = transform.model_dump()
        data.update(fields)
        return self._commit(legacy_text=TextOverlay.model_validate(data))

    def clear_legacy_text(self) -> CanvasState:
        return self._commit(legacy_text=None)

    # ---------- Content predicates ----------

    def element_count(self) -> int:
        """Visible images/logos plus visible text, including the legacy text."""
        state = self._state
        non_text = sum(1 for e in state.elements if not isinstance(e, TextOverlay) and e.visible)
        visible_text = sum(1 for t in state.text_overlays if t.visible)
        legacy = 1 if state.legacy_text is not None and state.legacy_text.visible else 0
        return non_text + visible_text + legacy

    def is_empty(self) -> bool:
        """No visible images/logos, legacy text hidden, and no text overlays at all."""
        return self.element_count() == 0 and not self._state.text_overlays

    def has_exportable_content(self) -> bool:
        return not self.is_empty()
