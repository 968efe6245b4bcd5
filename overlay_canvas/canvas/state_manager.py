"""
Canvas State Manager
====================

Owns one CanvasStateModel and InteractionController per editing session.

Sessions live in memory only; a canvas is never persisted server-side.
"""

import logging
import uuid
from datetime import datetime
from typing import Dict, List, Optional

from ..models.composition_models import ComposeOptions
from .interaction import InteractionController
from .state_model import CanvasStateModel

logger = logging.getLogger(__name__)


class CanvasSession:
    """A canvas being edited, with the controller driving its gestures."""

    def __init__(
        self,
        session_id: str,
        min_scale: Optional[float] = None,
        options: Optional[ComposeOptions] = None,
    ):
        self.id = session_id
        self.model = CanvasStateModel()
        if min_scale is None:
            self.controller = InteractionController(self.model, options=options)
        else:
            self.controller = InteractionController(self.model, min_scale=min_scale, options=options)
        self.created_at = datetime.now()
        self.updated_at: Optional[datetime] = None
        self.model.subscribe(self._touch)

    def _touch(self, _snapshot) -> None:
        self.updated_at = datetime.now()


class StateManager:
    """Manages canvas sessions."""

    def __init__(self, min_scale: Optional[float] = None, options: Optional[ComposeOptions] = None):
        self.min_scale = min_scale
        self.options = options
        self._sessions: Dict[str, CanvasSession] = {}
        logger.info("[STATE-MANAGER] Initialized")

    def create_session(self, session_id: Optional[str] = None) -> str:
        """Create a new session with optional ID. Existing sessions are kept."""
        if session_id is None:
            session_id = str(uuid.uuid4())

        if session_id not in self._sessions:
            self._sessions[session_id] = CanvasSession(session_id, min_scale=self.min_scale, options=self.options)
            logger.info(f"[STATE-MANAGER] Created session {session_id}")
        return session_id

    def get_session(self, session_id: str) -> Optional[CanvasSession]:
        """Get session state."""
        return self._sessions.get(session_id)

    def list_sessions(self) -> List[str]:
        return list(self._sessions)

    def clear_session(self, session_id: str) -> bool:
        """Clear all elements from session. Any active gesture is abandoned."""
        session = self.get_session(session_id)
        if not session:
            return False

        session.controller.cancel()
        session.model.clear()
        return True

    def end_session(self, session_id: str) -> bool:
        """Drop the session and everything placed on it."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        logger.info(f"[STATE-MANAGER] Ended session {session_id}")
        return True
