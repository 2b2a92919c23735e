"""
Session state and the registry of live sessions.

A Session pairs one client websocket with the upstream link it owns. Its lifecycle
only moves forward: connecting, active, closing, closed. The SessionRegistry keeps
track of live sessions for the health endpoint; it holds no conversation data.
"""

import logging
import uuid
from enum import Enum
from typing import Any, Dict, Optional

from voice_bridge.config.constants import LOGGER_NAME, SESSION_ID_PREFIX
from voice_bridge.exceptions import SessionError
from voice_bridge.models.conversation import ConversationHistory
from voice_bridge.models.session_config import apply_session_update

logger = logging.getLogger(LOGGER_NAME)


class SessionState(str, Enum):
    """Lifecycle states of a bridge session."""

    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


_STATE_ORDER = {
    SessionState.CONNECTING: 0,
    SessionState.ACTIVE: 1,
    SessionState.CLOSING: 2,
    SessionState.CLOSED: 3,
}


def generate_session_id() -> str:
    return f"{SESSION_ID_PREFIX}{uuid.uuid4().hex[:10]}"


class Session:
    """
    State owned by one client connection.

    Attributes:
        id: Generated session id sent to the client in the ready event
        websocket: The client connection handle
        upstream: The upstream link handle
        config: Live upstream session configuration
        history: Ordered conversation history
        client_label: Optional session id the client supplied in session.init
    """

    def __init__(
        self,
        websocket: Any,
        upstream: Any = None,
        config: Optional[Dict[str, Any]] = None,
        session_id: Optional[str] = None,
    ):
        self.id = session_id or generate_session_id()
        self.websocket = websocket
        self.upstream = upstream
        self.config: Dict[str, Any] = dict(config or {})
        self.history = ConversationHistory()
        self.client_label: Optional[str] = None
        self._state = SessionState.CONNECTING

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_live(self) -> bool:
        """True while the session may still act on events."""
        return self._state in (SessionState.CONNECTING, SessionState.ACTIVE)

    def advance(self, new_state: SessionState) -> bool:
        """
        Move the session forward to ``new_state``.

        Returns:
            True if the state changed; False if the transition would not move forward
        """
        if _STATE_ORDER[new_state] <= _STATE_ORDER[self._state]:
            logger.debug(
                f"Ignoring transition {self._state.value} -> {new_state.value} for session {self.id}"
            )
            return False
        logger.debug(f"Session {self.id}: {self._state.value} -> {new_state.value}")
        self._state = new_state
        return True

    def merge_config(self, update: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge ``update`` into the live configuration.

        Returns:
            The delta to forward upstream
        """
        return apply_session_update(self.config, update)


class SessionRegistry:
    """
    Registry of live sessions, keyed by session id.

    Used for monitoring only: sessions share nothing through it.
    """

    def __init__(self):
        self.active_sessions: Dict[str, Session] = {}

    def add_session(self, session: Session) -> None:
        """
        Register a live session.

        Raises:
            SessionError: If a session with the same id is already registered
        """
        if session.id in self.active_sessions:
            raise SessionError(session.id, "Session id already registered")
        self.active_sessions[session.id] = session

    def get_session(self, session_id: str) -> Optional[Session]:
        return self.active_sessions.get(session_id)

    def remove_session(self, session_id: str) -> None:
        if session_id in self.active_sessions:
            del self.active_sessions[session_id]

    def __len__(self) -> int:
        return len(self.active_sessions)
