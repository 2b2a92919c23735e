"""
WebSocket connection manager for browser voice clients.

Each accepted client connection gets its own ConnectionSupervisor, which opens a
dedicated upstream link and runs the session until either side goes away. The
manager only wires sessions up and keeps the registry the health endpoint
reads; sessions share no state with each other.
"""

import logging
import socket
from typing import Any, Callable, Optional

from fastapi import WebSocket

from voice_bridge.bridge.supervisor import ConnectionSupervisor
from voice_bridge.bridge.upstream import RealtimeUpstreamClient
from voice_bridge.config.constants import LOGGER_NAME
from voice_bridge.config.settings import Settings
from voice_bridge.exceptions import ConfigurationError, SessionError
from voice_bridge.models.session import SessionRegistry

logger = logging.getLogger(LOGGER_NAME)

UpstreamFactory = Callable[[Settings], Any]


class WebSocketManager:
    """Accepts client websockets and runs one bridge session per connection.

    Args:
        upstream_factory: Builds the upstream link for a new session
    """

    def __init__(self, upstream_factory: UpstreamFactory = RealtimeUpstreamClient):
        self.registry = SessionRegistry()
        self.upstream_factory = upstream_factory
        self.settings: Optional[Settings] = None
        self.executor: Any = None

    def configure(self, settings: Settings, executor: Any) -> None:
        """Install the process-wide settings and tool executor."""
        self.settings = settings
        self.executor = executor

    @property
    def active_sessions(self) -> int:
        return len(self.registry)

    async def _optimize_socket(self, websocket: WebSocket) -> None:
        """
        Optimize the WebSocket's underlying TCP socket for low-latency transmission.

        Args:
            websocket: The FastAPI WebSocket connection
        """
        try:
            client = websocket.client
            if hasattr(client, "sock") and client.sock is not None:
                # Disable Nagle's algorithm to send packets immediately
                client.sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
                logger.info("Optimized socket: TCP_NODELAY enabled for low latency")
        except Exception as e:
            logger.warning(f"Could not optimize socket: {e}")

    def create_supervisor(self, websocket: WebSocket) -> ConnectionSupervisor:
        """
        Build the session for an accepted connection.

        Raises:
            ConfigurationError: If the manager has not been configured
        """
        if self.settings is None or self.executor is None:
            raise ConfigurationError("WebSocketManager is not configured")
        upstream = self.upstream_factory(self.settings)
        supervisor = ConnectionSupervisor(websocket, upstream, self.executor, self.settings)
        self.registry.add_session(supervisor.session)
        return supervisor

    async def handle_websocket(self, websocket: WebSocket):
        """Handle a client connection throughout its lifecycle.

        Accepts the connection, runs its session until teardown and removes it
        from the registry afterwards.
        """
        await websocket.accept()
        await self._optimize_socket(websocket)

        try:
            supervisor = self.create_supervisor(websocket)
        except (ConfigurationError, SessionError) as e:
            logger.error(f"Cannot start session: {e}")
            await websocket.close(code=1011)
            return

        logger.info(f"Client connected, session {supervisor.id} ({self.active_sessions} active)")
        try:
            await supervisor.run()
        finally:
            self.registry.remove_session(supervisor.id)
            logger.info(f"Client session {supervisor.id} removed ({self.active_sessions} active)")
