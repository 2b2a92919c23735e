"""
Client for the upstream realtime voice model.

One RealtimeUpstreamClient is opened per session. It sends JSON events, yields
every message the upstream sends (decoded JSON objects, or raw bytes for binary
frames) and closes exactly once. There is no reconnection: a lost upstream link
ends the session.
"""

import asyncio
import json
import logging
import time
from typing import Any, AsyncIterator, Dict, Optional, Union

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from voice_bridge.config.constants import LOGGER_NAME
from voice_bridge.config.settings import Settings
from voice_bridge.exceptions import UpstreamConnectionError

logger = logging.getLogger(LOGGER_NAME)

CONNECTION_TIMEOUT = 30  # seconds
SEND_TIMEOUT = 5.0  # seconds

# WebSocket configuration for low latency
WS_MAX_SIZE = 16 * 1024 * 1024  # 16MB - large enough for audio chunks
WS_MAX_QUEUE = 32  # Small queue to prevent buffering
WS_PING_INTERVAL = 5  # 5 seconds between pings

UpstreamMessage = Union[Dict[str, Any], bytes]


class RealtimeUpstreamClient:
    """
    WebSocket link to an OpenAI Realtime compatible endpoint.
    """

    def __init__(self, settings: Settings):
        self.api_key = settings.openai_api_key
        self.model = settings.realtime_model
        self.url = f"{settings.realtime_url}?model={self.model}"
        self.ws = None
        self._closed = False
        self._last_activity = 0.0

    @property
    def is_open(self) -> bool:
        return self.ws is not None and not self._closed

    async def connect(self) -> None:
        """
        Open the upstream WebSocket.

        Raises:
            UpstreamConnectionError: If the connection cannot be established
        """
        if self._closed:
            raise UpstreamConnectionError("Upstream client is closed")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "OpenAI-Beta": "realtime=v1",
        }
        logger.info(f"Connecting to realtime upstream with model: {self.model}")
        connection_start = time.time()
        try:
            self.ws = await asyncio.wait_for(
                websockets.connect(
                    self.url,
                    max_size=WS_MAX_SIZE,
                    max_queue=WS_MAX_QUEUE,
                    ping_interval=WS_PING_INTERVAL,
                    ping_timeout=10,
                    compression=None,  # Disable compression for lower latency
                    additional_headers=headers,
                ),
                timeout=CONNECTION_TIMEOUT,
            )
        except asyncio.TimeoutError as e:
            raise UpstreamConnectionError(
                f"Timeout while connecting to realtime upstream (after {CONNECTION_TIMEOUT}s)"
            ) from e
        except Exception as e:
            raise UpstreamConnectionError(f"Failed to connect to realtime upstream: {e}") from e

        self._last_activity = time.time()
        logger.debug(f"Upstream connection established in {time.time() - connection_start:.2f} seconds")

    async def send(self, event: Dict[str, Any]) -> None:
        """
        Send one JSON event upstream.

        Raises:
            UpstreamConnectionError: If the link is not open or the send fails
        """
        if not self.is_open:
            raise UpstreamConnectionError("Upstream link is not open")
        try:
            await asyncio.wait_for(self.ws.send(json.dumps(event)), timeout=SEND_TIMEOUT)
        except asyncio.TimeoutError as e:
            raise UpstreamConnectionError(f"Timeout sending {event.get('type')} upstream") from e
        except ConnectionClosed as e:
            raise UpstreamConnectionError(f"Upstream closed while sending: {e}") from e
        self._last_activity = time.time()

    async def receive(self) -> AsyncIterator[UpstreamMessage]:
        """
        Yield upstream messages in arrival order until the link closes.

        Raises:
            UpstreamConnectionError: If the link closes abnormally
        """
        if self.ws is None:
            raise UpstreamConnectionError("Upstream link is not open")
        try:
            async for message in self.ws:
                self._last_activity = time.time()
                if isinstance(message, bytes):
                    yield message
                    continue
                try:
                    data = json.loads(message)
                except json.JSONDecodeError:
                    logger.warning(f"Received invalid JSON from upstream: {message[:100]}...")
                    continue
                if isinstance(data, dict):
                    yield data
        except ConnectionClosedOK:
            logger.info("Upstream connection closed normally")
        except ConnectionClosed as e:
            if self._closed:
                return
            raise UpstreamConnectionError(f"Upstream connection closed unexpectedly: {e}") from e

    async def close(self) -> None:
        """Close the WebSocket connection; later calls do nothing."""
        if self._closed:
            return
        self._closed = True
        if self.ws is not None:
            logger.debug("Closing upstream WebSocket connection")
            try:
                await self.ws.close()
            except Exception as e:
                logger.warning(f"Error closing upstream WebSocket: {e}")
        logger.info("Realtime upstream client closed")
