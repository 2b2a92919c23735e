"""
Classification and routing of inbound client frames.

Binary frames are microphone audio and go straight to the audio path. Text frames
are JSON control messages: each recognized type is routed to its handler, and
anything else is reported back to the client as an error event while the
connection stays open.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Union

from pydantic import BaseModel

from voice_bridge.config.constants import LOGGER_NAME
from voice_bridge.exceptions import ClientProtocolError
from voice_bridge.models.client_messages import parse_client_message

logger = logging.getLogger(LOGGER_NAME)

# Type hints for the router's collaborators
ControlHandler = Callable[[BaseModel, Any], Awaitable[None]]
AudioSink = Callable[[bytes], Awaitable[None]]
ErrorSink = Callable[[ClientProtocolError], Awaitable[None]]


class FrameRouter:
    """
    Routes client frames for one session.

    Args:
        handlers: Control message handlers keyed by message type; each is called
            with the validated message and ``context``
        on_audio: Receives raw binary audio frames
        on_error: Receives protocol errors to report to the client
        context: Passed to every control handler (the session's supervisor)
    """

    def __init__(
        self,
        handlers: Dict[str, ControlHandler],
        on_audio: AudioSink,
        on_error: ErrorSink,
        context: Any = None,
    ):
        self.handlers = dict(handlers)
        self._on_audio = on_audio
        self._on_error = on_error
        self._context = context

    async def route(self, frame: Union[bytes, bytearray, str]) -> None:
        """Route one inbound frame."""
        if isinstance(frame, (bytes, bytearray)):
            await self._on_audio(bytes(frame))
            return

        try:
            message = parse_client_message(frame)
        except ClientProtocolError as e:
            logger.warning(f"Rejected client frame: {e.message}")
            await self._on_error(e)
            return

        handler = self.handlers.get(message.type)
        if handler is None:
            logger.warning(f"Unhandled message type received: {message.type}")
            await self._on_error(ClientProtocolError(f"Unsupported message type: {message.type}"))
            return

        logger.info(f"Received control message: {message.type}")
        await handler(message, self._context)
