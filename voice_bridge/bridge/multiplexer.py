"""
Forwarding of upstream events to the client.

Every upstream event reaches the client, in arrival order, before the bridge acts
on it. Audio events carry added stream markers; everything else is forwarded
verbatim. A handful of event kinds are also handed to the session's components.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Type, Union

from voice_bridge.bridge.audio_relay import AudioRelay
from voice_bridge.config.constants import LOGGER_NAME
from voice_bridge.models.upstream_events import (
    AudioDelta,
    AudioDone,
    UpstreamEvent,
    parse_upstream_event,
)

logger = logging.getLogger(LOGGER_NAME)

ClientSink = Callable[[Dict[str, Any]], Awaitable[None]]
InterceptHandler = Callable[[Any], Awaitable[None]]


class OutboundMultiplexer:
    """
    Relays upstream events for one session.

    Args:
        send_client: Sends one JSON event to the client
        audio: The session's AudioRelay, used to mark outbound audio
        handlers: Intercept handlers keyed by event model class
    """

    def __init__(
        self,
        send_client: ClientSink,
        audio: AudioRelay,
        handlers: Dict[Type[UpstreamEvent], InterceptHandler],
    ):
        self._send_client = send_client
        self._audio = audio
        self.handlers = dict(handlers)
        self.forwarded = 0

    async def relay(self, payload: Union[Dict[str, Any], bytes]) -> UpstreamEvent:
        """
        Forward one upstream message to the client, then run its intercept handler.

        Returns:
            The parsed event
        """
        event = parse_upstream_event(payload)
        await self._send_client(self._client_form(event))
        self.forwarded += 1

        handler = self.handlers.get(type(event))
        if handler is not None:
            await handler(event)
        return event

    def _client_form(self, event: UpstreamEvent) -> Dict[str, Any]:
        if isinstance(event, AudioDelta):
            return self._audio.tag_outbound(event)
        if isinstance(event, AudioDone):
            return self._audio.finish_outbound(event)
        return event.raw
