"""
Audio conversion between the client's binary frames and the upstream events.

Inbound: each binary microphone frame becomes exactly one base64 append event,
in arrival order. Outbound: upstream audio deltas are forwarded with their vendor
fields intact plus ``seq``/``offset`` markers, so the client can rebuild one
continuous stream per generated utterance and detect its end.
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from voice_bridge.config.constants import LOGGER_NAME, UPSTREAM_AUDIO_APPEND
from voice_bridge.models.upstream_events import AudioDelta, AudioDone

logger = logging.getLogger(LOGGER_NAME)


@dataclass
class _StreamPosition:
    seq: int = 0
    offset: int = 0


class AudioRelay:
    """Order-preserving audio relay for one session."""

    def __init__(self):
        self._streams: Dict[str, _StreamPosition] = {}
        self.frames_in = 0
        self.bytes_in = 0

    def encode_inbound(self, frame: bytes) -> Optional[Dict[str, Any]]:
        """
        Wrap a raw microphone frame as an upstream append event.

        Args:
            frame: Raw audio bytes from the client

        Returns:
            The append event, or None for an empty frame
        """
        if not frame:
            logger.debug("Skipping empty audio frame")
            return None
        self.frames_in += 1
        self.bytes_in += len(frame)
        return {
            "type": UPSTREAM_AUDIO_APPEND,
            "audio": base64.b64encode(frame).decode("utf-8"),
        }

    def tag_outbound(self, event: AudioDelta) -> Dict[str, Any]:
        """
        Build the client-facing form of an upstream audio delta.

        The vendor payload is copied unchanged and ``seq``/``offset`` are added.
        """
        position = self._streams.setdefault(event.stream_key, _StreamPosition())
        message = dict(event.raw) if event.raw else {"type": event.type, "delta": event.delta}
        message["seq"] = position.seq
        message["offset"] = position.offset

        position.seq += 1
        position.offset += _decoded_length(event.delta)
        return message

    def finish_outbound(self, event: AudioDone) -> Dict[str, Any]:
        """Build the client-facing end-of-stream event and forget the stream."""
        position = self._streams.pop(event.stream_key, _StreamPosition())
        message = dict(event.raw) if event.raw else {"type": event.type}
        message["seq"] = position.seq
        message["bytes"] = position.offset
        return message

    def reset(self) -> None:
        """Drop all outbound stream positions."""
        self._streams.clear()


def _decoded_length(encoded: str) -> int:
    try:
        return len(base64.b64decode(encoded, validate=False))
    except (binascii.Error, ValueError):
        logger.warning("Upstream audio delta is not valid base64")
        return 0
