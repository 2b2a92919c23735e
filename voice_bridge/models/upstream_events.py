"""
Tagged models for the upstream events the bridge acts on.

Upstream payloads are vendor-defined and only partially interpreted. Each decoded
event becomes one of a small set of typed variants, or an OpaqueEvent that keeps
the raw payload for verbatim forwarding. Every variant keeps ``raw`` so nothing
the vendor sent is lost on the way to the client.
"""

import base64
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field

from voice_bridge.config.constants import (
    ASSISTANT_TRANSCRIPT_DELTA_TYPES,
    AUDIO_DELTA_EVENT,
    AUDIO_DELTA_TYPES,
    AUDIO_DONE_TYPES,
    FUNCTION_CALL_ARGUMENTS_DELTA,
    FUNCTION_CALL_ARGUMENTS_DONE,
    INPUT_TRANSCRIPTION_COMPLETED,
    INPUT_TRANSCRIPTION_DELTA,
    OUTPUT_ITEM_ADDED,
    RESPONSE_CREATED,
    RESPONSE_DONE,
    SESSION_LIFECYCLE_TYPES,
    TRANSCRIPTION_RESULTS,
    TRANSCRIPTION_UTTERANCE_END,
    UPSTREAM_ERROR,
)


class UpstreamEvent(BaseModel):
    """Base model for decoded upstream events."""

    type: str
    raw: Dict[str, Any] = Field(default_factory=dict)


class OpaqueEvent(UpstreamEvent):
    """Any event the bridge does not act on; forwarded untouched."""


class TranscriptFragment(UpstreamEvent):
    """A piece of the user's speech transcript.

    ``append`` marks incremental deltas that extend the buffered text; otherwise
    the text is a full hypothesis that replaces it. ``utterance_id`` is the input
    audio item the text belongs to, when the upstream names one.
    """

    text: str = ""
    is_final: bool = False
    append: bool = False
    utterance_id: Optional[str] = None


class FunctionCallAnnounced(UpstreamEvent):
    call_id: str
    name: str
    response_id: Optional[str] = None


class FunctionCallArgumentsDelta(UpstreamEvent):
    call_id: str
    delta: str = ""


class FunctionCallArgumentsDone(UpstreamEvent):
    call_id: str
    name: Optional[str] = None
    arguments: Optional[str] = None


class AudioDelta(UpstreamEvent):
    """Encoded audio for the assistant's current utterance."""

    delta: str
    stream_key: str = "default"


class AudioDone(UpstreamEvent):
    stream_key: str = "default"


class AssistantTranscriptDelta(UpstreamEvent):
    delta: str = ""
    response_id: Optional[str] = None


class ResponseCreated(UpstreamEvent):
    response_id: Optional[str] = None


class ResponseDone(UpstreamEvent):
    response_id: Optional[str] = None
    status: Optional[str] = None


class SessionLifecycle(UpstreamEvent):
    """session.created / session.updated from the upstream."""

    upstream_session_id: Optional[str] = None


class UpstreamErrorEvent(UpstreamEvent):
    """An upstream error; ``client_event_id`` names the bridge event it rejected."""

    message: str = ""
    code: Optional[str] = None
    client_event_id: Optional[str] = None


ParsedUpstreamEvent = Union[
    OpaqueEvent,
    TranscriptFragment,
    FunctionCallAnnounced,
    FunctionCallArgumentsDelta,
    FunctionCallArgumentsDone,
    AudioDelta,
    AudioDone,
    AssistantTranscriptDelta,
    ResponseCreated,
    ResponseDone,
    SessionLifecycle,
    UpstreamErrorEvent,
]


def _stream_key(data: Dict[str, Any]) -> str:
    # One continuous audio stream per generated utterance
    return str(data.get("item_id") or data.get("response_id") or "default")


def _results_transcript(data: Dict[str, Any]) -> str:
    alternatives = (data.get("channel") or {}).get("alternatives") or []
    if alternatives and isinstance(alternatives[0], dict):
        return str(alternatives[0].get("transcript") or "")
    return ""


def parse_upstream_event(payload: Union[Dict[str, Any], bytes]) -> ParsedUpstreamEvent:
    """
    Classify a decoded upstream message.

    Args:
        payload: A decoded JSON object, or raw bytes for binary audio frames

    Returns:
        The matching tagged event, or OpaqueEvent when the bridge does not act on it
    """
    if isinstance(payload, (bytes, bytearray)):
        encoded = base64.b64encode(bytes(payload)).decode("utf-8")
        return AudioDelta(type=AUDIO_DELTA_EVENT, raw={}, delta=encoded)

    event_type = str(payload.get("type", ""))

    if event_type == INPUT_TRANSCRIPTION_DELTA:
        return TranscriptFragment(
            type=event_type,
            raw=payload,
            text=str(payload.get("delta") or ""),
            append=True,
            utterance_id=payload.get("item_id"),
        )
    elif event_type == INPUT_TRANSCRIPTION_COMPLETED:
        return TranscriptFragment(
            type=event_type,
            raw=payload,
            text=str(payload.get("transcript") or ""),
            is_final=True,
            utterance_id=payload.get("item_id"),
        )
    elif event_type == TRANSCRIPTION_RESULTS:
        return TranscriptFragment(
            type=event_type,
            raw=payload,
            text=_results_transcript(payload),
            is_final=payload.get("is_final") is True or payload.get("speech_final") is True,
        )
    elif event_type == TRANSCRIPTION_UTTERANCE_END:
        return TranscriptFragment(type=event_type, raw=payload, is_final=True)
    elif event_type == OUTPUT_ITEM_ADDED:
        item = payload.get("item") or {}
        if item.get("type") == "function_call" and item.get("call_id"):
            return FunctionCallAnnounced(
                type=event_type,
                raw=payload,
                call_id=str(item["call_id"]),
                name=str(item.get("name") or ""),
                response_id=payload.get("response_id"),
            )
    elif event_type == FUNCTION_CALL_ARGUMENTS_DELTA and payload.get("call_id"):
        return FunctionCallArgumentsDelta(
            type=event_type,
            raw=payload,
            call_id=str(payload["call_id"]),
            delta=str(payload.get("delta") or ""),
        )
    elif event_type == FUNCTION_CALL_ARGUMENTS_DONE and payload.get("call_id"):
        return FunctionCallArgumentsDone(
            type=event_type,
            raw=payload,
            call_id=str(payload["call_id"]),
            name=payload.get("name"),
            arguments=payload.get("arguments"),
        )
    elif event_type in AUDIO_DELTA_TYPES:
        return AudioDelta(
            type=event_type,
            raw=payload,
            delta=str(payload.get("delta") or ""),
            stream_key=_stream_key(payload),
        )
    elif event_type in AUDIO_DONE_TYPES:
        return AudioDone(type=event_type, raw=payload, stream_key=_stream_key(payload))
    elif event_type in ASSISTANT_TRANSCRIPT_DELTA_TYPES:
        return AssistantTranscriptDelta(
            type=event_type,
            raw=payload,
            delta=str(payload.get("delta") or ""),
            response_id=payload.get("response_id"),
        )
    elif event_type == RESPONSE_CREATED:
        response = payload.get("response") or {}
        return ResponseCreated(type=event_type, raw=payload, response_id=response.get("id"))
    elif event_type == RESPONSE_DONE:
        response = payload.get("response") or {}
        return ResponseDone(
            type=event_type,
            raw=payload,
            response_id=response.get("id"),
            status=response.get("status"),
        )
    elif event_type in SESSION_LIFECYCLE_TYPES:
        session = payload.get("session") or {}
        return SessionLifecycle(
            type=event_type, raw=payload, upstream_session_id=session.get("id")
        )
    elif event_type == UPSTREAM_ERROR:
        error = payload.get("error") or {}
        if not isinstance(error, dict):
            error = {"message": str(error)}
        return UpstreamErrorEvent(
            type=event_type,
            raw=payload,
            message=str(error.get("message") or ""),
            code=error.get("code"),
            client_event_id=error.get("event_id"),
        )

    return OpaqueEvent(type=event_type, raw=payload)
