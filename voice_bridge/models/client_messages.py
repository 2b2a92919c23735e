"""
Pydantic models for the client <-> bridge control protocol.

Text frames from the browser client are JSON control messages. This module defines
the recognized shapes, validates raw frames against them, and defines the events
the bridge itself emits back to the client.
"""

import json
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from voice_bridge.config.constants import (
    EVENT_ERROR,
    EVENT_READY,
    EVENT_TRANSCRIPT_PARTIAL,
    MESSAGE_TYPE_COMMIT,
    MESSAGE_TYPE_INTERRUPT,
    MESSAGE_TYPE_RESPONSE_CREATE,
    MESSAGE_TYPE_SESSION_INIT,
    MESSAGE_TYPE_SESSION_UPDATE,
)
from voice_bridge.exceptions import ClientProtocolError


# Inbound control messages
class SessionInitMessage(BaseModel):
    """Model for session.init message from the client."""

    type: Literal["session.init"]
    sessionId: Optional[str] = Field(None, description="Client-side session label")
    instructions: Optional[str] = Field(None, description="System instructions override")


class InterruptMessage(BaseModel):
    """Model for interrupt (barge-in) message from the client."""

    type: Literal["interrupt"]


class CommitMessage(BaseModel):
    """Model for commit message from the client."""

    type: Literal["commit"]


class ResponseCreateMessage(BaseModel):
    """Model for response.create message from the client."""

    type: Literal["response.create"]
    response: Optional[Dict[str, Any]] = Field(
        None, description="Free-form options merged over the response defaults"
    )


class SessionUpdateMessage(BaseModel):
    """Model for session.update message from the client."""

    type: Literal["session.update"]
    session: Dict[str, Any] = Field(..., description="Session configuration to merge")


ClientControlMessage = Annotated[
    Union[
        SessionInitMessage,
        InterruptMessage,
        CommitMessage,
        ResponseCreateMessage,
        SessionUpdateMessage,
    ],
    Field(discriminator="type"),
]

CONTROL_MESSAGE_TYPES = (
    MESSAGE_TYPE_SESSION_INIT,
    MESSAGE_TYPE_INTERRUPT,
    MESSAGE_TYPE_COMMIT,
    MESSAGE_TYPE_RESPONSE_CREATE,
    MESSAGE_TYPE_SESSION_UPDATE,
)

_control_message_adapter = TypeAdapter(ClientControlMessage)


def parse_client_message(text: str) -> BaseModel:
    """
    Parse and validate a text frame from the client.

    Args:
        text: The raw text frame

    Returns:
        One of the control message models

    Raises:
        ClientProtocolError: If the frame is not JSON or not a recognized message shape
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ClientProtocolError("Invalid JSON", details=str(e)) from e

    if not isinstance(data, dict) or not isinstance(data.get("type"), str):
        raise ClientProtocolError("Control message must be a JSON object with a string 'type'")

    message_type = data["type"]
    if message_type not in CONTROL_MESSAGE_TYPES:
        raise ClientProtocolError(f"Unrecognized message type: {message_type}")

    try:
        return _control_message_adapter.validate_python(data)
    except ValidationError as e:
        raise ClientProtocolError(
            f"Invalid {message_type} message",
            details=e.errors(include_url=False, include_context=False),
        ) from e


# Outbound bridge events
class ReadyEvent(BaseModel):
    """Sent once the upstream link is open and queued frames have been flushed."""

    type: Literal["ready"] = EVENT_READY
    sessionId: str


class ErrorEvent(BaseModel):
    """Structured error reported to the client."""

    type: Literal["error"] = EVENT_ERROR
    message: str
    details: Optional[Any] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class TranscriptPartialEvent(BaseModel):
    """Latest hypothesis of the user's in-progress utterance."""

    type: Literal["transcript.partial"] = EVENT_TRANSCRIPT_PARTIAL
    transcript: str
