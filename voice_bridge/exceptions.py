"""Exceptions raised by the voice bridge."""

from typing import Any, Optional


class VoiceBridgeError(Exception):
    """Base exception for all voice bridge operations."""


class ConfigurationError(VoiceBridgeError):
    """Raised at startup when required configuration or credentials are missing."""


class ClientProtocolError(VoiceBridgeError):
    """Raised when a client control frame is not valid JSON or not a recognized message."""

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)

    def to_event(self) -> dict:
        """Build the error event reported back to the client."""
        event = {"type": "error", "message": self.message}
        if self.details is not None:
            event["details"] = self.details
        return event


class UpstreamConnectionError(VoiceBridgeError):
    """Raised when the upstream link cannot be opened or fails mid-session."""


class ToolArgumentParseError(VoiceBridgeError):
    """Raised when streamed function-call arguments are not a JSON object."""

    def __init__(self, call_id: str, message: str) -> None:
        self.call_id = call_id
        super().__init__(f"[call:{call_id}] {message}")


class ToolExecutionError(VoiceBridgeError):
    """Raised by a tool executor when a tool call fails."""

    def __init__(self, tool_name: str, message: str) -> None:
        self.tool_name = tool_name
        self.message = message
        super().__init__(f"[tool:{tool_name}] {message}")


class SessionError(VoiceBridgeError):
    """Raised when a session cannot be registered or used."""

    def __init__(self, session_id: str, message: str) -> None:
        self.session_id = session_id
        super().__init__(f"[session:{session_id}] {message}")
