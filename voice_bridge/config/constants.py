"""
Constants and configuration values used throughout the application.

This module defines constants that are used across different parts of the bridge,
providing a centralized location for event type names and default values so the
client protocol and the upstream vocabulary are spelled the same way everywhere.
"""

# Logger name used throughout the application
LOGGER_NAME = "voice_bridge"

# Upstream defaults
DEFAULT_REALTIME_MODEL = "gpt-4o-realtime-preview-2024-12-17"
DEFAULT_REALTIME_URL = "wss://api.openai.com/v1/realtime"
DEFAULT_VOICE = "alloy"
DEFAULT_TRANSCRIPTION_MODEL = "whisper-1"
DEFAULT_INSTRUCTIONS = (
    "You are a concise, helpful voice assistant for natural phone-like conversations. "
    "Prefer short answers unless asked for detail. If tools can help, call them."
)

# Audio format constants
AUDIO_FORMAT_PCM16 = "pcm16"
DEFAULT_MODALITIES = ["audio", "text"]

# Turn detection
DEFAULT_FINALIZE_QUIET_PERIOD_MS = 700
DEFAULT_VAD_SILENCE_MS = 500

# Session id prefix sent to the client in the ready event
SESSION_ID_PREFIX = "sess_"

# Client -> bridge control message types
MESSAGE_TYPE_SESSION_INIT = "session.init"
MESSAGE_TYPE_INTERRUPT = "interrupt"
MESSAGE_TYPE_COMMIT = "commit"
MESSAGE_TYPE_RESPONSE_CREATE = "response.create"
MESSAGE_TYPE_SESSION_UPDATE = "session.update"

# Bridge -> client event types
EVENT_READY = "ready"
EVENT_ERROR = "error"
EVENT_TRANSCRIPT_PARTIAL = "transcript.partial"

# Bridge -> upstream event types
UPSTREAM_SESSION_UPDATE = "session.update"
UPSTREAM_AUDIO_APPEND = "input_audio_buffer.append"
UPSTREAM_AUDIO_COMMIT = "input_audio_buffer.commit"
UPSTREAM_AUDIO_CLEAR = "input_audio_buffer.clear"
UPSTREAM_RESPONSE_CREATE = "response.create"
UPSTREAM_RESPONSE_CANCEL = "response.cancel"
UPSTREAM_ITEM_CREATE = "conversation.item.create"

# Upstream -> bridge event types the bridge acts on
INPUT_TRANSCRIPTION_DELTA = "conversation.item.input_audio_transcription.delta"
INPUT_TRANSCRIPTION_COMPLETED = "conversation.item.input_audio_transcription.completed"
TRANSCRIPTION_RESULTS = "Results"
TRANSCRIPTION_UTTERANCE_END = "UtteranceEnd"
OUTPUT_ITEM_ADDED = "response.output_item.added"
FUNCTION_CALL_ARGUMENTS_DELTA = "response.function_call_arguments.delta"
FUNCTION_CALL_ARGUMENTS_DONE = "response.function_call_arguments.done"
AUDIO_DELTA_TYPES = ("response.audio.delta", "response.output_audio.delta")
AUDIO_DONE_TYPES = ("response.audio.done", "response.output_audio.done")
ASSISTANT_TRANSCRIPT_DELTA_TYPES = (
    "response.audio_transcript.delta",
    "response.output_audio_transcript.delta",
    "response.text.delta",
    "response.output_text.delta",
)
RESPONSE_CREATED = "response.created"
RESPONSE_DONE = "response.done"
SESSION_LIFECYCLE_TYPES = ("session.created", "session.updated")
UPSTREAM_ERROR = "error"

# Event type used when wrapping raw binary audio received from upstream
AUDIO_DELTA_EVENT = "response.audio.delta"
