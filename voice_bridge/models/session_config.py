"""
Upstream session configuration and response defaults.

The initial configuration is sent once the upstream link opens. Turn detection is
left to the upstream's voice activity detection, but automatic responses are
disabled: the bridge decides when a generation starts, once per finalized turn.
"""

from typing import Any, Dict, List, Optional

from voice_bridge.config.constants import DEFAULT_MODALITIES
from voice_bridge.config.settings import Settings

RESPONSE_DEFAULT_KEYS = ("modalities", "voice", "output_audio_format")


def build_initial_session(
    settings: Settings, tools: Optional[List[Dict[str, Any]]] = None
) -> Dict[str, Any]:
    """
    Build the session configuration sent when the upstream opens.

    Args:
        settings: Process-wide settings
        tools: Tool definitions the model may call

    Returns:
        The ``session`` object of the initial session.update event
    """
    session: Dict[str, Any] = {
        "instructions": settings.instructions,
        "voice": settings.voice,
        "modalities": list(DEFAULT_MODALITIES),
        "input_audio_format": settings.input_audio_format,
        "output_audio_format": settings.output_audio_format,
        "input_audio_transcription": {"model": settings.transcription_model},
        "turn_detection": {
            "type": "server_vad",
            "silence_duration_ms": settings.vad_silence_ms,
            "create_response": False,
        },
    }
    if tools:
        session["tools"] = list(tools)
        session["tool_choice"] = "auto"
    return session


def default_response_options(config: Dict[str, Any]) -> Dict[str, Any]:
    """Response defaults taken from the live session configuration."""
    defaults: Dict[str, Any] = {"modalities": list(DEFAULT_MODALITIES)}
    for key in RESPONSE_DEFAULT_KEYS:
        if config.get(key) is not None:
            defaults[key] = config[key]
    return defaults


def merge_response_options(
    config: Dict[str, Any], overrides: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Merge caller-supplied response options over the defaults, key by key.

    Unspecified keys keep their defaults; specified keys win.
    """
    options = default_response_options(config)
    if overrides:
        options.update(overrides)
    return options


def apply_session_update(config: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge a client session update into ``config``.

    Top-level keys replace their old values, except ``turn_detection``, which is
    merged one level deep and always keeps ``create_response`` off so the upstream
    never starts a response of its own.

    Returns:
        The update to forward upstream, with the bridge-owned keys applied
    """
    delta = dict(update)
    turn_detection = delta.get("turn_detection")
    if isinstance(turn_detection, dict):
        merged = dict(config.get("turn_detection") or {})
        merged.update(turn_detection)
        merged["create_response"] = False
        delta["turn_detection"] = merged
    config.update(delta)
    return delta
