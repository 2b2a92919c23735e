"""
Unit tests for upstream event classification.
"""

import pytest

from voice_bridge.models.upstream_events import (
    AssistantTranscriptDelta,
    AudioDelta,
    AudioDone,
    FunctionCallAnnounced,
    FunctionCallArgumentsDelta,
    FunctionCallArgumentsDone,
    OpaqueEvent,
    ResponseCreated,
    ResponseDone,
    SessionLifecycle,
    TranscriptFragment,
    UpstreamErrorEvent,
    parse_upstream_event,
)


def test_realtime_transcription_events():
    delta = parse_upstream_event(
        {"type": "conversation.item.input_audio_transcription.delta", "delta": "hel"}
    )
    assert isinstance(delta, TranscriptFragment)
    assert delta.append and not delta.is_final
    assert delta.text == "hel"

    done = parse_upstream_event(
        {"type": "conversation.item.input_audio_transcription.completed", "transcript": "hello"}
    )
    assert done.is_final and not done.append
    assert done.text == "hello"
    assert done.utterance_id is None

    named = parse_upstream_event(
        {"type": "conversation.item.input_audio_transcription.delta", "item_id": "item_1", "delta": "x"}
    )
    assert named.utterance_id == "item_1"


def test_results_transcription_events():
    partial = parse_upstream_event(
        {"type": "Results", "is_final": False, "channel": {"alternatives": [{"transcript": "hel"}]}}
    )
    assert partial.text == "hel" and not partial.is_final

    final = parse_upstream_event(
        {"type": "Results", "speech_final": True, "channel": {"alternatives": [{"transcript": "hello"}]}}
    )
    assert final.is_final

    end = parse_upstream_event({"type": "UtteranceEnd"})
    assert isinstance(end, TranscriptFragment)
    assert end.is_final and end.text == ""


def test_function_call_events():
    announced = parse_upstream_event(
        {
            "type": "response.output_item.added",
            "response_id": "r1",
            "item": {"type": "function_call", "call_id": "c1", "name": "gmail_search"},
        }
    )
    assert isinstance(announced, FunctionCallAnnounced)
    assert (announced.call_id, announced.name, announced.response_id) == ("c1", "gmail_search", "r1")

    delta = parse_upstream_event({"type": "response.function_call_arguments.delta", "call_id": "c1", "delta": "{"})
    assert isinstance(delta, FunctionCallArgumentsDelta)

    done = parse_upstream_event(
        {"type": "response.function_call_arguments.done", "call_id": "c1", "arguments": "{}"}
    )
    assert isinstance(done, FunctionCallArgumentsDone)
    assert done.arguments == "{}"


def test_message_output_item_is_opaque():
    event = parse_upstream_event(
        {"type": "response.output_item.added", "item": {"type": "message", "id": "m1"}}
    )
    assert isinstance(event, OpaqueEvent)


@pytest.mark.parametrize(
    "payload,model",
    [
        ({"type": "response.audio.delta", "item_id": "i1", "delta": "AAAA"}, AudioDelta),
        ({"type": "response.output_audio.delta", "delta": "AAAA"}, AudioDelta),
        ({"type": "response.audio.done", "item_id": "i1"}, AudioDone),
        ({"type": "response.audio_transcript.delta", "delta": "Hi"}, AssistantTranscriptDelta),
        ({"type": "response.text.delta", "delta": "Hi"}, AssistantTranscriptDelta),
        ({"type": "response.created", "response": {"id": "r1"}}, ResponseCreated),
        ({"type": "response.done", "response": {"id": "r1", "status": "completed"}}, ResponseDone),
        ({"type": "session.created", "session": {"id": "s1"}}, SessionLifecycle),
        ({"type": "error", "error": {"message": "bad", "code": "invalid"}}, UpstreamErrorEvent),
        ({"type": "rate_limits.updated"}, OpaqueEvent),
    ],
)
def test_event_variants(payload, model):
    event = parse_upstream_event(payload)
    assert isinstance(event, model)
    assert event.raw == payload


def test_audio_stream_key():
    assert parse_upstream_event({"type": "response.audio.delta", "item_id": "i1", "delta": ""}).stream_key == "i1"
    assert parse_upstream_event({"type": "response.audio.delta", "response_id": "r1", "delta": ""}).stream_key == "r1"
    assert parse_upstream_event({"type": "response.audio.delta", "delta": ""}).stream_key == "default"


def test_binary_frame_is_audio():
    event = parse_upstream_event(b"\x00\x01")
    assert isinstance(event, AudioDelta)
    assert event.delta == "AAE="


def test_error_names_rejected_client_event():
    event = parse_upstream_event(
        {
            "type": "error",
            "event_id": "evt_upstream",
            "error": {"type": "invalid_request_error", "message": "Invalid voice", "event_id": "sess_1_gen_1"},
        }
    )
    assert isinstance(event, UpstreamErrorEvent)
    assert event.client_event_id == "sess_1_gen_1"
    assert event.message == "Invalid voice"
