import pytest
from unittest.mock import MagicMock

from pydantic import ValidationError

from voice_bridge.config.settings import Settings
from voice_bridge.exceptions import SessionError
from voice_bridge.models.conversation import ConversationHistory, TurnRole
from voice_bridge.models.session import Session, SessionRegistry, SessionState, generate_session_id
from voice_bridge.models.session_config import (
    build_initial_session,
    default_response_options,
    merge_response_options,
)


class TestSession:
    def test_generated_ids(self):
        first, second = generate_session_id(), generate_session_id()
        assert first.startswith("sess_")
        assert first != second

    def test_lifecycle_only_moves_forward(self):
        session = Session(MagicMock())
        assert session.state == SessionState.CONNECTING
        assert session.is_live

        assert session.advance(SessionState.ACTIVE)
        assert session.advance(SessionState.CLOSING)
        assert not session.is_live
        assert not session.advance(SessionState.ACTIVE)
        assert not session.advance(SessionState.CLOSING)
        assert session.advance(SessionState.CLOSED)
        assert session.state == SessionState.CLOSED

    def test_merge_config(self):
        session = Session(MagicMock(), config={"voice": "alloy", "instructions": "x"})
        session.merge_config({"voice": "verse"})
        assert session.config == {"voice": "verse", "instructions": "x"}

    def test_turn_detection_is_merged_one_level_deep(self):
        session = Session(
            MagicMock(),
            config={"turn_detection": {"type": "server_vad", "silence_duration_ms": 500, "create_response": False}},
        )
        delta = session.merge_config({"turn_detection": {"silence_duration_ms": 300}})

        assert delta == {
            "turn_detection": {"type": "server_vad", "silence_duration_ms": 300, "create_response": False}
        }
        assert session.config["turn_detection"] == delta["turn_detection"]

    def test_turn_detection_can_be_switched_off(self):
        session = Session(MagicMock(), config={"turn_detection": {"type": "server_vad"}})
        assert session.merge_config({"turn_detection": None}) == {"turn_detection": None}
        assert session.config["turn_detection"] is None


class TestSessionRegistry:
    def test_add_get_remove(self):
        registry = SessionRegistry()
        session = Session(MagicMock(), session_id="sess_1")

        registry.add_session(session)
        assert registry.get_session("sess_1") is session
        assert len(registry) == 1

        registry.remove_session("sess_1")
        registry.remove_session("sess_1")
        assert len(registry) == 0

    def test_duplicate_id_rejected(self):
        registry = SessionRegistry()
        registry.add_session(Session(MagicMock(), session_id="sess_1"))
        with pytest.raises(SessionError):
            registry.add_session(Session(MagicMock(), session_id="sess_1"))


class TestConversationHistory:
    def test_turns_are_appended_in_order(self):
        history = ConversationHistory()
        history.add_user_turn("what's new?")
        history.add_assistant_turn("", ("c1",))
        history.add_tool_turn("c1", "gmail_search", '{"messages": []}')
        history.add_assistant_turn("Nothing new.")

        assert [turn.role for turn in history] == [
            TurnRole.USER,
            TurnRole.ASSISTANT,
            TurnRole.TOOL,
            TurnRole.ASSISTANT,
        ]
        assert history.turns[2].tool_call_ids == ("c1",)
        assert history.turns[2].name == "gmail_search"
        assert len(history.by_role(TurnRole.ASSISTANT)) == 2
        assert len(history) == 4

    def test_turns_are_immutable(self):
        history = ConversationHistory()
        turn = history.add_user_turn("hi")
        with pytest.raises(ValidationError):
            turn.content = "bye"


class TestSessionConfig:
    def test_initial_session(self):
        settings = Settings(openai_api_key="k", vad_silence_ms=400, voice="verse")
        session = build_initial_session(settings, [{"type": "function", "name": "gmail_search"}])

        assert session["voice"] == "verse"
        assert session["turn_detection"] == {
            "type": "server_vad",
            "silence_duration_ms": 400,
            "create_response": False,
        }
        assert session["input_audio_transcription"] == {"model": "whisper-1"}
        assert session["tools"][0]["name"] == "gmail_search"
        assert session["tool_choice"] == "auto"

    def test_initial_session_without_tools(self):
        session = build_initial_session(Settings(openai_api_key="k"))
        assert "tools" not in session

    def test_response_options_merge_per_key(self):
        config = {"voice": "verse", "modalities": ["audio", "text"], "output_audio_format": "pcm16"}
        assert default_response_options(config) == config

        merged = merge_response_options(config, {"modalities": ["text"], "temperature": 0.6})
        assert merged == {
            "voice": "verse",
            "modalities": ["text"],
            "output_audio_format": "pcm16",
            "temperature": 0.6,
        }
