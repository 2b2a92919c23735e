from unittest.mock import patch

import pytest

import run
from voice_bridge.config.settings import Settings
from voice_bridge.exceptions import ConfigurationError


@pytest.fixture
def settings():
    return Settings(openai_api_key="test-key", host="127.0.0.1", port=9100)


def test_server_binds_to_configured_host_and_port(settings):
    with patch("sys.argv", ["run.py"]), \
         patch("run.get_settings", return_value=settings), \
         patch("run.uvicorn.run") as mock_run:
        run.main()

    kwargs = mock_run.call_args.kwargs
    assert kwargs["host"] == "127.0.0.1"
    assert kwargs["port"] == 9100


def test_command_line_flags_override_settings(settings):
    with patch("sys.argv", ["run.py", "--host", "0.0.0.0", "--port", "8123", "--log-level", "debug"]), \
         patch("run.get_settings", return_value=settings), \
         patch("run.uvicorn.run") as mock_run:
        run.main()

    kwargs = mock_run.call_args.kwargs
    assert (kwargs["host"], kwargs["port"]) == ("0.0.0.0", 8123)
    assert kwargs["log_level"] == "debug"


def test_missing_configuration_exits():
    with patch("sys.argv", ["run.py"]), \
         patch("run.get_settings", side_effect=ConfigurationError("OPENAI_API_KEY is not set")), \
         patch("run.uvicorn.run") as mock_run:
        with pytest.raises(SystemExit):
            run.main()

    mock_run.assert_not_called()
