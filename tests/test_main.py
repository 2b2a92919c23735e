import pytest
from fastapi.testclient import TestClient
from unittest.mock import patch, MagicMock, AsyncMock

from voice_bridge.config.settings import Settings
from voice_bridge.exceptions import ConfigurationError
from voice_bridge.main import app, websocket_manager
from voice_bridge.services.tool_executor import DefaultToolExecutor


@pytest.fixture
def client():
    settings = Settings(openai_api_key="test-key", realtime_model="test-model")
    with patch("voice_bridge.main.get_settings", return_value=settings):
        with TestClient(app) as test_client:
            yield test_client


def test_health_check(client):
    """Test the health check endpoint returns correct response"""
    response = client.get("/health")
    assert response.status_code == 200

    response_json = response.json()
    assert response_json["status"] == "healthy"
    assert response_json["active_sessions"] == 0
    assert response_json["model"] == "test-model"
    assert response_json["gmail_configured"] is False


def test_root_endpoint(client):
    """Test the root endpoint returns the correct API information"""
    response = client.get("/")
    assert response.status_code == 200

    response_json = response.json()
    assert response_json["name"] == "Realtime Voice Bridge"
    assert "description" in response_json
    assert response_json["version"] == "1.0.0"
    assert "/ws/voice" in response_json["endpoints"]
    assert "/health" in response_json["endpoints"]


def test_startup_configures_manager(client):
    """Startup installs settings and the built-in tools on the manager"""
    assert websocket_manager.settings.realtime_model == "test-model"
    assert isinstance(websocket_manager.executor, DefaultToolExecutor)
    assert websocket_manager.executor.has_tool("post_webhook")


def test_startup_fails_without_api_key():
    with patch("voice_bridge.main.get_settings", side_effect=ConfigurationError("OPENAI_API_KEY environment variable not set")):
        with pytest.raises(ConfigurationError):
            with TestClient(app):
                pass


@pytest.mark.asyncio
async def test_websocket_endpoint():
    """Test that websocket endpoint calls the handle_websocket method"""
    with patch.object(websocket_manager, "handle_websocket", new=AsyncMock()) as mock_handle:
        mock_websocket = MagicMock()

        # Find the websocket endpoint by path
        websocket_route = next(route for route in app.routes if route.path == "/ws/voice")
        await websocket_route.endpoint(mock_websocket)

        mock_handle.assert_called_once_with(mock_websocket)
