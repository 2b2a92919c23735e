"""
FastAPI server for the realtime voice bridge.

This module initializes the FastAPI application that browser voice clients
connect to. Each client websocket is bridged to its own upstream realtime model
session; tool calls made by the model are executed here, on the server.

Settings are loaded once during startup. A missing OpenAI API key stops the
application from starting instead of failing every session later.
"""

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, WebSocket

from voice_bridge.config.logging_config import configure_logging
from voice_bridge.config.settings import get_settings
from voice_bridge.services.tool_executor import DefaultToolExecutor
from voice_bridge.websocket_manager import WebSocketManager

SERVICE_NAME = "Realtime Voice Bridge"
SERVICE_DESCRIPTION = "Bridge between browser voice clients and a realtime AI voice model"
SERVICE_VERSION = "1.0.0"

# Configure logging
logger = configure_logging()

# Create WebSocket manager
websocket_manager = WebSocketManager()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load settings and build the shared tool executor for the app's lifetime."""
    settings = get_settings()  # raises ConfigurationError without OPENAI_API_KEY
    configure_logging(settings.log_level)

    async with httpx.AsyncClient(timeout=settings.tool_http_timeout) as http_client:
        executor = DefaultToolExecutor(settings, http_client)
        websocket_manager.configure(settings, executor)
        app.state.settings = settings
        logger.info(f"Voice bridge ready (model={settings.realtime_model}, gmail={settings.gmail_configured})")
        yield
    logger.info("Voice bridge shut down")


# Create FastAPI application
app = FastAPI(
    title=SERVICE_NAME,
    description=SERVICE_DESCRIPTION,
    version=SERVICE_VERSION,
    lifespan=lifespan,
)


@app.websocket("/ws/voice")
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket endpoint for browser voice clients.

    Binary frames carry microphone audio; text frames carry JSON control messages
    (session.init, session.update, interrupt, commit, response.create). The
    client receives a ready event once the upstream session is open, then every
    upstream event in arrival order.
    """
    await websocket_manager.handle_websocket(websocket)


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring system status.

    Returns:
        dict: Status, number of live sessions and the configured model.
    """
    settings = websocket_manager.settings
    return {
        "status": "healthy",
        "active_sessions": websocket_manager.active_sessions,
        "model": settings.realtime_model if settings else None,
        "gmail_configured": settings.gmail_configured if settings else False,
    }


@app.get("/")
async def root():
    """Root endpoint to display basic information about the API."""
    return {
        "name": SERVICE_NAME,
        "description": SERVICE_DESCRIPTION,
        "version": SERVICE_VERSION,
        "endpoints": {
            "/ws/voice": "WebSocket endpoint for browser voice clients",
            "/health": "Health check endpoint",
        },
    }
