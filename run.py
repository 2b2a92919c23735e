"""
Run script for starting the voice bridge server with low-latency settings.

Usage:
    python run.py [--port PORT] [--host HOST] [--log-level LEVEL]
"""

import argparse
import os
import sys

import uvicorn

from voice_bridge.config.logging_config import configure_logging
from voice_bridge.config.settings import get_settings
from voice_bridge.exceptions import ConfigurationError

# Configure logging
logger = configure_logging()


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Start the realtime voice bridge server")
    parser.add_argument(
        "--port",
        type=int,
        help="Port to run the server on (default: PORT env var or 8000)",
    )
    parser.add_argument(
        "--host",
        help="Host to bind the server to (default: HOST env var or 0.0.0.0)",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: LOG_LEVEL env var or INFO)",
    )
    return parser.parse_args()


def main():
    """Main entry point for starting the server."""
    args = parse_args()

    try:
        settings = get_settings()
    except ConfigurationError as e:
        logger.error(str(e))
        print(f"Error: {e}")
        sys.exit(1)

    # Command line flags win over the environment
    host = args.host or settings.host
    port = args.port or settings.port
    log_level = (args.log_level or settings.log_level).upper()

    logger.info(f"Starting server on http://{host}:{port}")
    logger.info(f"Log level: {log_level}")
    logger.info(f"Realtime model: {settings.realtime_model}")

    uvicorn.run(
        "voice_bridge.main:app",
        host=host,
        port=port,
        log_level=log_level.lower(),
        # Use HTTP/1.1 for lower overhead than HTTP/2
        http="h11",
        ws_ping_interval=5,
        ws_ping_timeout=20,
        ws_max_size=16 * 1024 * 1024,  # 16MB - large enough for audio chunks
        # Disable access logs, we have our own logging
        access_log=False,
        reload=os.getenv("ENV", "production").lower() == "development",
    )


if __name__ == "__main__":
    main()
