"""
Configuration module for the voice bridge.

This module provides centralized configuration management for the entire bridge,
including constants, logging setup, and environment-based settings.

Key components:
- constants: Event type names for the client protocol and the upstream vocabulary,
  audio formats, and default model settings.
- logging_config: Console logging for the bridge logger, with an optional
  rotating log file when LOG_FILE is set.
- settings: The process-wide Settings object, loaded once at startup and injected
  into every session.

Usage examples:
```python
from voice_bridge.config.settings import get_settings
from voice_bridge.config.logging_config import configure_logging

settings = get_settings()  # raises ConfigurationError without OPENAI_API_KEY
logger = configure_logging(settings.log_level)
logger.info(f"Bridge configured for model {settings.realtime_model}")
```
"""
