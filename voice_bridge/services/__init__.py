"""
Services module for the server-side tools.

Key components:
- tool_executor: ToolExecutor registry and DefaultToolExecutor with the Gmail
  and webhook tools, plus their JSON-schema definitions.
- google_auth: Google OAuth access tokens from a refresh token, refreshed behind
  a lock.

Usage examples:
```python
import httpx
from voice_bridge.services.tool_executor import DefaultToolExecutor

async with httpx.AsyncClient(timeout=settings.tool_http_timeout) as http_client:
    executor = DefaultToolExecutor(settings, http_client)
    result = await executor.execute("gmail_search", {"query": "is:unread"})
```
"""
