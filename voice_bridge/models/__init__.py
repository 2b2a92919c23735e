"""
Models module for data structures and state management in the voice bridge.

Key components:
- client_messages: Pydantic models for the client control protocol and the
  events the bridge itself sends to clients.
- upstream_events: Tagged variants for the upstream events the bridge acts on,
  with an opaque catch-all for everything else.
- session: Session lifecycle state and the registry of live sessions.
- session_config: The initial upstream session configuration and response
  defaults.
- conversation: Ordered, append-only conversation history.
"""
