"""
Handlers module for client control messages.

Key components:
- control_handlers: One coroutine per recognized control message type
  (session.init, session.update, interrupt, commit, response.create), each
  called with the validated message and the session's ConnectionSupervisor.

The FrameRouter looks handlers up in CONTROL_HANDLERS by message type.
"""
