"""
Handlers for client control messages.

Each handler maps one recognized control message onto upstream operations for the
session that received it. Handlers are called by the FrameRouter with the
validated message and the session's ConnectionSupervisor.
"""

import logging

from voice_bridge.bridge.generation import GenerationRequest
from voice_bridge.config.constants import (
    LOGGER_NAME,
    UPSTREAM_AUDIO_CLEAR,
    UPSTREAM_AUDIO_COMMIT,
    UPSTREAM_RESPONSE_CANCEL,
    UPSTREAM_SESSION_UPDATE,
)
from voice_bridge.models.client_messages import (
    CommitMessage,
    InterruptMessage,
    ResponseCreateMessage,
    SessionInitMessage,
    SessionUpdateMessage,
)
from voice_bridge.models.session_config import merge_response_options

logger = logging.getLogger(LOGGER_NAME)


async def handle_session_init(message: SessionInitMessage, supervisor) -> None:
    """
    Handle the session.init message.

    Records the client's own session label and, when instructions are given,
    merges them into the live configuration. The change applies from the next
    generation on.
    """
    session = supervisor.session
    if message.sessionId:
        session.client_label = message.sessionId
        logger.info(f"Session {session.id} labelled by client as {message.sessionId}")
    if message.instructions is not None:
        update = session.merge_config({"instructions": message.instructions})
        await supervisor.send_upstream({"type": UPSTREAM_SESSION_UPDATE, "session": update})


async def handle_session_update(message: SessionUpdateMessage, supervisor) -> None:
    """
    Merge a session.update into the live configuration and forward the delta.

    The bridge keeps control of when responses start, so turn_detection changes
    are forwarded with automatic responses still disabled.
    """
    update = supervisor.session.merge_config(message.session)
    await supervisor.send_upstream({"type": UPSTREAM_SESSION_UPDATE, "session": update})


async def handle_interrupt(message: InterruptMessage, supervisor) -> None:
    """
    Handle barge-in.

    Cancels the in-flight generation, drops queued generation requests and clears
    input audio that has not been committed yet. Dispatched tool calls keep
    running.
    """
    if supervisor.generation.cancel():
        await supervisor.send_upstream({"type": UPSTREAM_RESPONSE_CANCEL})
    await supervisor.send_upstream({"type": UPSTREAM_AUDIO_CLEAR})
    logger.info(f"Interrupt processed for session {supervisor.session.id}")


async def handle_commit(message: CommitMessage, supervisor) -> None:
    """Force the upstream to commit the current input audio buffer."""
    await supervisor.send_upstream({"type": UPSTREAM_AUDIO_COMMIT})


async def handle_response_create(message: ResponseCreateMessage, supervisor) -> None:
    """Request a generation with the caller's options merged over the defaults."""
    options = merge_response_options(supervisor.session.config, message.response)
    await supervisor.request_generation(
        GenerationRequest(reason="client", response=options), user_initiated=True
    )


CONTROL_HANDLERS = {
    "session.init": handle_session_init,
    "session.update": handle_session_update,
    "interrupt": handle_interrupt,
    "commit": handle_commit,
    "response.create": handle_response_create,
}
