"""
Per-connection session bridge.

A ConnectionSupervisor owns one client websocket and the upstream link opened for
it. Two background tasks read the client and the upstream and post what they see
onto the session's event queue; a single consumer applies each event in order
through the transition methods below. Nothing else mutates the session, so frame
order, finalize and teardown stay deterministic.
"""

import asyncio
import json
import logging
from collections import deque
from typing import Any, Callable, Coroutine, Deque, Dict, List, Optional

from voice_bridge.bridge.audio_relay import AudioRelay
from voice_bridge.bridge.events import (
    ClientClosed,
    ClientFrame,
    FinalizeTimerFired,
    SessionEvent,
    ToolCallCompleted,
    UpstreamClosed,
    UpstreamMessage,
    UpstreamOpened,
    Wakeup,
)
from voice_bridge.bridge.frame_router import FrameRouter
from voice_bridge.bridge.generation import GenerationGate, GenerationRequest
from voice_bridge.bridge.multiplexer import OutboundMultiplexer
from voice_bridge.bridge.tool_calls import PendingToolCall, ToolCallAggregator
from voice_bridge.bridge.turn_accumulator import Scheduler, TurnAccumulator
from voice_bridge.config.constants import (
    LOGGER_NAME,
    UPSTREAM_ITEM_CREATE,
    UPSTREAM_RESPONSE_CREATE,
    UPSTREAM_SESSION_UPDATE,
)
from voice_bridge.config.settings import Settings
from voice_bridge.exceptions import ClientProtocolError, UpstreamConnectionError
from voice_bridge.handlers.control_handlers import CONTROL_HANDLERS
from voice_bridge.models.client_messages import ErrorEvent, ReadyEvent, TranscriptPartialEvent
from voice_bridge.models.session import Session, SessionState
from voice_bridge.models.session_config import build_initial_session, default_response_options
from voice_bridge.models.upstream_events import (
    AssistantTranscriptDelta,
    FunctionCallAnnounced,
    FunctionCallArgumentsDelta,
    FunctionCallArgumentsDone,
    ResponseCreated,
    ResponseDone,
    SessionLifecycle,
    TranscriptFragment,
    UpstreamErrorEvent,
)

logger = logging.getLogger(LOGGER_NAME)


class ConnectionSupervisor:
    """
    Runs one bridge session from client connect to teardown.

    Args:
        websocket: Accepted client websocket (``receive``, ``send_text``, ``close``)
        upstream: Unopened upstream link (``connect``, ``send``, ``receive``, ``close``)
        executor: Tool executor whose tools are offered to the model
        settings: Process-wide settings
        session_id: Session id to use instead of a generated one
        scheduler: Timer factory for the finalize timer
        spawn: Task factory for tool executions
    """

    def __init__(
        self,
        websocket: Any,
        upstream: Any,
        executor: Any,
        settings: Settings,
        session_id: Optional[str] = None,
        scheduler: Optional[Scheduler] = None,
        spawn: Optional[Callable[[Coroutine], "asyncio.Task"]] = None,
    ):
        self.settings = settings
        self.session = Session(
            websocket,
            upstream,
            config=build_initial_session(settings, getattr(executor, "definitions", None)),
            session_id=session_id,
        )

        self._events: "asyncio.Queue[SessionEvent]" = asyncio.Queue()
        self._pending_frames: Deque = deque()
        self._tasks: List[asyncio.Task] = []
        self._assistant_text: List[str] = []
        self._response_call_ids: List[str] = []
        self._issued_count = 0
        self._issued_event_id: Optional[str] = None

        self.audio = AudioRelay()
        self.generation = GenerationGate(single_flight=settings.single_flight_generation)
        self.turns = TurnAccumulator(
            settings.finalize_quiet_period, self._post_timer, scheduler=scheduler
        )
        self.tools = ToolCallAggregator(executor, self._post_tool_result, spawn=spawn)
        self.router = FrameRouter(
            CONTROL_HANDLERS, self.forward_audio, self.report_error, context=self
        )
        self.multiplexer = OutboundMultiplexer(
            self.send_client,
            self.audio,
            {
                TranscriptFragment: self._on_transcript,
                FunctionCallAnnounced: self._on_function_call,
                FunctionCallArgumentsDelta: self._on_arguments_delta,
                FunctionCallArgumentsDone: self._on_arguments_done,
                AssistantTranscriptDelta: self._on_assistant_delta,
                ResponseCreated: self._on_response_created,
                ResponseDone: self._on_response_done,
                SessionLifecycle: self._on_session_lifecycle,
                UpstreamErrorEvent: self._on_upstream_error,
            },
        )

    @property
    def id(self) -> str:
        return self.session.id

    @property
    def pending_frames(self) -> int:
        """Client frames waiting for the upstream link to open."""
        return len(self._pending_frames)

    # Event loop

    def post(self, event: SessionEvent) -> None:
        """Put an event on the session's queue."""
        self._events.put_nowait(event)

    async def run(self) -> None:
        """
        Run the session until it is closed.

        Starts the client reader and the upstream connector, then applies queued
        events one at a time. Always ends with the session torn down.
        """
        logger.info(f"Starting session {self.id}")
        self._tasks = [
            asyncio.create_task(self._read_client()),
            asyncio.create_task(self._open_upstream()),
        ]
        try:
            while self.session.state != SessionState.CLOSED:
                event = await self._events.get()
                await self.dispatch(event)
        except Exception as e:
            logger.error(f"Error in session {self.id}: {e}", exc_info=True)
            await self.close(f"internal error: {e}", notify="Internal bridge error")
        finally:
            await self.close("session ended")
            logger.info(f"Session {self.id} finished")

    async def dispatch(self, event: SessionEvent) -> None:
        """Apply one event to the session."""
        if isinstance(event, Wakeup):
            return
        if not self.session.is_live:
            logger.debug(f"Session {self.id} is {self.session.state.value}; dropping {type(event).__name__}")
            return

        if isinstance(event, ClientFrame):
            await self._on_client_frame(event.data)
        elif isinstance(event, UpstreamMessage):
            await self.multiplexer.relay(event.payload)
        elif isinstance(event, UpstreamOpened):
            await self._on_upstream_opened()
        elif isinstance(event, FinalizeTimerFired):
            text = self.turns.on_timer(event.token)
            if text:
                await self._commit_user_turn(text)
        elif isinstance(event, ToolCallCompleted):
            for call in self.tools.complete(event.call_id, event.result):
                await self._report_tool_call(call)
        elif isinstance(event, ClientClosed):
            await self.close(event.reason)
        elif isinstance(event, UpstreamClosed):
            notify = "Upstream connection error" if event.error else "Upstream connection closed"
            await self.close(event.reason, notify=notify)
        else:
            logger.warning(f"Unknown session event: {event!r}")

    # Background readers

    async def _read_client(self) -> None:
        websocket = self.session.websocket
        try:
            while True:
                message = await websocket.receive()
                if message.get("type") == "websocket.disconnect":
                    self.post(ClientClosed(f"client disconnected (code={message.get('code')})"))
                    return
                data = message.get("bytes")
                if data is None:
                    data = message.get("text")
                if data is not None:
                    self.post(ClientFrame(data))
        except Exception as e:
            logger.warning(f"Client receive failed for session {self.id}: {e}")
            self.post(ClientClosed(f"client receive failed: {e}"))

    async def _open_upstream(self) -> None:
        upstream = self.session.upstream
        try:
            await upstream.connect()
        except UpstreamConnectionError as e:
            logger.error(f"Session {self.id}: {e}")
            self.post(UpstreamClosed(str(e), error=True))
            return

        self.post(UpstreamOpened())
        try:
            async for payload in upstream.receive():
                self.post(UpstreamMessage(payload))
        except UpstreamConnectionError as e:
            logger.error(f"Session {self.id}: {e}")
            self.post(UpstreamClosed(str(e), error=True))
            return
        self.post(UpstreamClosed("upstream closed the connection"))

    # Client side

    async def _on_client_frame(self, data: Any) -> None:
        if self.session.state == SessionState.CONNECTING:
            self._pending_frames.append(data)
            logger.debug(f"Queued client frame until upstream opens ({len(self._pending_frames)} pending)")
            return
        await self.router.route(data)

    async def send_client(self, event: Dict[str, Any]) -> None:
        """Send one JSON event to the client; a failed send ends the session."""
        if self.session.state == SessionState.CLOSED:
            return
        try:
            await self.session.websocket.send_text(json.dumps(event))
        except Exception as e:
            logger.warning(f"Failed to send {event.get('type')} to client in session {self.id}: {e}")
            self.post(ClientClosed(f"client send failed: {e}"))

    async def report_error(self, error: ClientProtocolError) -> None:
        await self.send_client(error.to_event())

    async def forward_audio(self, frame: bytes) -> None:
        """Relay one microphone frame upstream."""
        event = self.audio.encode_inbound(frame)
        if event is not None:
            await self.send_upstream(event)

    # Upstream side

    async def send_upstream(self, event: Dict[str, Any]) -> None:
        """
        Send one event upstream.

        A failed send is a lost upstream link and tears the session down.
        """
        if not self.session.is_live:
            return
        try:
            await self.session.upstream.send(event)
        except UpstreamConnectionError as e:
            logger.error(f"Upstream send failed for session {self.id}: {e}")
            await self.close(str(e), notify="Upstream connection error")

    async def _on_upstream_opened(self) -> None:
        await self.send_upstream({"type": UPSTREAM_SESSION_UPDATE, "session": self.session.config})
        flushed = len(self._pending_frames)
        while self._pending_frames and self.session.is_live:
            await self.router.route(self._pending_frames.popleft())
        if not self.session.advance(SessionState.ACTIVE):
            return
        if flushed:
            logger.info(f"Flushed {flushed} queued client frame(s) for session {self.id}")
        await self.send_client(ReadyEvent(sessionId=self.id).model_dump())
        logger.info(f"Session {self.id} ready")

    # Turns and generation

    async def _on_transcript(self, event: TranscriptFragment) -> None:
        result = self.turns.on_fragment(
            event.text, is_final=event.is_final, append=event.append, utterance_id=event.utterance_id
        )
        if result.partial:
            await self.send_client(TranscriptPartialEvent(transcript=result.partial).model_dump())
        if result.finalized:
            await self._commit_user_turn(result.finalized)

    async def _commit_user_turn(self, text: str) -> None:
        self.session.history.add_user_turn(text)
        logger.info(f"User turn finalized in session {self.id}: {text}")
        request = GenerationRequest(reason="user_turn", response=default_response_options(self.session.config))
        await self.request_generation(request, user_initiated=True)

    async def request_generation(self, request: GenerationRequest, user_initiated: bool = False) -> None:
        """Ask the upstream for a response, subject to the generation gate."""
        ready = self.generation.request(request, user_initiated=user_initiated)
        if ready is not None:
            await self._issue(ready)

    async def _issue(self, request: GenerationRequest) -> None:
        self._issued_count += 1
        # Upstream errors name the event they reject by this id
        self._issued_event_id = f"{self.id}_gen_{self._issued_count}"
        logger.debug(f"Issuing response.create ({request.reason}) for session {self.id}")
        await self.send_upstream(
            {
                "type": UPSTREAM_RESPONSE_CREATE,
                "event_id": self._issued_event_id,
                "response": request.response,
            }
        )

    async def _on_assistant_delta(self, event: AssistantTranscriptDelta) -> None:
        self._assistant_text.append(event.delta)

    async def _on_response_created(self, event: ResponseCreated) -> None:
        self.generation.mark_started()

    async def _on_response_done(self, event: ResponseDone) -> None:
        text = "".join(self._assistant_text).strip()
        call_ids = tuple(self._response_call_ids)
        self._assistant_text = []
        self._response_call_ids = []
        if text or call_ids:
            self.session.history.add_assistant_turn(text, call_ids)
        logger.info(f"Response finished in session {self.id} (status={event.status})")

        for call in self.tools.close_response():
            await self._report_tool_call(call)

        following = self.generation.release()
        if following is not None:
            await self._issue(following)

    # Tool calls

    def _track_call(self, call_id: str) -> None:
        if call_id not in self._response_call_ids:
            self._response_call_ids.append(call_id)

    async def _on_function_call(self, event: FunctionCallAnnounced) -> None:
        self.tools.announce(event.call_id, event.name)
        self._track_call(event.call_id)

    async def _on_arguments_delta(self, event: FunctionCallArgumentsDelta) -> None:
        if self.tools.append_arguments(event.call_id, event.delta) is not None:
            self._track_call(event.call_id)

    async def _on_arguments_done(self, event: FunctionCallArgumentsDone) -> None:
        if self.tools.arguments_done(event.call_id, event.name, event.arguments) is not None:
            self._track_call(event.call_id)

    async def _report_tool_call(self, call: PendingToolCall) -> None:
        output = json.dumps(call.result)
        self.session.history.add_tool_turn(call.call_id, call.name or "", output)
        await self.send_upstream(
            {
                "type": UPSTREAM_ITEM_CREATE,
                "item": {"type": "function_call_output", "call_id": call.call_id, "output": output},
            }
        )
        self.tools.mark_reported(call)
        logger.info(f"Reported result of {call.name} (call_id={call.call_id}) in session {self.id}")
        request = GenerationRequest(
            reason=f"tool:{call.call_id}", response=default_response_options(self.session.config)
        )
        await self.request_generation(request)

    # Misc upstream events

    async def _on_session_lifecycle(self, event: SessionLifecycle) -> None:
        logger.info(f"Upstream {event.type} for session {self.id} (upstream id={event.upstream_session_id})")

    async def _on_upstream_error(self, event: UpstreamErrorEvent) -> None:
        logger.warning(f"Upstream error in session {self.id}: {event.message} (code={event.code})")
        if not self.generation.awaiting_start:
            return
        if event.client_event_id not in (None, self._issued_event_id):
            return
        following = self.generation.reject()
        if following is not None:
            await self._issue(following)

    # Callbacks from timers and tool tasks

    def _post_timer(self, token: int) -> None:
        if not self.session.is_live:
            return
        self.post(FinalizeTimerFired(token))

    def _post_tool_result(self, call_id: str, result: Dict[str, Any]) -> None:
        if not self.session.is_live:
            logger.info(f"Discarding result of call {call_id}: session {self.id} is closed")
            return
        self.post(ToolCallCompleted(call_id, result))

    # Teardown

    async def close(self, reason: str, notify: Optional[str] = None) -> None:
        """
        Tear the session down. Runs once; later calls do nothing.

        Args:
            reason: Why the session is closing, for the logs
            notify: Error message to send the client first, best effort
        """
        if not self.session.advance(SessionState.CLOSING):
            return
        logger.info(f"Closing session {self.id}: {reason}")

        self.turns.close()
        if notify:
            await self.send_client(ErrorEvent(message=notify, details=reason).to_payload())

        current = asyncio.current_task()
        for task in self._tasks:
            if task is not current and not task.done():
                task.cancel()

        if self.session.upstream is not None:
            try:
                await self.session.upstream.close()
            except Exception as e:
                logger.warning(f"Error closing upstream for session {self.id}: {e}")
        try:
            await self.session.websocket.close()
        except Exception as e:
            logger.debug(f"Client websocket already closed for session {self.id}: {e}")

        self.session.advance(SessionState.CLOSED)
        self.post(Wakeup())
        logger.info(
            f"Session {self.id} closed ({self.audio.frames_in} audio frames in, "
            f"{self.multiplexer.forwarded} upstream events forwarded, {self.tools.running} tool calls running)"
        )
