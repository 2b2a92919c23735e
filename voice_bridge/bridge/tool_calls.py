"""
Reconstruction and dispatch of streamed function calls.

The model announces a call, streams its JSON arguments in fragments, then signals
that the arguments are done. Each call id moves through
collecting -> ready -> executed -> reported. Execution runs concurrently with the
rest of the session; completion comes back to the session as an event. Results
are reported in announcement order, once the response that announced the calls
has finished.
"""

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Callable, Coroutine, Dict, List, Optional

from voice_bridge.config.constants import LOGGER_NAME
from voice_bridge.exceptions import ToolArgumentParseError, ToolExecutionError

logger = logging.getLogger(LOGGER_NAME)


class ToolCallState(str, Enum):
    COLLECTING = "collecting"
    READY = "ready"
    EXECUTED = "executed"
    REPORTED = "reported"


_STATE_ORDER = {
    ToolCallState.COLLECTING: 0,
    ToolCallState.READY: 1,
    ToolCallState.EXECUTED: 2,
    ToolCallState.REPORTED: 3,
}


class PendingToolCall:
    """A function call being reconstructed, executed and reported."""

    def __init__(self, call_id: str, name: Optional[str] = None):
        self.call_id = call_id
        self.name = name
        self.arguments_text = ""
        self.arguments: Dict[str, Any] = {}
        self.result: Optional[Dict[str, Any]] = None
        self.state = ToolCallState.COLLECTING
        self.response_closed = False

    def advance(self, new_state: ToolCallState) -> None:
        if _STATE_ORDER[new_state] <= _STATE_ORDER[self.state]:
            raise ValueError(
                f"Tool call {self.call_id} cannot move from {self.state.value} to {new_state.value}"
            )
        self.state = new_state

    def __repr__(self) -> str:
        return f"PendingToolCall(call_id={self.call_id!r}, name={self.name!r}, state={self.state.value})"


def parse_arguments(call_id: str, text: str) -> Dict[str, Any]:
    """
    Parse accumulated argument text into a JSON object.

    Raises:
        ToolArgumentParseError: If the text is not a JSON object
    """
    if not text.strip():
        return {}
    try:
        value = json.loads(text)
    except json.JSONDecodeError as e:
        raise ToolArgumentParseError(call_id, f"Invalid JSON arguments: {e}") from e
    if not isinstance(value, dict):
        raise ToolArgumentParseError(call_id, "Arguments are not a JSON object")
    return value


def unknown_tool_result(name: Optional[str]) -> Dict[str, Any]:
    return {"ok": False, "error": f"Unknown tool {name}"}


class ToolCallAggregator:
    """
    Tracks the function calls of one session.

    Args:
        executor: Tool executor with ``has_tool(name)`` and ``execute(name, args)``
        on_completed: Called with ``(call_id, result)`` when an execution finishes;
            the session turns this into an event on its queue
        spawn: Task factory used to run executions concurrently
    """

    def __init__(
        self,
        executor: Any,
        on_completed: Callable[[str, Dict[str, Any]], None],
        spawn: Optional[Callable[[Coroutine], "asyncio.Task"]] = None,
    ):
        self._executor = executor
        self._on_completed = on_completed
        self._spawn = spawn or asyncio.create_task
        self._calls: Dict[str, PendingToolCall] = {}
        self._order: List[str] = []
        self._tasks: set = set()

    def get(self, call_id: str) -> Optional[PendingToolCall]:
        return self._calls.get(call_id)

    @property
    def pending(self) -> List[PendingToolCall]:
        """Calls not yet reported, in announcement order."""
        return [self._calls[call_id] for call_id in self._order]

    def announce(self, call_id: str, name: str) -> PendingToolCall:
        """Record a call announced by the model."""
        call = self._calls.get(call_id)
        if call is None:
            call = PendingToolCall(call_id, name)
            self._calls[call_id] = call
            self._order.append(call_id)
            logger.info(f"Function call announced: {name} (call_id={call_id})")
        elif name and not call.name:
            call.name = name
        return call

    def append_arguments(self, call_id: str, delta: str) -> Optional[PendingToolCall]:
        """Append a streamed argument fragment to a collecting call."""
        call = self._calls.get(call_id)
        if call is None:
            # Fragments may precede the announcement on some upstreams
            call = self.announce(call_id, "")
        if call.state != ToolCallState.COLLECTING:
            logger.warning(f"Ignoring argument fragment for {call.state.value} call {call_id}")
            return None
        call.arguments_text += delta
        return call

    def arguments_done(
        self, call_id: str, name: Optional[str] = None, arguments: Optional[str] = None
    ) -> Optional[PendingToolCall]:
        """
        Mark a call's arguments complete, parse them and dispatch execution.

        Args:
            call_id: The call id
            name: Tool name carried by the done signal, if any
            arguments: Full argument text carried by the done signal, used when
                nothing was streamed

        Returns:
            The dispatched call, or None if the call was already past collecting
        """
        call = self._calls.get(call_id) or self.announce(call_id, name or "")
        if call.state != ToolCallState.COLLECTING:
            logger.warning(f"Duplicate arguments-done for call {call_id}")
            return None
        if name and not call.name:
            call.name = name
        if not call.arguments_text and arguments:
            call.arguments_text = arguments

        call.advance(ToolCallState.READY)
        try:
            call.arguments = parse_arguments(call_id, call.arguments_text)
        except ToolArgumentParseError as e:
            logger.warning(f"{e}; continuing with empty arguments")
            call.arguments = {}

        task = self._spawn(self._run(call))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return call

    async def _run(self, call: PendingToolCall) -> None:
        result = await self.execute(call)
        self._on_completed(call.call_id, result)

    async def execute(self, call: PendingToolCall) -> Dict[str, Any]:
        """
        Run one call against the executor, converting every failure into a result.

        Returns:
            The tool's result, or an ``{"ok": False, "error": ...}`` payload
        """
        if not call.name or not self._executor.has_tool(call.name):
            logger.warning(f"Unknown tool requested: {call.name} (call_id={call.call_id})")
            return unknown_tool_result(call.name)

        logger.info(f"Executing tool: {call.name}(call_id={call.call_id}, args={call.arguments})")
        try:
            result = await self._executor.execute(call.name, call.arguments)
        except ToolExecutionError as e:
            logger.warning(f"Tool {call.name} failed: {e.message}")
            return {"ok": False, "error": e.message}
        except Exception as e:
            logger.error(f"Tool execution failed: {call.name} - {e}", exc_info=True)
            return {"ok": False, "error": str(e)}

        if not isinstance(result, dict):
            result = {"ok": True, "result": result}
        return result

    def complete(self, call_id: str, result: Dict[str, Any]) -> List[PendingToolCall]:
        """
        Record an execution result.

        Returns:
            Calls now ready to be reported, in announcement order. A call that
            completes ahead of an earlier announced one waits for it.
        """
        call = self._calls.get(call_id)
        if call is None or call.state != ToolCallState.READY:
            logger.warning(f"Ignoring result for unknown or settled call {call_id}")
            return []
        call.result = result
        call.advance(ToolCallState.EXECUTED)
        return self._reportable()

    def close_response(self) -> List[PendingToolCall]:
        """
        Record that the response which announced the pending calls has finished.

        Calls whose arguments never completed (e.g. the response was cancelled)
        are dropped.

        Returns:
            Calls now ready to be reported, in announcement order
        """
        for call_id in list(self._order):
            call = self._calls[call_id]
            if call.state == ToolCallState.COLLECTING:
                logger.info(f"Abandoning incomplete function call {call_id}")
                self._calls.pop(call_id)
                self._order.remove(call_id)
            else:
                call.response_closed = True
        return self._reportable()

    def _reportable(self) -> List[PendingToolCall]:
        reportable = []
        for pending_id in self._order:
            pending = self._calls[pending_id]
            if pending.state != ToolCallState.EXECUTED or not pending.response_closed:
                break
            reportable.append(pending)
        return reportable

    def mark_reported(self, call: PendingToolCall) -> None:
        """Settle a reported call and forget it."""
        call.advance(ToolCallState.REPORTED)
        self._calls.pop(call.call_id, None)
        if call.call_id in self._order:
            self._order.remove(call.call_id)

    @property
    def running(self) -> int:
        return len(self._tasks)
