"""
Single-flight gate for generation requests.

The upstream generates one response at a time. User turns, tool resumes and
client-requested responses all ask for a generation through this gate; while a
response is in flight further requests wait in FIFO order. An interrupt drops the
waiting requests and blocks new ones until the next user turn.

A request counts as in flight from the moment it is issued. Until the upstream
confirms it with response.created it is also awaiting start; if the upstream
rejects it instead, reject() frees the gate so later requests are not stuck.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Optional

from voice_bridge.config.constants import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)


@dataclass
class GenerationRequest:
    """A pending request for the upstream to generate a response."""

    reason: str
    response: Dict[str, Any] = field(default_factory=dict)


class GenerationGate:
    """
    Orders generation requests against the upstream's response channel.

    Args:
        single_flight: When False, every request is released immediately
    """

    def __init__(self, single_flight: bool = True):
        self.single_flight = single_flight
        self.in_flight = False
        self.suppressed = False
        self.awaiting_start = False
        self._waiting: Deque[GenerationRequest] = deque()

    @property
    def waiting(self) -> int:
        return len(self._waiting)

    def request(self, request: GenerationRequest, user_initiated: bool = False) -> Optional[GenerationRequest]:
        """
        Ask for a generation.

        Args:
            request: The request to issue
            user_initiated: A new user turn or an explicit client request, which
                lifts an interrupt's suppression

        Returns:
            The request to send now, or None if it was queued or dropped
        """
        if user_initiated:
            self.suppressed = False
        elif self.suppressed:
            logger.info(f"Dropping generation request after interrupt: {request.reason}")
            return None

        if self.single_flight and self.in_flight:
            logger.debug(f"Queueing generation request: {request.reason}")
            self._waiting.append(request)
            return None

        self.in_flight = True
        self.awaiting_start = True
        return request

    def release(self) -> Optional[GenerationRequest]:
        """
        Mark the in-flight response as finished.

        Returns:
            The next waiting request to send, if any
        """
        self.in_flight = False
        self.awaiting_start = False
        if self._waiting and not self.suppressed:
            self.in_flight = True
            self.awaiting_start = True
            return self._waiting.popleft()
        return None

    def reject(self) -> Optional[GenerationRequest]:
        """
        The upstream refused the issued request before starting it.

        Returns:
            The next waiting request to send, if any
        """
        if not self.awaiting_start:
            return None
        logger.warning("Issued generation request was rejected by the upstream")
        return self.release()

    def mark_started(self) -> None:
        """Record that the upstream started a response, issued or its own."""
        self.in_flight = True
        self.awaiting_start = False

    def cancel(self) -> bool:
        """
        Drop waiting requests and suppress new ones until the next user turn.

        Returns:
            True if a response was in flight and should be cancelled upstream
        """
        dropped = len(self._waiting)
        self._waiting.clear()
        self.suppressed = True
        if dropped:
            logger.info(f"Dropped {dropped} queued generation request(s)")
        return self.in_flight
