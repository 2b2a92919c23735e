"""
Turn finalization for streamed user transcripts.

Transcript fragments are buffered while the user speaks. An utterance is finalized
either by an explicit final flag from the upstream or by a quiet-period timer,
whichever comes first. Finalize is a single claim-and-clear on the buffer, so the
losing trigger always finds it empty and does nothing.

When the timer wins, the upstream's own final for that utterance still arrives
later, usually repeating the text. The accumulator remembers what the timer
claimed (by input item id, or as "the current unnamed utterance") and swallows
that final instead of finalizing the same words again.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Set

from voice_bridge.config.constants import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)

# schedule(delay_seconds, callback) -> handle with cancel()
Scheduler = Callable[[float, Callable[[], None]], Any]


def loop_scheduler(delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
    """Schedule ``callback`` on the running event loop."""
    return asyncio.get_running_loop().call_later(delay, callback)


@dataclass
class FragmentResult:
    """What the session must do after a fragment was accumulated."""

    partial: Optional[str] = None
    finalized: Optional[str] = None


class TurnAccumulator:
    """
    Buffers the user's in-progress utterance and finalizes it exactly once.

    Args:
        quiet_period: Seconds of silence after the last fragment before finalizing
        on_timer: Called with the arm token when the finalize timer fires; the
            session turns this into an event on its queue
        scheduler: Timer factory, the running loop's call_later by default
        clock: Time source for the last-update timestamp
    """

    def __init__(
        self,
        quiet_period: float,
        on_timer: Callable[[int], None],
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.quiet_period = quiet_period
        self._on_timer = on_timer
        self._schedule = scheduler or loop_scheduler
        self._clock = clock
        self._buffer = ""
        self._last_update: Optional[float] = None
        self._utterance_id: Optional[str] = None
        self._claimed_ids: Set[str] = set()
        self._claimed_unnamed = False
        self._timer = None
        self._token = 0
        self._closed = False

    @property
    def latest_partial_text(self) -> str:
        return self._buffer

    @property
    def last_update(self) -> Optional[float]:
        return self._last_update

    @property
    def timer_armed(self) -> bool:
        return self._timer is not None

    def on_fragment(
        self,
        text: str,
        is_final: bool = False,
        append: bool = False,
        utterance_id: Optional[str] = None,
    ) -> FragmentResult:
        """
        Accumulate one transcript fragment.

        Args:
            text: Fragment text; a full hypothesis, or a delta when ``append`` is set
            is_final: The upstream marked the utterance as complete
            append: Extend the buffer instead of replacing it
            utterance_id: Input item the fragment belongs to, if known

        Returns:
            FragmentResult with the partial text to show and/or the finalized utterance
        """
        result = FragmentResult()
        if self._closed:
            return result
        if self._closes_claimed(utterance_id, is_final):
            return result

        if text and text.strip():
            if append:
                self._buffer = self._buffer + text
            else:
                self._buffer = text.strip()
            self._last_update = self._clock()
            if utterance_id is not None:
                self._utterance_id = utterance_id
            result.partial = self._buffer.strip()
            if not is_final:
                self._arm()

        if is_final:
            self._disarm()
            result.finalized = self.finalize()
        return result

    def on_timer(self, token: int) -> Optional[str]:
        """
        Handle a fired finalize timer.

        Timers from an earlier arm are stale and ignored.
        """
        if self._closed or token != self._token:
            logger.debug(f"Ignoring stale finalize timer {token}")
            return None
        self._timer = None
        utterance_id = self._utterance_id
        text = self.finalize()
        if text is not None:
            if utterance_id is not None:
                self._claimed_ids.add(utterance_id)
            else:
                self._claimed_unnamed = True
        return text

    def finalize(self) -> Optional[str]:
        """
        Claim the buffered utterance.

        Returns:
            The utterance text, or None when there was nothing to claim
        """
        text = self._buffer.strip()
        self._buffer = ""
        self._utterance_id = None
        if not text:
            return None
        self._disarm()
        return text

    def close(self) -> None:
        """Release the timer; later fragments and timers are ignored."""
        self._closed = True
        self._disarm()
        self._buffer = ""
        self._utterance_id = None
        self._claimed_ids.clear()
        self._claimed_unnamed = False

    def _closes_claimed(self, utterance_id: Optional[str], is_final: bool) -> bool:
        """True if the fragment belongs to an utterance the timer already finalized."""
        if utterance_id is not None and utterance_id in self._claimed_ids:
            if is_final:
                self._claimed_ids.discard(utterance_id)
            logger.debug(f"Ignoring transcript for already finalized utterance {utterance_id}")
            return True
        if utterance_id is None and is_final and self._claimed_unnamed:
            # Anything buffered since the claim is part of the same utterance
            self._claimed_unnamed = False
            self._disarm()
            self._buffer = ""
            logger.debug("Ignoring final transcript for already finalized utterance")
            return True
        return False

    def _arm(self) -> None:
        self._disarm()
        self._token += 1
        token = self._token
        self._timer = self._schedule(self.quiet_period, lambda: self._fire(token))

    def _disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self, token: int) -> None:
        if self._closed:
            return
        self._on_timer(token)
