"""Events on a session's inbound queue.

Everything that can change a session's state arrives as one of these events and
is handled one at a time, in queue order, by the session's ConnectionSupervisor.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Union


@dataclass
class ClientFrame:
    data: Union[bytes, str]


@dataclass
class ClientClosed:
    reason: str


@dataclass
class UpstreamOpened:
    pass


@dataclass
class UpstreamMessage:
    payload: Union[Dict[str, Any], bytes]


@dataclass
class UpstreamClosed:
    reason: str
    error: bool = False


@dataclass
class FinalizeTimerFired:
    token: int


@dataclass
class ToolCallCompleted:
    call_id: str
    result: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Wakeup:
    """Unblocks the session loop after an external close."""


SessionEvent = Union[
    ClientFrame,
    ClientClosed,
    UpstreamOpened,
    UpstreamMessage,
    UpstreamClosed,
    FinalizeTimerFired,
    ToolCallCompleted,
    Wakeup,
]
