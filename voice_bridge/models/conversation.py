"""
Conversation history for a single voice session.

A session's history is an ordered, append-only list of Turns: what the user said,
what the assistant answered, and what each tool call returned. Turns are never
edited or removed once appended.
"""

from enum import Enum
from typing import Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class TurnRole(str, Enum):
    """Role of a participant in a conversation."""
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class Turn(BaseModel):
    """One entry of the conversation history."""

    model_config = ConfigDict(frozen=True)

    role: TurnRole
    content: str
    tool_call_ids: Tuple[str, ...] = Field(default_factory=tuple)
    name: Optional[str] = None


class ConversationHistory:
    """
    Append-only history of Turns for one session.

    The history is owned by exactly one session and lives only as long as the
    client connection does.
    """

    def __init__(self):
        self._turns: List[Turn] = []

    def append(self, turn: Turn) -> Turn:
        """
        Append a turn to the end of the history.

        Args:
            turn: The turn to append

        Returns:
            The appended turn
        """
        self._turns.append(turn)
        return turn

    def add_user_turn(self, text: str) -> Turn:
        return self.append(Turn(role=TurnRole.USER, content=text))

    def add_assistant_turn(self, text: str, tool_call_ids: Tuple[str, ...] = ()) -> Turn:
        return self.append(
            Turn(role=TurnRole.ASSISTANT, content=text, tool_call_ids=tuple(tool_call_ids))
        )

    def add_tool_turn(self, call_id: str, name: str, content: str) -> Turn:
        return self.append(
            Turn(role=TurnRole.TOOL, content=content, tool_call_ids=(call_id,), name=name)
        )

    @property
    def turns(self) -> Tuple[Turn, ...]:
        """Snapshot of the history; callers cannot mutate it."""
        return tuple(self._turns)

    def by_role(self, role: TurnRole) -> List[Turn]:
        return [turn for turn in self._turns if turn.role == role]

    def __iter__(self) -> Iterator[Turn]:
        return iter(tuple(self._turns))

    def __len__(self) -> int:
        return len(self._turns)
