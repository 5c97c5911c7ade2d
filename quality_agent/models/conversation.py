"""Conversation messages exchanged with a reasoning backend.

Messages are ephemeral and never persisted. The history is append-only:
the agentic loop builds a new list on every transition.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Role(Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model."""
    name: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None


@dataclass(frozen=True)
class Message:
    """
    One conversation turn.

    Only assistant messages carry tool_calls; only tool messages carry
    tool_call_id. Use the constructors below rather than building by hand.
    """
    role: Role
    content: str
    tool_calls: tuple = ()
    tool_call_id: Optional[str] = None

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(Role.SYSTEM, content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(Role.USER, content)

    @classmethod
    def assistant(cls, content: str, tool_calls: Optional[List[ToolCall]] = None) -> "Message":
        return cls(Role.ASSISTANT, content, tuple(tool_calls or ()))

    @classmethod
    def tool(cls, content: str, tool_call_id: str) -> "Message":
        return cls(Role.TOOL, content, tool_call_id=tool_call_id)


@dataclass
class BackendResponse:
    """Normalized reply from any reasoning backend."""
    text: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)


@dataclass(frozen=True)
class ToolDefinition:
    """A named action surfaced to the model with a JSON-schema parameter shape."""
    name: str
    description: str
    parameters: Dict[str, Any]
