"""Storage tool for collecting structured outputs emitted through tool calls."""

from typing import Any, Generic, List, Optional, TypeVar

T = TypeVar('T')


class StorageTool(Generic[T]):
    """
    Collects values the model emits through a tool call.

    The tool call is the data transfer layer: the model calls create_issue,
    the loop stores the converted value here and replies with an MCP-style
    text acknowledgment so the conversation can continue.
    """

    def __init__(self):
        self._values: List[T] = []

    def store(self, value: T, acknowledgment: Optional[str] = None) -> dict[str, Any]:
        """Store a value and return the MCP-compatible acknowledgment."""
        self._values.append(value)
        text = acknowledgment or f"Stored successfully. Total: {len(self._values)}"
        return {
            "content": [{
                "type": "text",
                "text": text
            }]
        }

    def extend(self, values: List[T]):
        """Store values that arrived outside a tool call (parsed replies)."""
        self._values.extend(values)

    @property
    def values(self) -> List[T]:
        """Get copy of stored values."""
        return self._values.copy()

    def clear(self):
        """Clear all stored values."""
        self._values.clear()

    def __len__(self) -> int:
        return len(self._values)
