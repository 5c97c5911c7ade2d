"""Reasoning backend port."""

from abc import ABC, abstractmethod
from typing import List

from ..errors import BackendError
from ..models import BackendResponse, Message, ToolDefinition


class ReasoningBackend(ABC):
    """
    One narrow port for every model vendor.

    Adapters translate the neutral conversation into their wire format and
    normalize the reply into a BackendResponse. Transport failures, timeouts
    and unreadable replies raise BackendError.
    """

    name: str = "backend"

    @abstractmethod
    async def send(
        self,
        system_prompt: str,
        history: List[Message],
        tools: List[ToolDefinition],
    ) -> BackendResponse:
        """Send the conversation and return the model's next turn."""

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Single-turn, tool-free call. Returns the reply text."""
        response = await self.send(system_prompt, [Message.user(user_prompt)], [])
        return response.text


__all__ = ["ReasoningBackend", "BackendError"]
