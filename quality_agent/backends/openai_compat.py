"""Adapter for OpenAI-compatible chat completion endpoints.

Covers OpenAI itself plus Ollama, Gemini, OpenRouter, DeepSeek, Mistral,
Groq, Together and Cohere, which all accept the same request shape.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional

import requests

from ..errors import BackendError
from ..models import BackendResponse, Message, Role, ToolCall, ToolDefinition
from ..utils import get_logger
from .base import ReasoningBackend


class OpenAICompatibleBackend(ReasoningBackend):
    """POSTs to ``{base_url}/chat/completions`` with function tools."""

    def __init__(
        self,
        provider: str,
        base_url: str,
        model: str,
        api_key: Optional[str] = None,
        max_tokens: int = 8192,
        temperature: float = 0.0,
        request_timeout: float = 120.0,
        session: Optional[requests.Session] = None,
    ):
        self.name = provider
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.api_key = api_key
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.request_timeout = request_timeout
        self.session = session or requests.Session()
        self.logger = get_logger()

    async def send(
        self,
        system_prompt: str,
        history: List[Message],
        tools: List[ToolDefinition],
    ) -> BackendResponse:
        payload = self.build_payload(system_prompt, history, tools)
        try:
            data = await asyncio.wait_for(
                asyncio.to_thread(self._post, payload),
                timeout=self.request_timeout,
            )
        except asyncio.TimeoutError as e:
            raise BackendError(
                f"{self.name} request timed out after {self.request_timeout}s"
            ) from e
        return self.parse_response(data)

    def build_payload(
        self,
        system_prompt: str,
        history: List[Message],
        tools: List[ToolDefinition],
    ) -> Dict[str, Any]:
        messages: List[Dict[str, Any]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})

        for msg in history:
            if msg.role == Role.SYSTEM:
                # Conversation-level system prompt already sent above
                continue
            entry: Dict[str, Any] = {"role": msg.role.value, "content": msg.content}
            if msg.role == Role.ASSISTANT and msg.tool_calls:
                entry["tool_calls"] = [
                    {
                        "id": call.id or f"call_{i}",
                        "type": "function",
                        "function": {
                            "name": call.name,
                            "arguments": json.dumps(call.parameters),
                        },
                    }
                    for i, call in enumerate(msg.tool_calls)
                ]
            if msg.role == Role.TOOL:
                entry["tool_call_id"] = msg.tool_call_id
            messages.append(entry)

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        if tools:
            payload["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": t.name,
                        "description": t.description,
                        "parameters": t.parameters,
                    },
                }
                for t in tools
            ]
        return payload

    def parse_response(self, data: Dict[str, Any]) -> BackendResponse:
        try:
            message = data["choices"][0]["message"]
        except (KeyError, IndexError, TypeError) as e:
            raise BackendError(f"Malformed {self.name} response: {e}") from e

        calls = []
        for raw in message.get("tool_calls") or []:
            function = raw.get("function") or {}
            arguments = function.get("arguments") or "{}"
            if isinstance(arguments, str):
                try:
                    arguments = json.loads(arguments)
                except ValueError:
                    self.logger.warning(
                        f"Unparseable arguments for tool {function.get('name')}; using empty parameters"
                    )
                    arguments = {}
            calls.append(ToolCall(
                name=function.get("name", ""),
                parameters=arguments if isinstance(arguments, dict) else {},
                id=raw.get("id"),
            ))

        return BackendResponse(text=message.get("content") or "", tool_calls=calls)

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            response = self.session.post(
                f"{self.base_url}/chat/completions",
                headers=headers,
                json=payload,
                timeout=self.request_timeout,
            )
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise BackendError(f"{self.name} request failed: {e}") from e
        except ValueError as e:
            raise BackendError(f"{self.name} returned invalid JSON: {e}") from e
