"""Claude adapter built on the Claude Agent SDK."""

import asyncio
import json
from typing import Any, Dict, List, Optional

from claude_agent_sdk import (
    ClaudeSDKClient,
    ClaudeAgentOptions,
    tool,
    create_sdk_mcp_server,
    AssistantMessage,
    TextBlock,
    ToolUseBlock,
    ResultMessage,
)

from ..errors import BackendError
from ..models import BackendResponse, Message, Role, ToolCall, ToolDefinition
from ..utils import get_logger
from .base import ReasoningBackend


MCP_SERVER_NAME = "quality"

# Built-in agent tools the model must not use; our loop owns tool execution
BUILTIN_TOOLS = ["Bash", "Read", "Write", "Edit", "Glob", "Grep", "WebFetch", "WebSearch"]


def render_transcript(history: List[Message]) -> str:
    """Flatten the neutral history into a single prompt for one SDK turn."""
    parts = []
    for msg in history:
        if msg.role == Role.SYSTEM:
            continue
        if msg.role == Role.USER:
            parts.append(f"## User\n{msg.content}")
        elif msg.role == Role.ASSISTANT:
            text = msg.content
            for call in msg.tool_calls:
                text += f"\n[called {call.name} with {json.dumps(call.parameters)}]"
            parts.append(f"## Assistant\n{text}")
        else:
            parts.append(f"## Tool result ({msg.tool_call_id})\n{msg.content}")
    return "\n\n".join(parts)


class ClaudeAgentBackend(ReasoningBackend):
    """
    Runs one model turn per send() through ClaudeSDKClient.

    Our tools are registered on an in-process MCP server whose handlers only
    acknowledge the call; the ToolUseBlocks are collected and handed back so
    the agentic loop executes them itself through the tool router.
    """

    name = "claude"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        request_timeout: float = 120.0,
    ):
        self.api_key = api_key
        self.model = model
        self.request_timeout = request_timeout
        self.logger = get_logger()

    def _build_options(self, system_prompt: str, tools: List[ToolDefinition]) -> ClaudeAgentOptions:
        sdk_tools = [self._deferred_tool(t) for t in tools]
        server = create_sdk_mcp_server(
            name=MCP_SERVER_NAME,
            version="1.0.0",
            tools=sdk_tools,
        )
        env = {"ANTHROPIC_API_KEY": self.api_key} if self.api_key else {}

        return ClaudeAgentOptions(
            system_prompt=system_prompt,
            mcp_servers={MCP_SERVER_NAME: server} if sdk_tools else {},
            allowed_tools=[f"mcp__{MCP_SERVER_NAME}__{t.name}" for t in tools],
            disallowed_tools=BUILTIN_TOOLS,
            permission_mode="default",
            max_turns=1,
            model=self.model,
            env=env,
        )

    @staticmethod
    def _deferred_tool(definition: ToolDefinition):
        async def handler(args: Dict[str, Any]) -> Dict[str, Any]:
            return {
                "content": [{
                    "type": "text",
                    "text": f"{definition.name} queued; result follows in the next turn."
                }]
            }

        return tool(definition.name, definition.description, definition.parameters)(handler)

    async def send(
        self,
        system_prompt: str,
        history: List[Message],
        tools: List[ToolDefinition],
    ) -> BackendResponse:
        try:
            return await asyncio.wait_for(
                self._run_turn(system_prompt, history, tools),
                timeout=self.request_timeout,
            )
        except asyncio.TimeoutError as e:
            raise BackendError(f"claude request timed out after {self.request_timeout}s") from e
        except BackendError:
            raise
        except Exception as e:
            raise BackendError(f"claude request failed: {e}") from e

    async def _run_turn(
        self,
        system_prompt: str,
        history: List[Message],
        tools: List[ToolDefinition],
    ) -> BackendResponse:
        options = self._build_options(system_prompt, tools)
        texts: List[str] = []
        calls: List[ToolCall] = []

        async with ClaudeSDKClient(options=options) as client:
            await client.query(render_transcript(history))

            async for message in client.receive_response():
                if isinstance(message, AssistantMessage):
                    for block in message.content:
                        if isinstance(block, TextBlock):
                            texts.append(block.text)
                        elif isinstance(block, ToolUseBlock):
                            calls.append(ToolCall(
                                name=block.name.split("__")[-1],
                                parameters=dict(block.input or {}),
                                id=block.id,
                            ))

                elif isinstance(message, ResultMessage):
                    self.logger.debug(f"Claude turn completed in {message.duration_ms}ms")
                    # Hitting max_turns after a tool call is expected
                    if message.is_error and not calls:
                        raise BackendError(f"claude turn failed: {message.subtype}")

        return BackendResponse(text="\n".join(texts), tool_calls=calls)
