"""Node implementations for the chat graph."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage
from langchain_core.runnables import RunnableConfig
from langchain_core.tools import BaseTool

from genesis_chat.clients.anthropic import ModelRateLimiter
from genesis_chat.graphs.state import ChatGraphState
from genesis_chat.utils.logging import get_logger

logger = get_logger(__name__)

AgentNode = Callable[[ChatGraphState, RunnableConfig], Awaitable[dict[str, Any]]]


def create_agent_node(
    model: BaseChatModel,
    tools: list[BaseTool],
    rate_limiter: ModelRateLimiter | None = None,
    timeout_seconds: float = 0,
) -> AgentNode:
    """Create the node that asks the model for its next move.

    Model failures are not caught here: they abort the graph run and reach
    the HTTP layer.

    Args:
        model: Chat model supporting tool binding
        tools: Tools the model may call
        rate_limiter: Optional shared limiter applied before each call
        timeout_seconds: Wall-clock bound per model call; 0 disables it
    """
    bound_model = model.bind_tools(tools)

    async def agent_node(state: ChatGraphState, config: RunnableConfig) -> dict[str, Any]:
        round_number = state.rounds + 1
        logger.debug(f"Agent round {round_number}/{state.max_rounds} with {len(state.messages)} messages")

        if rate_limiter is not None:
            await rate_limiter.acquire()

        call = bound_model.ainvoke(state.messages, config)
        try:
            response = await asyncio.wait_for(call, timeout_seconds) if timeout_seconds else await call
        except TimeoutError as e:
            raise TimeoutError(f"Model did not respond within {timeout_seconds:g} seconds") from e

        tool_calls = getattr(response, "tool_calls", None) or []
        if tool_calls:
            logger.info(f"Agent requesting {len(tool_calls)} tool calls in round {round_number}")

        return {"messages": [response], "rounds": round_number}

    return agent_node


def message_text(message: BaseMessage) -> str:
    """Return the plain text of a message whose content may be a list of blocks."""
    content = message.content
    if isinstance(content, str):
        return content

    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)
