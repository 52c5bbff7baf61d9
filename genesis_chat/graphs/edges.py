"""Edge logic and routing for the chat graph."""

from typing import Literal

from genesis_chat.graphs.state import ChatGraphState
from genesis_chat.utils.logging import get_logger

logger = get_logger(__name__)


def route_agent_output(state: ChatGraphState) -> Literal["tools", "end"]:
    """Route from the agent node: run requested tool calls, otherwise finish."""
    last_message = state.messages[-1] if state.messages else None
    if getattr(last_message, "tool_calls", None):
        return "tools"
    return "end"


def route_tool_output(state: ChatGraphState) -> Literal["agent", "end"]:
    """Route from the tools node back to the agent until the round cap is reached.

    Tool calls requested in the last allowed round have already run; their
    results are kept in the step history even though the model never sees them.
    """
    if state.rounds >= state.max_rounds:
        logger.warning(f"Tool-call loop reached max rounds ({state.max_rounds})")
        return "end"
    return "agent"
