"""State definitions for the chat tool-call graph."""

from collections.abc import Sequence
from typing import Annotated

from langchain_core.messages import BaseMessage
from langgraph.graph import add_messages
from pydantic import BaseModel


class ChatGraphState(BaseModel):
    """State passed through the agent and tools nodes for one chat request."""

    messages: Annotated[Sequence[BaseMessage], add_messages]

    # Model invocations so far and the cap for this request
    rounds: int = 0
    max_rounds: int = 5

    class Config:
        """Pydantic configuration."""

        arbitrary_types_allowed = True  # Allow BaseMessage types
