"""Chat request and response models for the HTTP API."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class ChatTurn(BaseModel):
    """A single prior turn of the conversation, oldest first in a history."""

    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Request model for the chat endpoint."""

    message: str
    history: list[ChatTurn] = Field(default_factory=list)
    wallet_address: str | None = Field(default=None, alias="walletAddress")

    class Config:
        populate_by_name = True


class ReplyContent(BaseModel):
    """One text item of a tool result rendered for the UI."""

    type: Literal["text"] = "text"
    text: str


class ReplyResult(BaseModel):
    """Tool result envelope attached to a `tool_result` reply."""

    content: list[ReplyContent]


class ChatReply(BaseModel):
    """Response model for the chat endpoint."""

    type: Literal["text", "tool_result"]
    content: str
    tool: str | None = None
    result: ReplyResult | None = None


class ErrorResponse(BaseModel):
    """Body returned with 4xx/5xx responses."""

    error: str
    details: str


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: datetime
    version: str
