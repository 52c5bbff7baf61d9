"""Anthropic chat model construction, rate limiting and token budgeting."""

import asyncio
import os
import time

import tiktoken
from langchain_anthropic import ChatAnthropic
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

from genesis_chat.config import Settings, get_settings
from genesis_chat.models.chat import ChatTurn
from genesis_chat.utils.logging import get_logger

logger = get_logger(__name__)


def create_chat_model(settings: Settings | None = None) -> ChatAnthropic:
    """Create the chat model used by the agent node.

    Raises:
        ValueError: If ANTHROPIC_API_KEY is not set
    """
    settings = settings or get_settings()

    api_key = os.getenv("ANTHROPIC_API_KEY")
    if not api_key:
        raise ValueError("ANTHROPIC_API_KEY environment variable is required")

    return ChatAnthropic(
        model=settings.model,
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
        max_retries=settings.max_retries,
        anthropic_api_key=api_key,
    )


class ModelRateLimiter:
    """Moving-window request limiter shared by all model calls in the process."""

    def __init__(self, requests_per_minute: int = 50):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Maximum model requests per minute
        """
        self.storage = MemoryStorage()
        self.limiter = MovingWindowRateLimiter(self.storage)
        self.request_limit = parse(f"{requests_per_minute}/minute")

    async def acquire(self, identifier: str = "anthropic") -> None:
        """Wait until a request slot is free."""
        while not self.limiter.hit(self.request_limit, identifier):
            window_stats = self.limiter.get_window_stats(self.request_limit, identifier)
            # reset_time is wall-clock epoch seconds
            wait_time = max(0.1, window_stats.reset_time - time.time())
            logger.warning(f"Model request rate limit exceeded, waiting {wait_time:.2f}s")
            await asyncio.sleep(wait_time)


class MessageTooLongError(ValueError):
    """Raised when the incoming user message exceeds its token limit."""


class TokenBudget:
    """Token estimation for validating messages and trimming history."""

    tokenizer: tiktoken.Encoding | None = None

    def __init__(self, max_message_tokens: int = 2000, max_context_tokens: int = 150_000):
        """Initialize the budget.

        Args:
            max_message_tokens: Maximum tokens for the incoming user message
            max_context_tokens: Tokens available to system prompt plus turns
        """
        self.max_message_tokens = max_message_tokens
        self.max_context_tokens = max_context_tokens

        try:
            # Close approximation for Claude
            self.tokenizer = tiktoken.encoding_for_model("gpt-4")
        except Exception:
            self.tokenizer = None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "TokenBudget":
        settings = settings or get_settings()
        return cls(settings.max_message_tokens, settings.max_context_tokens)

    def estimate_tokens(self, text: str) -> int:
        """Estimate token count for a piece of text."""
        try:
            return len(self.tokenizer.encode(text)) if self.tokenizer else len(text) // 4
        except Exception:
            # Fallback: roughly 4 characters per token
            return len(text) // 4

    def validate_message(self, message: str) -> None:
        """Validate that the user message fits its token limit.

        Raises:
            MessageTooLongError: If message exceeds token limit
        """
        token_count = self.estimate_tokens(message)
        if token_count > self.max_message_tokens:
            raise MessageTooLongError(
                f"Message exceeds token limit: {token_count} tokens > {self.max_message_tokens} limit"
            )

    def truncate_history(self, history: list[ChatTurn], system_prompt: str, message: str) -> list[ChatTurn]:
        """Drop the oldest turns until prompt, history and message fit the context budget.

        Args:
            history: Prior turns, oldest first
            system_prompt: Assembled system prompt
            message: Current user message

        Returns:
            The newest suffix of `history` that fits
        """
        available_tokens = self.max_context_tokens - self.estimate_tokens(system_prompt) - self.estimate_tokens(message)

        kept: list[ChatTurn] = []
        current_tokens = 0
        for turn in reversed(history):
            turn_tokens = self.estimate_tokens(turn.content)
            if current_tokens + turn_tokens > available_tokens:
                break
            kept.insert(0, turn)
            current_tokens += turn_tokens

        if len(kept) < len(history):
            logger.warning(
                f"Truncated history from {len(history)} to {len(kept)} turns "
                f"to fit within {available_tokens} token limit"
            )

        return kept


_rate_limiter: ModelRateLimiter | None = None


def get_rate_limiter() -> ModelRateLimiter:
    """Get or create the process-wide model rate limiter."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = ModelRateLimiter(get_settings().requests_per_minute)
    return _rate_limiter
