"""Runtime settings read from the environment."""

import os
import shlex
from dataclasses import dataclass, field
from functools import lru_cache

DEFAULT_MODEL = "claude-3-5-sonnet-20241022"
DEFAULT_MCP_SERVER_ARGS = "../metaplex-genesis-mcp/dist/index.js"
DEFAULT_SOLANA_RPC_URL = "https://api.devnet.solana.com"


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


@dataclass
class Settings:
    """Configuration for the chat service.

    Timeouts are in seconds; a value of 0 disables the bound.
    """

    model: str = DEFAULT_MODEL
    max_tokens: int = 4096
    temperature: float = 0.0
    max_retries: int = 3

    # Model invocations allowed per chat request (tool calls in the last one still run)
    max_rounds: int = 5
    round_timeout_seconds: float = 60.0
    tool_timeout_seconds: float = 60.0
    # Tool server handshake and tools/list
    bridge_timeout_seconds: float = 30.0

    max_message_tokens: int = 2000
    max_context_tokens: int = 150_000

    requests_per_minute: int = 50

    mcp_server_command: str = "node"
    mcp_server_args: list[str] = field(default_factory=lambda: shlex.split(DEFAULT_MCP_SERVER_ARGS))
    solana_rpc_url: str = DEFAULT_SOLANA_RPC_URL

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        return cls(
            model=os.getenv("GENESIS_MODEL", DEFAULT_MODEL),
            max_tokens=_env_int("GENESIS_MAX_TOKENS", 4096),
            temperature=_env_float("GENESIS_TEMPERATURE", 0.0),
            max_retries=_env_int("GENESIS_MAX_RETRIES", 3),
            max_rounds=_env_int("GENESIS_MAX_ROUNDS", 5),
            round_timeout_seconds=_env_float("GENESIS_ROUND_TIMEOUT", 60.0),
            tool_timeout_seconds=_env_float("GENESIS_TOOL_TIMEOUT", 60.0),
            bridge_timeout_seconds=_env_float("GENESIS_BRIDGE_TIMEOUT", 30.0),
            max_message_tokens=_env_int("GENESIS_MAX_MESSAGE_TOKENS", 2000),
            max_context_tokens=_env_int("GENESIS_MAX_CONTEXT_TOKENS", 150_000),
            requests_per_minute=_env_int("GENESIS_REQUESTS_PER_MINUTE", 50),
            mcp_server_command=os.getenv("MCP_SERVER_COMMAND", "node"),
            mcp_server_args=shlex.split(os.getenv("MCP_SERVER_ARGS", DEFAULT_MCP_SERVER_ARGS)),
            solana_rpc_url=os.getenv("SOLANA_RPC_URL", DEFAULT_SOLANA_RPC_URL),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    return Settings.from_env()
