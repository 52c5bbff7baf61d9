"""Shared fixtures: scripted chat model, fake tool bridge, wired chat service."""

import json
from unittest.mock import Mock

import pytest
import tiktoken
from langchain_core.messages import AIMessage

from genesis_chat.clients.anthropic import ModelRateLimiter, TokenBudget
from genesis_chat.config import Settings
from genesis_chat.graphs.conversation import ConversationOrchestrator
from genesis_chat.models.tools import ToolContent, ToolDescriptor, ToolResult
from genesis_chat.services.chat import ChatService

WALLET = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
TX_B64 = "AQAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA=="
MINT_KEY_B64 = "c2VjcmV0LWtleS1ieXRlcw=="


class ScriptedChatModel:
    """Chat model stand-in that returns queued responses in order."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.received: list[list] = []
        self.bound_tools: list = []

    def bind_tools(self, tools):
        self.bound_tools = list(tools)
        return self

    async def ainvoke(self, messages, config=None):
        self.received.append(list(messages))
        if not self.responses:
            raise AssertionError("ScriptedChatModel ran out of responses")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


class FakeToolBridge:
    """In-memory tool server. Outcomes are queued per tool name."""

    def __init__(self, tools: list[ToolDescriptor] | None = None, outcomes: dict | None = None):
        self.tools = tools if tools is not None else default_tools()
        self.outcomes = {name: list(values) for name, values in (outcomes or {}).items()}
        self.calls: list[tuple[str, dict]] = []
        self.list_calls = 0

    async def list_tools(self) -> list[ToolDescriptor]:
        self.list_calls += 1
        return self.tools

    async def call_tool(self, name: str, arguments: dict) -> ToolResult:
        self.calls.append((name, arguments))
        queue = self.outcomes.get(name)
        if not queue:
            return ToolResult(content=[ToolContent(type="text", text=f"Error: unknown tool {name}")], is_error=True)
        outcome = queue.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def default_tools() -> list[ToolDescriptor]:
    return [
        ToolDescriptor(
            name="create_genesis_account",
            description="Create a Genesis account and token mint",
            input_schema={
                "type": "object",
                "properties": {"name": {"type": "string"}, "symbol": {"type": "string"}},
                "required": ["name", "symbol"],
            },
        ),
        ToolDescriptor(name="swap", description="Buy or sell on a bonding curve", input_schema={"type": "object"}),
    ]


def text_result(*texts: str, is_error: bool = False) -> ToolResult:
    return ToolResult(content=[ToolContent(type="text", text=t) for t in texts], is_error=is_error)


def transaction_result(**extra) -> ToolResult:
    return text_result(json.dumps({"transaction": TX_B64, **extra}))


def tool_call_message(tool_name: str, arguments: str, call_id: str = "call_1", text: str = "") -> AIMessage:
    """An assistant message asking for one meta-tool call."""
    return AIMessage(
        content=text,
        tool_calls=[
            {
                "name": "execute_mcp_tool",
                "args": {"tool_name": tool_name, "arguments": arguments},
                "id": call_id,
            }
        ],
    )


@pytest.fixture(autouse=True)
def offline_tokenizer(monkeypatch):
    """Keep tiktoken from downloading encodings; budgets fall back to chars/4."""
    monkeypatch.setattr(tiktoken, "encoding_for_model", Mock(side_effect=KeyError))


@pytest.fixture
def settings() -> Settings:
    return Settings(max_rounds=5, round_timeout_seconds=5, tool_timeout_seconds=5, max_message_tokens=1000)


@pytest.fixture
def make_service(settings):
    """Build a ChatService around a scripted model and a fake bridge."""

    def _make(responses, bridge: FakeToolBridge | None = None, **overrides):
        effective = Settings(**{**settings.__dict__, **overrides})
        bridge = bridge or FakeToolBridge()
        model = ScriptedChatModel(responses)
        orchestrator = ConversationOrchestrator(
            bridge,
            model=model,
            settings=effective,
            rate_limiter=ModelRateLimiter(requests_per_minute=1000),
            token_budget=TokenBudget(effective.max_message_tokens, effective.max_context_tokens),
        )
        return ChatService(orchestrator), model, bridge

    return _make
