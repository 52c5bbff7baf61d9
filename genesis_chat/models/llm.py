"""Orchestration result types (provider-agnostic)."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ToolCallRecord:
    """A tool call made by the model and the raw output it received."""

    id: str
    tool_name: str
    arguments: dict[str, Any]
    output: Any = None


@dataclass
class AgentStep:
    """One model invocation and the tool calls it triggered."""

    text: str = ""
    tool_calls: list[ToolCallRecord] = field(default_factory=list)


@dataclass
class LLMUsage:
    """Token usage accumulated across all rounds of a request."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class OrchestrationResult:
    """Result from running the tool-call loop for one chat request."""

    text: str
    steps: list[AgentStep]
    rounds: int
    usage: LLMUsage = field(default_factory=LLMUsage)

    @property
    def had_tool_calls(self) -> bool:
        return any(step.tool_calls for step in self.steps)
