"""Chat graph construction and the tool-call orchestrator."""

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage
from langchain_core.tools import BaseTool
from langgraph.graph import END, StateGraph
from langgraph.prebuilt import ToolNode

from genesis_chat.clients.anthropic import ModelRateLimiter, TokenBudget, create_chat_model, get_rate_limiter
from genesis_chat.clients.mcp import ToolBridge
from genesis_chat.config import Settings, get_settings
from genesis_chat.graphs.edges import route_agent_output, route_tool_output
from genesis_chat.graphs.nodes import create_agent_node, message_text
from genesis_chat.graphs.state import ChatGraphState
from genesis_chat.models.chat import ChatTurn
from genesis_chat.models.llm import AgentStep, LLMUsage, OrchestrationResult, ToolCallRecord
from genesis_chat.services.prompts import build_system_prompt
from genesis_chat.tools import create_execute_mcp_tool
from genesis_chat.utils.logging import get_logger

logger = get_logger(__name__)


def create_conversation_graph(
    model: BaseChatModel,
    tools: list[BaseTool],
    rate_limiter: ModelRateLimiter | None = None,
    round_timeout_seconds: float = 0,
):
    """Create the agent/tools loop.

    Args:
        model: Chat model supporting tool binding
        tools: Tools the model may call
        rate_limiter: Optional limiter applied before each model call
        round_timeout_seconds: Wall-clock bound per model call; 0 disables it

    Returns:
        Compiled LangGraph workflow
    """
    workflow = StateGraph(ChatGraphState)

    workflow.add_node("agent", create_agent_node(model, tools, rate_limiter, round_timeout_seconds))
    workflow.add_node("tools", ToolNode(tools))

    workflow.set_entry_point("agent")

    workflow.add_conditional_edges(
        "agent",
        route_agent_output,
        {
            "tools": "tools",
            "end": END,
        },
    )

    workflow.add_conditional_edges(
        "tools",
        route_tool_output,
        {
            "agent": "agent",
            "end": END,
        },
    )

    return workflow.compile()


def build_messages(system_prompt: str, history: list[ChatTurn], message: str) -> list[BaseMessage]:
    """Build the model input: system prompt, prior turns oldest first, then the new message."""
    messages: list[BaseMessage] = [SystemMessage(content=system_prompt)]
    for turn in history:
        if turn.role == "user":
            messages.append(HumanMessage(content=turn.content))
        else:
            messages.append(AIMessage(content=turn.content))
    messages.append(HumanMessage(content=message))
    return messages


def collect_steps(messages: list[BaseMessage]) -> list[AgentStep]:
    """Rebuild the step history from the messages produced by a graph run.

    Each model response is one step; its tool calls are paired with the tool
    messages that answered them.
    """
    outputs = {m.tool_call_id: m.content for m in messages if isinstance(m, ToolMessage)}

    steps = []
    for message in messages:
        if not isinstance(message, AIMessage):
            continue
        records = [
            ToolCallRecord(
                id=call["id"],
                tool_name=call["name"],
                arguments=call["args"],
                output=outputs.get(call["id"]),
            )
            for call in message.tool_calls
        ]
        steps.append(AgentStep(text=message_text(message), tool_calls=records))
    return steps


def sum_usage(messages: list[BaseMessage]) -> LLMUsage:
    usage = LLMUsage()
    for message in messages:
        metadata = getattr(message, "usage_metadata", None)
        if metadata:
            usage.input_tokens += metadata.get("input_tokens", 0)
            usage.output_tokens += metadata.get("output_tokens", 0)
    return usage


class ConversationOrchestrator:
    """Runs one chat request through the model and the remote tool server."""

    def __init__(
        self,
        bridge: ToolBridge,
        model: BaseChatModel | None = None,
        settings: Settings | None = None,
        rate_limiter: ModelRateLimiter | None = None,
        token_budget: TokenBudget | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            bridge: Connection to the tool server
            model: Chat model (created from settings on first use when omitted)
            settings: Runtime settings
            rate_limiter: Model rate limiter (defaults to the process-wide one)
            token_budget: Token estimation for history trimming
        """
        self.bridge = bridge
        self.settings = settings or get_settings()
        self.rate_limiter = rate_limiter or get_rate_limiter()
        self.token_budget = token_budget or TokenBudget.from_settings(self.settings)
        self._model = model
        self._graph = None

    @property
    def graph(self):
        """The compiled graph, built on first use."""
        if self._graph is None:
            if self._model is None:
                self._model = create_chat_model(self.settings)
            meta_tool = create_execute_mcp_tool(self.bridge, self.settings.tool_timeout_seconds)
            self._graph = create_conversation_graph(
                self._model,
                [meta_tool],
                self.rate_limiter,
                self.settings.round_timeout_seconds,
            )
        return self._graph

    async def run(
        self,
        message: str,
        history: list[ChatTurn] | None = None,
        wallet_address: str | None = None,
        request_id: str | None = None,
    ) -> OrchestrationResult:
        """Run the tool-call loop for one user message.

        Args:
            message: The user's new message
            history: Prior turns, oldest first
            wallet_address: Connected wallet, if any
            request_id: Correlation id for logs

        Returns:
            Final text of the last model step and the executed steps

        Raises:
            ToolBridgeError: If the tool catalog cannot be fetched
            Exception: Any model-provider failure or timeout
        """
        tools = await self.bridge.list_tools()
        system_prompt = build_system_prompt(tools, wallet_address)

        history = self.token_budget.truncate_history(history or [], system_prompt, message)
        messages = build_messages(system_prompt, history, message)

        max_rounds = self.settings.max_rounds
        config = {"recursion_limit": max_rounds * 2 + 2}

        logger.info(f"[{request_id}] Running tool-call loop with {len(messages)} messages, max_rounds: {max_rounds}")
        result = await self.graph.ainvoke({"messages": messages, "rounds": 0, "max_rounds": max_rounds}, config)

        new_messages = list(result["messages"])[len(messages) :]
        steps = collect_steps(new_messages)
        text = steps[-1].text if steps else ""
        usage = sum_usage(new_messages)

        logger.info(
            f"[{request_id}] Loop finished after {result['rounds']} rounds, "
            f"{sum(len(s.tool_calls) for s in steps)} tool calls, tokens in/out: "
            f"{usage.input_tokens}/{usage.output_tokens}"
        )

        return OrchestrationResult(text=text, steps=steps, rounds=result["rounds"], usage=usage)
