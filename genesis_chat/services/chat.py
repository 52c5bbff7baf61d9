"""Chat service tying orchestration, extraction and classification together."""

from cuid2 import cuid_wrapper

from genesis_chat.clients.anthropic import TokenBudget
from genesis_chat.clients.mcp import ToolBridge
from genesis_chat.config import Settings, get_settings
from genesis_chat.graphs.conversation import ConversationOrchestrator
from genesis_chat.models.chat import ChatReply, ChatRequest
from genesis_chat.services.classification import classify_reply
from genesis_chat.services.extraction import extract_transaction
from genesis_chat.utils.logging import get_logger

logger = get_logger(__name__)

cuid = cuid_wrapper()


class ChatService:
    """Handles one chat request end to end. Holds no per-user state."""

    def __init__(self, orchestrator: ConversationOrchestrator, token_budget: TokenBudget | None = None):
        """Initialize chat service.

        Args:
            orchestrator: Tool-call loop runner
            token_budget: Message validation (defaults to the orchestrator's)
        """
        self.orchestrator = orchestrator
        self.token_budget = token_budget or orchestrator.token_budget

    @classmethod
    def from_bridge(cls, bridge: ToolBridge, settings: Settings | None = None) -> "ChatService":
        """Create a service whose chat model is built from settings on first use."""
        settings = settings or get_settings()
        return cls(ConversationOrchestrator(bridge, settings=settings))

    async def handle(self, request: ChatRequest) -> ChatReply:
        """Process a chat message and return the reply for the UI.

        Raises:
            MessageTooLongError: If the message exceeds its token limit
            Exception: Tool server or model failures outside the tool-call loop
        """
        request_id = cuid()
        logger.info(
            f"[{request_id}] Chat request: {request.message[:50]!r}, history: {len(request.history)} turns, "
            f"wallet: {'connected' if request.wallet_address else 'none'}"
        )

        self.token_budget.validate_message(request.message)

        result = await self.orchestrator.run(
            request.message,
            request.history,
            request.wallet_address,
            request_id=request_id,
        )
        extracted = extract_transaction(result)
        reply = classify_reply(extracted.content, extracted.transaction)

        logger.info(f"[{request_id}] Reply type: {reply.type}, tool: {reply.tool}, content: {reply.content[:50]!r}")
        return reply
