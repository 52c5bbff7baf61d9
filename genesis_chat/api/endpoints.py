"""API endpoints for the Genesis chat service."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from genesis_chat import __version__
from genesis_chat.clients.anthropic import MessageTooLongError
from genesis_chat.clients.mcp import ToolBridge
from genesis_chat.models.chat import ChatReply, ChatRequest, ErrorResponse, HealthResponse
from genesis_chat.services.chat import ChatService
from genesis_chat.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


def get_tool_bridge(request: Request) -> ToolBridge:
    """The bridge owned by the application lifespan."""
    return request.app.state.tool_bridge


def get_chat_service(request: Request, bridge: ToolBridge = Depends(get_tool_bridge)) -> ChatService:
    """Get or create the chat service for this application."""
    service = getattr(request.app.state, "chat_service", None)
    if service is None:
        service = ChatService.from_bridge(bridge)
        request.app.state.chat_service = service
    return service


def error_response(status_code: int, error: str, details: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=error, details=details).model_dump())


@router.post(
    "/api/chat",
    response_model=ChatReply,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    tags=["Chat"],
)
async def handle_chat(request: ChatRequest, service: ChatService = Depends(get_chat_service)):
    """Run a chat message through the model and the tool server.

    Returns a `text` reply, or a `tool_result` reply carrying a transaction
    for the wallet to sign.
    """
    try:
        return await service.handle(request)
    except MessageTooLongError as e:
        logger.warning(f"Message validation error: {e}")
        return error_response(400, "Invalid request", str(e))
    except Exception as e:
        logger.error(f"Chat processing error: {e}", exc_info=True)
        return error_response(500, "Internal Server Error", str(e))


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=__version__,
    )
