"""Main FastAPI application."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from genesis_chat import __version__
from genesis_chat.api.endpoints import error_response, router
from genesis_chat.clients.mcp import ToolBridge
from genesis_chat.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Own the tool server bridge for the lifetime of the process."""
    setup_logging()
    app.state.tool_bridge = ToolBridge.from_settings()
    app.state.chat_service = None
    try:
        yield
    finally:
        await app.state.tool_bridge.aclose()


app = FastAPI(
    title="Genesis Chat",
    description=(
        "Conversational token creation and swaps on the Metaplex Genesis protocol. "
        "Tool calls are forwarded to an MCP tool server and returned as signable transactions."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Chat",
            "description": "Send a chat message; replies may carry a transaction to sign.",
        },
        {
            "name": "Health",
            "description": "Service health monitoring and status checks.",
        },
    ],
)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies as 400 with the validation details."""
    logger.warning(f"Invalid request to {request.url.path}: {exc.errors()}")
    return error_response(400, "Invalid request", str(exc.errors()))


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # The chat UI is served from a different origin in development
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("genesis_chat.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
