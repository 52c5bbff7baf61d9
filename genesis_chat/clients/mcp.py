"""MCP client bridge to the external Genesis tool server."""

import asyncio
import json
from typing import Any

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import get_default_environment, stdio_client
from mcp.shared.exceptions import McpError

from genesis_chat.config import Settings, get_settings
from genesis_chat.models.tools import ToolDescriptor, ToolResult
from genesis_chat.utils.logging import get_logger

logger = get_logger(__name__)

# How long a closing session may take to exit before its task is cancelled
SHUTDOWN_GRACE_SECONDS = 5.0


class ToolBridgeError(Exception):
    """Raised when the tool server cannot be reached or a request fails in transport."""


class ToolBridge:
    """Single persistent MCP session to a locally spawned tool server.

    The session is opened lazily on first use and shared by all requests.
    It lives inside a dedicated background task so that the stdio transport
    is entered and exited from the same task; `aclose()` signals that task
    to shut the session and the child process down.

    A session whose transport fails is dropped, and the next request starts
    a new server. The failing request still raises `ToolBridgeError`.
    """

    def __init__(self, server_params: StdioServerParameters, timeout_seconds: float = 30.0):
        """Initialize the bridge without connecting.

        Args:
            server_params: How to spawn the tool server process
            timeout_seconds: Bound on the handshake and on tools/list; 0 disables it
        """
        self.server_params = server_params
        self.timeout_seconds = timeout_seconds
        self._session: ClientSession | None = None
        self._runner: asyncio.Task | None = None
        self._lock = asyncio.Lock()
        self._ready = asyncio.Event()
        self._closing = asyncio.Event()
        self._startup_error: BaseException | None = None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ToolBridge":
        """Create a bridge for the configured tool server command."""
        settings = settings or get_settings()
        params = StdioServerParameters(
            command=settings.mcp_server_command,
            args=settings.mcp_server_args,
            env={**get_default_environment(), "SOLANA_RPC_URL": settings.solana_rpc_url},
        )
        return cls(params, timeout_seconds=settings.bridge_timeout_seconds)

    @property
    def connected(self) -> bool:
        return self._session is not None

    async def connect(self) -> ClientSession:
        """Start the tool server and open the session, once.

        Concurrent callers wait on the same startup and receive the same session.

        Raises:
            ToolBridgeError: If the server could not be started or initialized in time
        """
        async with self._lock:
            if self._session is not None:
                return self._session

            if self._runner is not None:
                logger.warning("Tool server session ended, starting a new one")
                await self._stop_runner()

            self._ready.clear()
            self._closing.clear()
            self._startup_error = None

            logger.info(f"Starting tool server: {self.server_params.command} {' '.join(self.server_params.args)}")
            self._runner = asyncio.create_task(self._serve(), name="mcp-tool-bridge")

            ready = self._ready.wait()
            try:
                await asyncio.wait_for(ready, self.timeout_seconds) if self.timeout_seconds else await ready
            except TimeoutError:
                logger.error(f"Tool server handshake timed out after {self.timeout_seconds}s")
                await self._stop_runner()
                raise ToolBridgeError(
                    f"Tool server did not finish the handshake within {self.timeout_seconds:g} seconds"
                ) from None

            if self._session is None:
                error = self._startup_error
                if error is None:
                    raise ToolBridgeError("Tool server session closed during startup")
                raise ToolBridgeError(f"Failed to connect to tool server: {error}") from error

            return self._session

    async def _serve(self) -> None:
        try:
            async with stdio_client(self.server_params) as (read_stream, write_stream):
                async with ClientSession(read_stream, write_stream) as session:
                    await session.initialize()
                    self._session = session
                    logger.info("Tool server session initialized")
                    self._ready.set()
                    await self._closing.wait()
        except Exception as e:
            logger.error(f"Tool server session failed: {e}", exc_info=True)
            self._startup_error = e
        finally:
            self._session = None
            self._ready.set()

    async def _stop_runner(self) -> None:
        """Shut the session task down and wait for it, within a bounded time."""
        runner = self._runner
        self._session = None
        if runner is None:
            return

        self._closing.set()
        if not self._ready.is_set():
            # Still in the handshake, which never looks at the closing event
            runner.cancel()

        done, _ = await asyncio.wait({runner}, timeout=SHUTDOWN_GRACE_SECONDS)
        if not done:
            logger.warning("Tool server session did not close in time, cancelling it")
            runner.cancel()
            await asyncio.wait({runner}, timeout=SHUTDOWN_GRACE_SECONDS)

        self._runner = None

    async def _discard(self, session: ClientSession) -> None:
        """Drop a session after a transport failure unless it was already replaced."""
        async with self._lock:
            if self._session is not None and self._session is not session:
                return
            logger.warning("Dropping tool server session after a transport failure")
            await self._stop_runner()

    async def list_tools(self) -> list[ToolDescriptor]:
        """List the tools exposed by the server.

        Raises:
            ToolBridgeError: On connection or transport failure, or timeout
        """
        session = await self.connect()
        call = session.list_tools()
        try:
            result = await asyncio.wait_for(call, self.timeout_seconds) if self.timeout_seconds else await call
        except McpError as e:
            raise ToolBridgeError(f"tools/list failed: {e}") from e
        except TimeoutError as e:
            await self._discard(session)
            raise ToolBridgeError(f"tools/list timed out after {self.timeout_seconds:g} seconds") from e
        except Exception as e:
            await self._discard(session)
            raise ToolBridgeError(f"tools/list failed: {e}") from e

        tools = [ToolDescriptor.model_validate(tool.model_dump()) for tool in result.tools]
        logger.debug(f"Tool server exposes {len(tools)} tools: {[t.name for t in tools]}")
        return tools

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        """Invoke a tool by name.

        Args:
            name: Tool name as advertised by `list_tools`
            arguments: Decoded JSON arguments

        Returns:
            The tool result envelope, including tool-level errors (`is_error`)

        Raises:
            ToolBridgeError: On connection or transport failure
        """
        session = await self.connect()
        logger.info(f"Calling tool {name} with arguments: {json.dumps(arguments)[:200]}")
        try:
            result = await session.call_tool(name, arguments=arguments)
        except McpError as e:
            raise ToolBridgeError(f"tools/call {name} failed: {e}") from e
        except Exception as e:
            await self._discard(session)
            raise ToolBridgeError(f"tools/call {name} failed: {e}") from e

        tool_result = ToolResult.model_validate(result.model_dump())
        if tool_result.is_error:
            logger.warning(f"Tool {name} reported an error: {tool_result.texts()[:1]}")
        return tool_result

    async def aclose(self) -> None:
        """Close the session and stop the tool server process.

        Does not wait for a pending `connect()`; a handshake in progress is cancelled.
        """
        if self._runner is None:
            return

        await self._stop_runner()
        logger.info("Tool server bridge closed")


def describe_tools(tools: list[ToolDescriptor]) -> str:
    """Render the tool catalog for the system prompt."""
    return "\n\n".join(
        f"Tool: {tool.name}\nDescription: {tool.description or ''}\nSchema: {json.dumps(tool.input_schema)}\n"
        for tool in tools
    )
