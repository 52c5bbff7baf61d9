"""Tests for the MCP tool bridge."""

import asyncio
import shutil
from contextlib import asynccontextmanager

import pytest
from mcp import types
from mcp.shared.exceptions import McpError

from genesis_chat.clients import mcp as bridge_module
from genesis_chat.clients.mcp import ToolBridge, ToolBridgeError
from genesis_chat.config import Settings


def tool_list() -> types.ListToolsResult:
    return types.ListToolsResult(
        tools=[
            types.Tool(
                name="create_genesis_account",
                description="Create a Genesis account",
                inputSchema={"type": "object", "required": ["name"]},
            ),
            types.Tool(name="swap", inputSchema={"type": "object"}),
        ]
    )


class FakeSession:
    """Stands in for an initialized MCP client session."""

    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls = []

    async def list_tools(self):
        if self.error:
            raise self.error
        return tool_list()

    async def call_tool(self, name, arguments=None):
        self.calls.append((name, arguments))
        if self.error:
            raise self.error
        return types.CallToolResult(
            content=[types.TextContent(type="text", text='{"transaction": "AQID"}')],
            isError=False,
        )


class FakeServer:
    """Replaces the stdio transport and client session for a spawned server.

    Counts how often the server is started and stopped. `handshake` gates
    `initialize()`; `hang_list` makes tools/list never answer; `broken_lists`
    is the number of tools/list calls that fail in transport.
    """

    def __init__(self, broken_lists: int = 0, hang_list: bool = False):
        self.starts = 0
        self.stops = 0
        self.handshake = asyncio.Event()
        self.handshake.set()
        self.broken_lists = broken_lists
        self.hang_list = hang_list

    @asynccontextmanager
    async def stdio_client(self, server_params):
        self.starts += 1
        try:
            yield object(), object()
        finally:
            self.stops += 1

    def session(self, read_stream, write_stream):
        return FakeClientSession(self)


class FakeClientSession:
    def __init__(self, server: FakeServer):
        self.server = server

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def initialize(self):
        await self.server.handshake.wait()

    async def list_tools(self):
        await asyncio.sleep(0)
        if self.server.hang_list:
            await asyncio.Event().wait()
        if self.server.broken_lists:
            self.server.broken_lists -= 1
            raise ConnectionResetError("server exited")
        return tool_list()


@pytest.fixture
def bridge():
    return ToolBridge.from_settings(
        Settings(mcp_server_command="node", mcp_server_args=["server.js"], solana_rpc_url="http://rpc.test")
    )


@pytest.fixture
def fake_server(monkeypatch):
    """Route the bridge's transport to an in-process fake server."""
    server = FakeServer()
    monkeypatch.setattr(bridge_module, "stdio_client", server.stdio_client)
    monkeypatch.setattr(bridge_module, "ClientSession", server.session)
    return server


class TestToolBridgeSetup:
    """Tests for building the bridge from settings."""

    def test_server_params(self, bridge):
        """Test the spawn command and the RPC URL passed to the server."""
        assert bridge.server_params.command == "node"
        assert bridge.server_params.args == ["server.js"]
        assert bridge.server_params.env["SOLANA_RPC_URL"] == "http://rpc.test"
        assert bridge.timeout_seconds == 30.0
        assert bridge.connected is False

    async def test_aclose_without_session(self, bridge):
        """Test that closing an unused bridge is a no-op."""
        await bridge.aclose()
        assert bridge.connected is False


class TestToolBridgeRequests:
    """Tests for requests over an established session."""

    async def test_list_tools(self, bridge):
        """Test conversion of the server's tool list."""
        bridge._session = FakeSession()

        tools = await bridge.list_tools()

        assert [t.name for t in tools] == ["create_genesis_account", "swap"]
        assert tools[0].input_schema == {"type": "object", "required": ["name"]}
        assert tools[1].description is None

    async def test_call_tool(self, bridge):
        """Test conversion of a tool result and argument pass-through."""
        session = FakeSession()
        bridge._session = session

        result = await bridge.call_tool("swap", {"amount": "1"})

        assert session.calls == [("swap", {"amount": "1"})]
        assert result.texts() == ['{"transaction": "AQID"}']
        assert result.is_error is False

    async def test_transport_errors_wrapped(self, bridge):
        """Test that session failures surface as ToolBridgeError and drop the session."""
        bridge._session = FakeSession(error=ConnectionResetError("pipe closed"))

        with pytest.raises(ToolBridgeError, match="pipe closed"):
            await bridge.list_tools()
        assert bridge.connected is False

        bridge._session = FakeSession(error=ConnectionResetError("pipe closed"))
        with pytest.raises(ToolBridgeError, match="tools/call swap failed"):
            await bridge.call_tool("swap", {})
        assert bridge.connected is False

    async def test_protocol_errors_keep_session(self, bridge):
        """Test that an error response from the server does not drop the session."""
        bridge._session = FakeSession(error=McpError(types.ErrorData(code=-32602, message="Unknown tool: nope")))

        with pytest.raises(ToolBridgeError, match="Unknown tool"):
            await bridge.call_tool("nope", {})
        assert bridge.connected is True


class TestToolBridgeLifecycle:
    """Tests for starting, restarting and closing the session."""

    async def test_concurrent_callers_share_one_start(self, bridge, fake_server):
        """Test that simultaneous first requests start the server once."""
        first, second = await asyncio.gather(bridge.list_tools(), bridge.list_tools())

        assert fake_server.starts == 1
        assert [t.name for t in first] == [t.name for t in second] == ["create_genesis_account", "swap"]
        assert bridge.connected is True
        await bridge.aclose()

    async def test_failed_session_restarts_on_next_call(self, bridge, fake_server):
        """Test that a transport failure drops the session and the next call starts a new server."""
        fake_server.broken_lists = 1

        with pytest.raises(ToolBridgeError, match="server exited"):
            await bridge.list_tools()
        assert fake_server.stops == 1
        assert bridge.connected is False

        tools = await bridge.list_tools()

        assert len(tools) == 2
        assert fake_server.starts == 2
        await bridge.aclose()

    async def test_aclose_ends_runner(self, bridge, fake_server):
        """Test that closing stops the background session task and the server."""
        await bridge.connect()
        runner = bridge._runner

        await bridge.aclose()

        assert runner.done()
        assert fake_server.stops == 1
        assert bridge.connected is False
        assert bridge._runner is None

    async def test_handshake_timeout(self, bridge, fake_server):
        """Test that a server that never finishes the handshake is abandoned."""
        fake_server.handshake.clear()
        bridge.timeout_seconds = 0.05

        with pytest.raises(ToolBridgeError, match="handshake"):
            await asyncio.wait_for(bridge.list_tools(), timeout=5)

        assert fake_server.stops == 1
        assert bridge._runner is None

    async def test_requests_after_handshake_timeout_are_not_blocked(self, bridge, fake_server):
        """Test that a timed-out startup releases the bridge for the next request."""
        fake_server.handshake.clear()
        bridge.timeout_seconds = 0.05
        with pytest.raises(ToolBridgeError):
            await bridge.connect()

        fake_server.handshake.set()
        tools = await asyncio.wait_for(bridge.list_tools(), timeout=5)

        assert len(tools) == 2
        assert fake_server.starts == 2
        await bridge.aclose()

    async def test_list_tools_timeout(self, bridge, fake_server):
        """Test that an unanswered tools/list raises and drops the session."""
        fake_server.hang_list = True
        bridge.timeout_seconds = 0.05

        with pytest.raises(ToolBridgeError, match="timed out"):
            await asyncio.wait_for(bridge.list_tools(), timeout=5)
        assert bridge.connected is False
        assert fake_server.stops == 1

    async def test_aclose_during_handshake(self, bridge, fake_server):
        """Test that shutdown does not wait for a stuck handshake."""
        fake_server.handshake.clear()
        bridge.timeout_seconds = 0
        connecting = asyncio.create_task(bridge.connect())
        await asyncio.sleep(0.01)

        await asyncio.wait_for(bridge.aclose(), timeout=5)

        with pytest.raises(ToolBridgeError, match="closed during startup"):
            await connecting
        assert fake_server.stops == 1

    async def test_failed_startup(self):
        """Test that a server that cannot be spawned raises ToolBridgeError."""
        bridge = ToolBridge.from_settings(
            Settings(mcp_server_command="/nonexistent/genesis-tool-server", mcp_server_args=[])
        )

        with pytest.raises(ToolBridgeError, match="Failed to connect"):
            await bridge.connect()
        assert bridge.connected is False
        await bridge.aclose()

    @pytest.mark.skipif(shutil.which("sleep") is None, reason="needs a sleep command")
    async def test_silent_server_times_out(self):
        """Test a real child process that never answers the handshake."""
        bridge = ToolBridge.from_settings(
            Settings(mcp_server_command="sleep", mcp_server_args=["30"], bridge_timeout_seconds=0.5)
        )

        with pytest.raises(ToolBridgeError, match="handshake"):
            await asyncio.wait_for(bridge.list_tools(), timeout=15)
        assert bridge.connected is False

        await asyncio.wait_for(bridge.aclose(), timeout=5)
