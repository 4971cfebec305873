"""
MCP Client - Tool-server session on top of the official MCP SDK

Each MCPClient owns one SDK ``ClientSession``. The transport and session
context managers are entered and exited inside a dedicated background task,
because the SDK's anyio cancel scopes must be closed by the task that opened
them, while connect/disconnect may be called from any request.
"""

import asyncio
import logging
from contextlib import AsyncExitStack
from typing import Any, Awaitable, Callable, Dict, List, Optional

from mcp import ClientSession, StdioServerParameters
from mcp.client.sse import sse_client
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client

from .models import MCPCallResult, MCPServerConfig, MCPTool, MCPTransportType

logger = logging.getLogger(__name__)


class MCPClient:
    """
    MCP Client implementation

    Example:
        config = MCPServerConfig(name="weather-server", url="http://localhost:8082/sse")
        client = MCPClient(config)
        await client.connect()

        tools = await client.list_tools()
        result = await client.call_tool("getWeather", {"city": "北京"})

        await client.disconnect()
    """

    def __init__(self, config: MCPServerConfig):
        self.config = config
        self._session: Optional[ClientSession] = None
        self._runner: Optional[asyncio.Task] = None
        self._stop: Optional[asyncio.Event] = None

    @property
    def server_name(self) -> str:
        return self.config.name

    @property
    def is_connected(self) -> bool:
        return self._session is not None and self._runner is not None and not self._runner.done()

    async def connect(self) -> None:
        """Open the transport, run the initialize handshake and keep the session alive."""
        if self.is_connected:
            logger.warning(f"Already connected to {self.server_name}")
            return

        logger.info(f"Connecting to MCP server: {self.server_name} ({self.config.endpoint})")
        ready = asyncio.get_running_loop().create_future()
        self._stop = asyncio.Event()
        self._runner = asyncio.create_task(self._run(ready), name=f"mcp-session-{self.server_name}")

        try:
            await asyncio.wait_for(ready, timeout=self.config.timeout)
        except Exception as e:
            await self._stop_runner()
            logger.error(f"Failed to connect to MCP server {self.server_name}: {e}")
            raise ConnectionError(f"MCP connection failed: {e}") from e

        logger.info(f"Connected to MCP server: {self.server_name}")

    async def _run(self, ready: asyncio.Future) -> None:
        try:
            async with AsyncExitStack() as stack:
                read_stream, write_stream = await self._open_transport(stack)
                session = await stack.enter_async_context(ClientSession(read_stream, write_stream))
                await session.initialize()
                self._session = session
                if not ready.done():
                    ready.set_result(None)
                await self._stop.wait()
        except Exception as e:
            if not ready.done():
                ready.set_exception(e)
            else:
                logger.warning(f"MCP session for {self.server_name} ended: {e}")
        finally:
            self._session = None

    async def _open_transport(self, stack: AsyncExitStack):
        config = self.config
        if config.transport == MCPTransportType.SSE:
            return await stack.enter_async_context(
                sse_client(config.url, headers=config.headers or None)
            )
        if config.transport == MCPTransportType.STREAMABLE_HTTP:
            read_stream, write_stream, _ = await stack.enter_async_context(
                streamablehttp_client(config.url, headers=config.headers or None)
            )
            return read_stream, write_stream
        params = StdioServerParameters(
            command=config.command,
            args=list(config.args),
            env=dict(config.env) or None,
        )
        return await stack.enter_async_context(stdio_client(params))

    async def _stop_runner(self) -> None:
        runner = self._runner
        self._runner = None
        if runner is None:
            return
        if self._stop is not None:
            self._stop.set()
        try:
            await asyncio.wait_for(runner, timeout=5.0)
        except asyncio.TimeoutError:
            runner.cancel()
        except Exception as e:
            logger.debug(f"MCP session for {self.server_name} closed with error: {e}")

    async def disconnect(self) -> None:
        """Disconnect from the MCP server"""
        if self._runner is None:
            return
        logger.info(f"Disconnecting from MCP server: {self.server_name}")
        await self._stop_runner()
        self._session = None

    def _require_session(self) -> ClientSession:
        if not self.is_connected:
            raise ConnectionError(f"Not connected to MCP server {self.server_name}")
        return self._session

    async def list_tools(self) -> List[MCPTool]:
        """Fetch the live tool catalog (never cached: server-side tool sets can change)."""
        session = self._require_session()
        result = await session.list_tools()
        return [
            MCPTool(
                name=tool.name,
                description=tool.description or "",
                input_schema=tool.inputSchema or {"type": "object", "properties": {}},
                server_name=self.server_name,
                prefix=self.config.tool_prefix,
            )
            for tool in result.tools
        ]

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> MCPCallResult:
        """
        Call a tool on the MCP server

        Args:
            name: Tool name (without server prefix)
            arguments: Tool arguments
        """
        session = self._require_session()
        result = await session.call_tool(name, arguments or {})
        text = "\n".join(
            part.text for part in result.content if getattr(part, "text", None) is not None
        )
        if result.isError:
            return MCPCallResult(content=None, is_error=True, error_message=text or f"Tool {name} failed")
        return MCPCallResult(content=text)

    def __repr__(self) -> str:
        status = "connected" if self.is_connected else "disconnected"
        return f"MCPClient(server='{self.server_name}', status={status})"


class MockMCPClient:
    """
    In-process tool-server client for tests and demos

    Example:
        client = MockMCPClient(
            name="weather-server",
            tools=[
                MCPTool(
                    name="getWeather",
                    description="查询城市天气",
                    input_schema={"type": "object", "properties": {"city": {"type": "string"}}},
                    server_name="weather-server"
                )
            ],
            tool_handler=my_handler,
        )
        await client.connect()
    """

    def __init__(
        self,
        name: str = "mock-server",
        tools: Optional[List[MCPTool]] = None,
        tool_handler: Optional[Callable[[str, Dict[str, Any]], Awaitable[Any]]] = None,
    ):
        self.name = name
        self._tools = tools or []
        self._tool_handler = tool_handler
        self._connected = False

    @property
    def server_name(self) -> str:
        return self.name

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    async def list_tools(self) -> List[MCPTool]:
        if not self._connected:
            raise ConnectionError("Not connected to MCP server")
        return list(self._tools)

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> MCPCallResult:
        if not self._connected:
            raise ConnectionError("Not connected to MCP server")
        if not any(t.name == name for t in self._tools):
            return MCPCallResult(content=None, is_error=True, error_message=f"Unknown tool: {name}")
        if self._tool_handler:
            return MCPCallResult(content=await self._tool_handler(name, arguments))
        return MCPCallResult(content=f"Mock result for {name}")
