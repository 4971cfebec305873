"""
ToolConnectionManager - live sessions to every configured tool-server

Owns one ServerConnection per configured server, aggregates their tool
catalogs into a flat list of MCPTool handles and heals dead sessions with a
single reconnect-and-retry per catalog fetch.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..constants import TOOL_LIST_TIMEOUT_SECONDS
from ..errors import ToolServerUnavailableError
from .client import MCPClient
from .models import ConnectionState, MCPCallResult, MCPServerConfig, MCPTool
from .protocol import MCPClientProtocol

logger = logging.getLogger(__name__)


@dataclass
class ServerConnection:
    """One configured tool-server and its current session"""
    name: str
    config: MCPServerConfig
    state: ConnectionState = ConnectionState.DISCONNECTED
    client: Optional[MCPClientProtocol] = None

    @property
    def endpoint(self) -> str:
        return self.config.endpoint


class ToolConnectionManager:
    """
    Maintains sessions to N tool-servers and exposes the union of their tools.

    Servers are kept in configuration order; when two servers expose the same
    qualified tool name the first configured server wins. All connect,
    disconnect and reconnect mutations are serialized by one lock per manager.

    Example:
        manager = ToolConnectionManager([
            MCPServerConfig(name="weather-server", url="http://localhost:8082/sse"),
            MCPServerConfig(name="business-server", url="http://localhost:8081/sse"),
        ])
        await manager.connect_all()
        tools = await manager.get_all_tools()
    """

    def __init__(
        self,
        servers: List[MCPServerConfig],
        client_factory: Optional[Callable[[MCPServerConfig], MCPClientProtocol]] = None,
        list_timeout: float = TOOL_LIST_TIMEOUT_SECONDS,
    ):
        self._connections: Dict[str, ServerConnection] = {}
        for config in servers:
            if config.name in self._connections:
                raise ValueError(f"Duplicate tool-server name: {config.name}")
            self._connections[config.name] = ServerConnection(name=config.name, config=config)
        self._client_factory = client_factory or MCPClient
        self._list_timeout = list_timeout
        self._lock = asyncio.Lock()

    @property
    def server_names(self) -> List[str]:
        return list(self._connections.keys())

    def get_state(self, name: str) -> ConnectionState:
        connection = self._connections.get(name)
        return connection.state if connection else ConnectionState.DISCONNECTED

    # ── Lifecycle ──

    async def connect_all(self) -> Dict[str, bool]:
        """Connect every configured server; one server's failure never blocks the others."""
        results = {}
        for name, connection in self._connections.items():
            async with self._lock:
                await self._disconnect(connection)
                results[name] = await self._connect(connection)
        connected = sum(1 for ok in results.values() if ok)
        logger.info(f"[ToolConnectionManager] {connected}/{len(results)} tool-servers connected")
        return results

    async def reconnect(self, name: str) -> bool:
        """Close (best-effort) and reopen one named server's session."""
        connection = self._connections.get(name)
        if connection is None:
            logger.warning(f"[ToolConnectionManager] Unknown tool-server: {name}")
            return False
        async with self._lock:
            await self._disconnect(connection)
            return await self._connect(connection)

    async def reconnect_all(self) -> Dict[str, bool]:
        return {name: await self.reconnect(name) for name in self.server_names}

    async def shutdown(self) -> None:
        async with self._lock:
            for connection in self._connections.values():
                await self._disconnect(connection)
        logger.info("[ToolConnectionManager] All tool-server sessions closed")

    async def _connect(self, connection: ServerConnection) -> bool:
        client = self._client_factory(connection.config)
        try:
            await client.connect()
        except Exception as e:
            logger.warning(
                f"[ToolConnectionManager] Failed to connect {connection.name} "
                f"({connection.endpoint}): {e}"
            )
            connection.client = None
            connection.state = ConnectionState.DISCONNECTED
            return False
        connection.client = client
        connection.state = ConnectionState.CONNECTED
        logger.info(f"[ToolConnectionManager] Connected {connection.name} ({connection.endpoint})")
        return True

    async def _disconnect(self, connection: ServerConnection) -> None:
        client = connection.client
        connection.client = None
        connection.state = ConnectionState.DISCONNECTED
        if client is None:
            return
        try:
            await client.disconnect()
        except Exception as e:
            logger.debug(f"[ToolConnectionManager] Ignoring close error for {connection.name}: {e}")

    # ── Catalog ──

    async def get_all_tools(self) -> List[MCPTool]:
        """
        Aggregate the live tool catalogs of all servers.

        A server whose fetch fails or times out is reconnected once and
        fetched again; if it still fails its tools are left out.

        Raises:
            ToolServerUnavailableError: If no server contributes any tool
        """
        tools: List[MCPTool] = []
        seen = set()
        for name, connection in self._connections.items():
            server_tools = await self._fetch_tools(connection)
            if server_tools is None:
                logger.warning(f"[ToolConnectionManager] Reconnecting {name} and retrying tool fetch")
                if await self.reconnect(name):
                    server_tools = await self._fetch_tools(connection)
            if server_tools is None:
                logger.warning(f"[ToolConnectionManager] {name} unavailable, its tools are omitted")
                continue

            for tool in server_tools:
                if tool.qualified_name in seen:
                    logger.warning(
                        f"[ToolConnectionManager] Duplicate tool {tool.qualified_name} from {name} ignored"
                    )
                    continue
                seen.add(tool.qualified_name)
                tools.append(tool)

        if not tools:
            raise ToolServerUnavailableError(self.server_names)
        return tools

    async def _fetch_tools(self, connection: ServerConnection) -> Optional[List[MCPTool]]:
        client = connection.client
        if client is None or not client.is_connected:
            return None
        try:
            return await asyncio.wait_for(client.list_tools(), timeout=self._list_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"[ToolConnectionManager] Tool fetch from {connection.name} timed out "
                f"after {self._list_timeout}s"
            )
        except Exception as e:
            logger.warning(f"[ToolConnectionManager] Tool fetch from {connection.name} failed: {e}")
        return None

    # ── Invocation ──

    async def call_tool(self, tool: MCPTool, arguments: Dict[str, Any]) -> MCPCallResult:
        """Invoke a tool handle on the server that owns it."""
        connection = self._connections.get(tool.server_name)
        client = connection.client if connection else None
        if client is None:
            return MCPCallResult(
                content=None,
                is_error=True,
                error_message=f"Tool-server '{tool.server_name}' is not connected",
            )
        try:
            return await client.call_tool(tool.short_name, arguments)
        except Exception as e:
            logger.warning(f"[ToolConnectionManager] Tool {tool.qualified_name} failed: {e}")
            return MCPCallResult(content=None, is_error=True, error_message=str(e))
