"""
MCP Protocol - Abstract interface for tool-server clients

ToolConnectionManager only depends on this protocol, so the SDK-backed
MCPClient can be swapped for any other implementation (MockMCPClient in tests).
"""

from typing import Any, Dict, List, Protocol, runtime_checkable

from .models import MCPCallResult, MCPTool


@runtime_checkable
class MCPClientProtocol(Protocol):
    """Abstract interface for MCP clients"""

    @property
    def server_name(self) -> str:
        """Get the server name"""
        ...

    @property
    def is_connected(self) -> bool:
        """Check if connected to server"""
        ...

    async def connect(self) -> None:
        """
        Connect to the tool-server and perform the protocol handshake

        Raises:
            ConnectionError: If connection fails
        """
        ...

    async def disconnect(self) -> None:
        """Close the session"""
        ...

    async def list_tools(self) -> List[MCPTool]:
        """Fetch the server's current tool catalog"""
        ...

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> MCPCallResult:
        """
        Call a tool on the tool-server

        Args:
            name: Tool name (without prefix)
            arguments: Tool arguments
        """
        ...
