"""
SkillGate MCP - tool-server connections

Usage:
    from skillgate.mcp import MCPServerConfig, ToolConnectionManager

    manager = ToolConnectionManager([
        MCPServerConfig(name="weather-server", url="http://localhost:8082/sse"),
    ])
    await manager.connect_all()
    tools = await manager.get_all_tools()
"""

from .models import ConnectionState, MCPCallResult, MCPServerConfig, MCPTool, MCPTransportType
from .protocol import MCPClientProtocol
from .client import MCPClient, MockMCPClient
from .manager import ServerConnection, ToolConnectionManager

__all__ = [
    "ConnectionState",
    "MCPCallResult",
    "MCPServerConfig",
    "MCPTool",
    "MCPTransportType",
    "MCPClientProtocol",
    "MCPClient",
    "MockMCPClient",
    "ServerConnection",
    "ToolConnectionManager",
]
