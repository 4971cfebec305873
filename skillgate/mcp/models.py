"""
MCP Models - Data structures for tool-server integration
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class MCPTransportType(str, Enum):
    """MCP transport types"""
    SSE = "sse"
    STREAMABLE_HTTP = "streamable_http"
    STDIO = "stdio"


class ConnectionState(str, Enum):
    """Externally observable state of one tool-server connection"""
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


@dataclass
class MCPServerConfig:
    """
    Configuration for connecting to an MCP tool-server

    Attributes:
        name: Unique name for this tool-server
        transport: Transport type (sse, streamable_http, stdio)
        url: Server URL (for sse/streamable_http)
        command: Command to start server (for stdio)
        args: Command arguments
        env: Environment variables (for stdio)
        headers: HTTP headers (for sse/streamable_http)
        timeout: Handshake timeout in seconds
        tool_prefix: Optional prefix the server's tools are exposed under
            (``prefix_toolName``)

    Example (SSE):
        config = MCPServerConfig(
            name="weather-server",
            transport=MCPTransportType.SSE,
            url="http://localhost:8082/sse"
        )
    """
    name: str
    transport: MCPTransportType = MCPTransportType.SSE
    url: Optional[str] = None
    command: Optional[str] = None
    args: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    timeout: float = 30.0
    tool_prefix: Optional[str] = None

    def __post_init__(self):
        self.transport = MCPTransportType(self.transport)
        if self.transport == MCPTransportType.STDIO and not self.command:
            raise ValueError(f"MCP server '{self.name}': stdio transport requires 'command'")
        if self.transport != MCPTransportType.STDIO and not self.url:
            raise ValueError(f"MCP server '{self.name}': {self.transport.value} transport requires 'url'")

    @property
    def endpoint(self) -> str:
        if self.transport == MCPTransportType.STDIO:
            return " ".join([self.command] + list(self.args))
        return self.url

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "MCPServerConfig":
        """Build from one entry of the ``mcp_servers`` config mapping."""
        data = dict(data or {})
        transport = data.pop("transport", None)
        if transport is None:
            transport = MCPTransportType.SSE if data.get("url") else MCPTransportType.STDIO
        known = {"url", "command", "args", "env", "headers", "timeout", "tool_prefix"}
        return cls(
            name=name,
            transport=transport,
            **{k: v for k, v in data.items() if k in known},
        )


@dataclass
class MCPTool:
    """
    A remote callable tool (tool handle) from an MCP tool-server

    Attributes:
        name: Tool name as defined by the server (the short name)
        description: Tool description
        input_schema: JSON Schema for tool parameters
        server_name: Name of the tool-server providing this tool
        prefix: Server-derived prefix of the qualified name, if any
    """
    name: str
    description: str
    input_schema: Dict[str, Any]
    server_name: str
    prefix: Optional[str] = None

    @property
    def qualified_name(self) -> str:
        """Name in the live catalog: ``{prefix}_{name}`` or the bare name"""
        return f"{self.prefix}_{self.name}" if self.prefix else self.name

    @property
    def short_name(self) -> str:
        return self.name

    def to_openai_schema(self) -> Dict[str, Any]:
        """Convert to OpenAI function calling format"""
        return {
            "type": "function",
            "function": {
                "name": self.qualified_name,
                "description": self.description,
                "parameters": self.input_schema or {"type": "object", "properties": {}},
            }
        }

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.qualified_name, "description": self.description}


@dataclass
class MCPCallResult:
    """Result from calling an MCP tool"""
    content: Any
    is_error: bool = False
    error_message: Optional[str] = None

    @property
    def text(self) -> str:
        """Text handed back to the LLM as the tool result"""
        if self.is_error:
            return f"Error: {self.error_message or self.content}"
        if self.content is None:
            return ""
        return self.content if isinstance(self.content, str) else str(self.content)
