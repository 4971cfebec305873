"""Tests for skillgate.mcp.manager - ToolConnectionManager

Tests cover:
- connect_all() with partial failures
- get_all_tools() aggregation, dedupe and the reconnect-and-retry path
- reconnect() for known and unknown servers
- call_tool() routing to the owning server
"""

import asyncio
from typing import Dict, List

import pytest

from skillgate.errors import ToolServerUnavailableError
from skillgate.mcp import (
    ConnectionState,
    MCPServerConfig,
    MCPTool,
    MockMCPClient,
    ToolConnectionManager,
)


def _tool(name: str, server: str, prefix: str = None) -> MCPTool:
    return MCPTool(
        name=name,
        description=f"{name} tool",
        input_schema={"type": "object", "properties": {}},
        server_name=server,
        prefix=prefix,
    )


class RefusingClient(MockMCPClient):
    """Client whose handshake always fails."""

    async def connect(self) -> None:
        raise ConnectionError("connection refused")


class FlakyListClient(MockMCPClient):
    """Client whose first catalog fetch fails, as a dead session would."""

    failures_left = 1

    async def list_tools(self) -> List[MCPTool]:
        if FlakyListClient.failures_left > 0:
            FlakyListClient.failures_left -= 1
            raise ConnectionError("session closed")
        return await super().list_tools()


class SlowListClient(MockMCPClient):
    async def list_tools(self) -> List[MCPTool]:
        await asyncio.sleep(1.0)
        return await super().list_tools()


def _factory(clients: Dict[str, type], tools: Dict[str, List[MCPTool]]):
    """Build a client factory that creates a fresh client per connect attempt."""
    created = []

    def factory(config: MCPServerConfig):
        client_cls = clients.get(config.name, MockMCPClient)
        client = client_cls(name=config.name, tools=tools.get(config.name, []))
        created.append(client)
        return client

    factory.created = created
    return factory


def _servers(*names: str) -> List[MCPServerConfig]:
    return [MCPServerConfig(name=n, url=f"http://localhost/{n}/sse") for n in names]


WEATHER_TOOLS = [_tool("getWeather", "weather-server"), _tool("getForecast", "weather-server")]
BUSINESS_TOOLS = [_tool("queryOrder", "business-server"), _tool("trackLogistics", "business-server")]


# ── Tests: MCPServerConfig ──


class TestServerConfig:
    def test_from_dict_defaults_to_sse_with_url(self):
        config = MCPServerConfig.from_dict("w", {"url": "http://x/sse", "unknown": 1})
        assert config.transport.value == "sse"
        assert config.endpoint == "http://x/sse"

    def test_from_dict_stdio_without_url(self):
        config = MCPServerConfig.from_dict("s", {"command": "node", "args": ["server.js"]})
        assert config.transport.value == "stdio"
        assert config.endpoint == "node server.js"

    def test_url_required_for_sse(self):
        with pytest.raises(ValueError, match="requires 'url'"):
            MCPServerConfig(name="w", transport="sse")

    def test_qualified_name_uses_prefix(self):
        assert _tool("getWeather", "w", prefix="weather").qualified_name == "weather_getWeather"
        assert _tool("getWeather", "w").qualified_name == "getWeather"


# ── Tests: connect_all ──


class TestConnectAll:
    @pytest.mark.asyncio
    async def test_all_servers_connect(self):
        manager = ToolConnectionManager(
            _servers("weather-server", "business-server"),
            client_factory=_factory({}, {}),
        )
        results = await manager.connect_all()
        assert results == {"weather-server": True, "business-server": True}
        assert manager.get_state("weather-server") == ConnectionState.CONNECTED

    @pytest.mark.asyncio
    async def test_failure_does_not_block_other_servers(self):
        manager = ToolConnectionManager(
            _servers("weather-server", "business-server"),
            client_factory=_factory({"weather-server": RefusingClient}, {}),
        )
        results = await manager.connect_all()
        assert results == {"weather-server": False, "business-server": True}
        assert manager.get_state("weather-server") == ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_second_connect_all_closes_previous_sessions(self):
        factory = _factory({}, {})
        manager = ToolConnectionManager(_servers("weather-server"), client_factory=factory)
        await manager.connect_all()
        await manager.connect_all()

        first, second = factory.created
        assert not first.is_connected
        assert second.is_connected
        assert manager.get_state("weather-server") == ConnectionState.CONNECTED

    def test_duplicate_server_names_rejected(self):
        with pytest.raises(ValueError, match="Duplicate"):
            ToolConnectionManager(_servers("a", "a"))

    def test_unknown_server_state_is_disconnected(self):
        manager = ToolConnectionManager(_servers("a"))
        assert manager.get_state("nope") == ConnectionState.DISCONNECTED


# ── Tests: get_all_tools ──


class TestGetAllTools:
    @pytest.mark.asyncio
    async def test_union_in_config_order(self):
        manager = ToolConnectionManager(
            _servers("business-server", "weather-server"),
            client_factory=_factory(
                {}, {"weather-server": WEATHER_TOOLS, "business-server": BUSINESS_TOOLS}
            ),
        )
        await manager.connect_all()
        tools = await manager.get_all_tools()
        assert [t.qualified_name for t in tools] == [
            "queryOrder", "trackLogistics", "getWeather", "getForecast",
        ]

    @pytest.mark.asyncio
    async def test_duplicate_qualified_name_first_server_wins(self):
        manager = ToolConnectionManager(
            _servers("a", "b"),
            client_factory=_factory({}, {"a": [_tool("search", "a")], "b": [_tool("search", "b")]}),
        )
        await manager.connect_all()
        tools = await manager.get_all_tools()
        assert len(tools) == 1
        assert tools[0].server_name == "a"

    @pytest.mark.asyncio
    async def test_unavailable_server_is_omitted(self):
        manager = ToolConnectionManager(
            _servers("weather-server", "business-server"),
            client_factory=_factory(
                {"weather-server": RefusingClient},
                {"weather-server": WEATHER_TOOLS, "business-server": BUSINESS_TOOLS},
            ),
        )
        await manager.connect_all()
        tools = await manager.get_all_tools()
        assert {t.server_name for t in tools} == {"business-server"}

    @pytest.mark.asyncio
    async def test_failed_fetch_reconnects_and_retries_once(self):
        FlakyListClient.failures_left = 1
        factory = _factory({"weather-server": FlakyListClient}, {"weather-server": WEATHER_TOOLS})
        manager = ToolConnectionManager(_servers("weather-server"), client_factory=factory)
        await manager.connect_all()

        tools = await manager.get_all_tools()

        assert [t.name for t in tools] == ["getWeather", "getForecast"]
        # initial connect + one reconnect
        assert len(factory.created) == 2
        assert factory.created[0].is_connected is False

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self):
        manager = ToolConnectionManager(
            _servers("weather-server", "business-server"),
            client_factory=_factory(
                {"weather-server": SlowListClient},
                {"weather-server": WEATHER_TOOLS, "business-server": BUSINESS_TOOLS},
            ),
            list_timeout=0.01,
        )
        await manager.connect_all()
        tools = await manager.get_all_tools()
        assert {t.server_name for t in tools} == {"business-server"}

    @pytest.mark.asyncio
    async def test_no_tools_raises(self):
        manager = ToolConnectionManager(
            _servers("weather-server"),
            client_factory=_factory({"weather-server": RefusingClient}, {}),
        )
        await manager.connect_all()
        with pytest.raises(ToolServerUnavailableError) as exc_info:
            await manager.get_all_tools()
        assert exc_info.value.servers == ["weather-server"]

    @pytest.mark.asyncio
    async def test_catalog_is_live_not_cached(self):
        tools = {"weather-server": list(WEATHER_TOOLS)}
        manager = ToolConnectionManager(_servers("weather-server"), client_factory=_factory({}, tools))
        await manager.connect_all()
        assert len(await manager.get_all_tools()) == 2

        manager._connections["weather-server"].client._tools.append(_tool("getAlerts", "weather-server"))
        assert len(await manager.get_all_tools()) == 3


# ── Tests: reconnect / shutdown ──


class TestReconnect:
    @pytest.mark.asyncio
    async def test_reconnect_known_server(self):
        factory = _factory({}, {})
        manager = ToolConnectionManager(_servers("weather-server"), client_factory=factory)
        await manager.connect_all()
        assert await manager.reconnect("weather-server") is True
        assert len(factory.created) == 2
        assert factory.created[0].is_connected is False
        assert factory.created[1].is_connected is True

    @pytest.mark.asyncio
    async def test_reconnect_unknown_server(self):
        manager = ToolConnectionManager(_servers("weather-server"), client_factory=_factory({}, {}))
        assert await manager.reconnect("nope") is False

    @pytest.mark.asyncio
    async def test_reconnect_all(self):
        manager = ToolConnectionManager(
            _servers("a", "b"),
            client_factory=_factory({"b": RefusingClient}, {}),
        )
        assert await manager.reconnect_all() == {"a": True, "b": False}

    @pytest.mark.asyncio
    async def test_shutdown_disconnects_everything(self):
        factory = _factory({}, {})
        manager = ToolConnectionManager(_servers("a", "b"), client_factory=factory)
        await manager.connect_all()
        await manager.shutdown()
        assert all(not c.is_connected for c in factory.created)
        assert manager.get_state("a") == ConnectionState.DISCONNECTED


# ── Tests: call_tool ──


class TestCallTool:
    @pytest.mark.asyncio
    async def test_routes_short_name_to_owner(self):
        calls = []

        async def handler(name, arguments):
            calls.append((name, arguments))
            return "晴 18°C"

        def factory(config):
            return MockMCPClient(
                name=config.name,
                tools=[_tool("getWeather", config.name, prefix="weather")],
                tool_handler=handler,
            )

        manager = ToolConnectionManager(_servers("weather-server"), client_factory=factory)
        await manager.connect_all()
        tool = (await manager.get_all_tools())[0]

        result = await manager.call_tool(tool, {"city": "北京"})

        assert result.text == "晴 18°C"
        assert calls == [("getWeather", {"city": "北京"})]

    @pytest.mark.asyncio
    async def test_disconnected_owner_returns_error_result(self):
        manager = ToolConnectionManager(
            _servers("weather-server"),
            client_factory=_factory({"weather-server": RefusingClient}, {}),
        )
        await manager.connect_all()
        result = await manager.call_tool(_tool("getWeather", "weather-server"), {})
        assert result.is_error
        assert "not connected" in result.text
