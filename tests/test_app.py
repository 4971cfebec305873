"""Tests for skillgate.app - config loading and the SkillGate facade"""

import pytest

from skillgate.app import SkillGate, _load_config
from skillgate.constants import SYSTEM_ERROR_MESSAGE
from skillgate.llm.base import LLMResponse
from skillgate.mcp import MCPTool, MockMCPClient
from skillgate.streaming import EventType


# =========================================================================
# _load_config - env var substitution
# =========================================================================


class TestLoadConfig:

    def test_substitutes_env_vars(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TEST_MCP_URL", "http://localhost:8082/sse")
        config_file = tmp_path / "config.yaml"
        config_file.write_text("url: ${TEST_MCP_URL}\n")
        cfg = _load_config(str(config_file))
        assert cfg["url"] == "http://localhost:8082/sse"

    def test_multiple_substitutions(self, monkeypatch, tmp_path):
        monkeypatch.setenv("VAR_A", "aaa")
        monkeypatch.setenv("VAR_B", "bbb")
        config_file = tmp_path / "config.yaml"
        config_file.write_text("a: ${VAR_A}\nb: ${VAR_B}\n")
        cfg = _load_config(str(config_file))
        assert cfg["a"] == "aaa"
        assert cfg["b"] == "bbb"

    def test_missing_env_var_raises(self, monkeypatch, tmp_path):
        monkeypatch.delenv("NONEXISTENT_VAR_12345", raising=False)
        config_file = tmp_path / "config.yaml"
        config_file.write_text("key: ${NONEXISTENT_VAR_12345}\n")
        with pytest.raises(ValueError, match="NONEXISTENT_VAR_12345"):
            _load_config(str(config_file))

    def test_inline_substitution(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOST", "myhost")
        config_file = tmp_path / "config.yaml"
        config_file.write_text("url: https://${HOST}:8081/sse\n")
        cfg = _load_config(str(config_file))
        assert cfg["url"] == "https://myhost:8081/sse"

    def test_nonexistent_file_raises(self):
        with pytest.raises(FileNotFoundError):
            _load_config("/nonexistent/path/config.yaml")

    def test_empty_file(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")
        assert _load_config(str(config_file)) == {}


# =========================================================================
# SkillGate
# =========================================================================


WEATHER_SKILL = """---
name: weather
description: 查询城市天气
allowed-tools: getWeather
---
你是天气助手。
"""

CHITCHAT_SKILL = """---
name: chitchat
description: 日常闲聊
---
你是客服助手。
"""


class FakeLLM:
    """Routes every message to weather and answers each prompt role with a fixed text."""

    def __init__(self):
        self.closed = False

    async def chat_completion(self, messages, tools=None, config=None):
        system = messages[0]["content"]
        if "意图路由器" in system:
            return LLMResponse(content="weather|查询北京天气")
        if "任务规划器" in system:
            return LLMResponse(content="整理结果并回复用户")
        if "执行观察者" in system:
            return LLMResponse(content="OK: 正常")
        if "请根据各步骤的执行结果" in system:
            return LLMResponse(content="北京今天晴")
        return LLMResponse(content="步骤完成")

    async def close(self):
        self.closed = True


def _write_config(tmp_path, body):
    skills = tmp_path / "skills"
    (skills / "weather").mkdir(parents=True)
    (skills / "weather" / "SKILL.md").write_text(WEATHER_SKILL, encoding="utf-8")
    (skills / "chitchat").mkdir()
    (skills / "chitchat" / "SKILL.md").write_text(CHITCHAT_SKILL, encoding="utf-8")
    config_file = tmp_path / "config.yaml"
    config_file.write_text(body, encoding="utf-8")
    return str(config_file)


BASE_CONFIG = """
llm:
  provider: openai
  model: gpt-4o-mini
mcp_servers:
  weather-server:
    url: http://localhost:8082/sse
skills_dir: skills
"""


@pytest.fixture
def clients():
    return []


@pytest.fixture
def client_factory(clients):
    def factory(config):
        client = MockMCPClient(
            name=config.name,
            tools=[MCPTool("getWeather", "查询城市天气", {"type": "object"}, config.name)],
        )
        clients.append(client)
        return client

    return factory


class TestSkillGateConfig:
    def test_requires_llm_model(self, tmp_path):
        path = _write_config(tmp_path, "mcp_servers:\n  a:\n    url: http://x/sse\n")
        with pytest.raises(ValueError, match="llm.model"):
            SkillGate(path)

    def test_llm_client_replaces_llm_section(self, tmp_path):
        path = _write_config(tmp_path, "mcp_servers:\n  a:\n    url: http://x/sse\n")
        SkillGate(path, llm_client=FakeLLM())

    def test_requires_mcp_servers(self, tmp_path):
        path = _write_config(tmp_path, "llm:\n  model: gpt-4o\n")
        with pytest.raises(ValueError, match="mcp_servers"):
            SkillGate(path)

    def test_engine_section(self, tmp_path):
        path = _write_config(
            tmp_path,
            BASE_CONFIG + "fallback_skill: weather\nengine:\n  max_replan_rounds: 1\n  unknown_key: 1\n",
        )
        gate = SkillGate(path)
        assert gate._engine_config.max_replan_rounds == 1
        assert gate._engine_config.fallback_skill == "weather"

    def test_unknown_storage_backend(self, tmp_path):
        path = _write_config(tmp_path, BASE_CONFIG + "storage:\n  backend: redis\n")
        with pytest.raises(ValueError, match="redis"):
            SkillGate(path, llm_client=FakeLLM())


class TestSkillGateInitFailure:
    @pytest.fixture
    def failing_stores(self, monkeypatch):
        def _raise(self, storage_cfg):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(SkillGate, "_build_stores", _raise)
        return monkeypatch

    @pytest.mark.asyncio
    async def test_handle_turn_ends_with_error_and_done(self, tmp_path, client_factory, failing_stores):
        gate = SkillGate(
            _write_config(tmp_path, BASE_CONFIG),
            llm_client=FakeLLM(),
            mcp_client_factory=client_factory,
        )
        events = [event async for event in gate.handle_turn("conv-1", "北京天气怎么样")]
        assert [e.type for e in events] == [EventType.ERROR, EventType.DONE]
        assert events[0].message == SYSTEM_ERROR_MESSAGE

    @pytest.mark.asyncio
    async def test_chat_returns_error_text(self, tmp_path, client_factory, failing_stores):
        gate = SkillGate(
            _write_config(tmp_path, BASE_CONFIG),
            llm_client=FakeLLM(),
            mcp_client_factory=client_factory,
        )
        assert await gate.chat("conv-1", "北京天气怎么样") == SYSTEM_ERROR_MESSAGE

    @pytest.mark.asyncio
    async def test_tool_servers_closed_and_retry_succeeds(
        self, tmp_path, client_factory, clients, failing_stores
    ):
        gate = SkillGate(
            _write_config(tmp_path, BASE_CONFIG),
            llm_client=FakeLLM(),
            mcp_client_factory=client_factory,
        )
        await gate.chat("conv-1", "北京天气怎么样")
        assert len(clients) == 1
        assert not clients[0].is_connected

        failing_stores.undo()
        assert await gate.chat("conv-1", "北京天气怎么样") == "北京今天晴"
        assert len(clients) == 2
        assert clients[1].is_connected


class TestSkillGateRuntime:
    @pytest.mark.asyncio
    async def test_chat_end_to_end(self, tmp_path, client_factory):
        gate = SkillGate(
            _write_config(tmp_path, BASE_CONFIG),
            llm_client=FakeLLM(),
            mcp_client_factory=client_factory,
        )
        assert await gate.chat("conv-1", "北京天气怎么样") == "北京今天晴"

    @pytest.mark.asyncio
    async def test_handle_turn_streams_until_done(self, tmp_path, client_factory):
        gate = SkillGate(
            _write_config(tmp_path, BASE_CONFIG),
            llm_client=FakeLLM(),
            mcp_client_factory=client_factory,
        )
        events = [event async for event in gate.handle_turn("conv-1", "北京天气怎么样")]
        assert events[-1].type == EventType.DONE
        assert any(e.type == EventType.SKILL_START and e.skill == "weather" for e in events)

    @pytest.mark.asyncio
    async def test_listing(self, tmp_path, client_factory):
        gate = SkillGate(
            _write_config(tmp_path, BASE_CONFIG),
            llm_client=FakeLLM(),
            mcp_client_factory=client_factory,
        )
        assert await gate.list_skills() == {"chitchat": "日常闲聊", "weather": "查询城市天气"}
        assert await gate.list_available_tools() == [{"name": "getWeather", "description": "查询城市天气"}]

    @pytest.mark.asyncio
    async def test_reconnect(self, tmp_path, client_factory, clients):
        gate = SkillGate(
            _write_config(tmp_path, BASE_CONFIG),
            llm_client=FakeLLM(),
            mcp_client_factory=client_factory,
        )
        assert await gate.reconnect("weather-server") == {"weather-server": True}
        assert await gate.reconnect() == {"weather-server": True}
        assert await gate.reconnect("nope") == {"nope": False}
        assert len(clients) == 3
        assert [c.is_connected for c in clients] == [False, False, True]

    @pytest.mark.asyncio
    async def test_sqlite_storage_relative_to_config(self, tmp_path, client_factory):
        gate = SkillGate(
            _write_config(tmp_path, BASE_CONFIG + "storage:\n  backend: sqlite\n  path: data.db\n"),
            llm_client=FakeLLM(),
            mcp_client_factory=client_factory,
        )
        await gate.chat("conv-1", "北京天气怎么样")
        assert (tmp_path / "data.db").exists()

    @pytest.mark.asyncio
    async def test_shutdown(self, tmp_path, client_factory, clients):
        llm = FakeLLM()
        gate = SkillGate(
            _write_config(tmp_path, BASE_CONFIG),
            llm_client=llm,
            mcp_client_factory=client_factory,
        )
        await gate.list_skills()
        await gate.shutdown()
        assert llm.closed
        assert not clients[0].is_connected
