"""Shared fixtures for orchestrator tests.

``ScriptedLLM`` answers each LLM call according to the role of the prompt
(router, planner, step executor, observer, final answer, summarizer), so one
client can drive a whole turn deterministically.
"""

from collections import deque
from typing import Any, Dict, List, Optional

import pytest

from skillgate.llm.base import LLMResponse
from skillgate.mcp import MCPServerConfig, MCPTool, MockMCPClient, ToolConnectionManager
from skillgate.memory import AskUserRounds, InMemoryChatMemory, MemoryPendingIntentStore
from skillgate.orchestrator import (
    IntentRouter,
    MultiIntentScheduler,
    Orchestrator,
    PlanExecuteConfig,
    PlanExecuteEngine,
)
from skillgate.skills import SkillCatalog, SkillDefinition, ToolResolver
from skillgate.tools import ToolExecutor


# ---------------------------------------------------------------------------
# Scripted LLM
# ---------------------------------------------------------------------------

_ROLE_MARKERS = [
    ("router", "意图路由器"),
    ("plan", "任务规划器"),
    ("step", "正在按计划逐步执行任务"),
    ("observer", "执行观察者"),
    ("final", "请根据各步骤的执行结果"),
    ("summary", "多个请求"),
]

_DEFAULTS = {
    "router": "chitchat",
    "plan": "整理结果并回复用户",
    "step": "步骤完成",
    "observer": "OK: 结果正常",
    "final": "最终回复",
    "summary": "汇总回复",
}


def _role_of(messages: List[Dict[str, Any]]) -> str:
    system = messages[0]["content"] if messages else ""
    for role, marker in _ROLE_MARKERS:
        if marker in system:
            return role
    raise AssertionError(f"Unrecognized prompt: {system[:80]!r}")


class ScriptedLLM:
    """LLM double: per-role response queues; the last response of a queue repeats."""

    def __init__(self, **scripts):
        self._queues = {}
        for role, default in _DEFAULTS.items():
            script = scripts.get(role, default)
            items = list(script) if isinstance(script, (list, tuple)) else [script]
            self._queues[role] = deque(items)
        self.calls: List[Dict[str, Any]] = []

    def calls_for(self, role: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["role"] == role]

    async def chat_completion(self, messages, tools=None, config=None):
        role = _role_of(messages)
        self.calls.append({"role": role, "messages": messages, "tools": tools, "config": config})
        queue = self._queues[role]
        item = queue.popleft() if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        if isinstance(item, LLMResponse):
            return item
        return LLMResponse(content=item)


# ---------------------------------------------------------------------------
# Skills and tool-servers
# ---------------------------------------------------------------------------

SKILLS = [
    SkillDefinition("weather", "查询城市天气和天气预报", ("getWeather", "getForecast")),
    SkillDefinition("order-query", "查询订单详情", ("queryOrder",)),
    SkillDefinition("refund", "为订单申请退款", ("queryOrder", "applyRefund")),
    SkillDefinition("logistics", "查询订单物流", ("trackLogistics",)),
    SkillDefinition("chitchat", "日常闲聊"),
]

SERVER_TOOLS = {
    "weather-server": ["getWeather", "getForecast"],
    "business-server": ["queryOrder", "applyRefund", "trackLogistics"],
}

TOOL_RESULTS = {
    "getWeather": "北京当前天气：晴，气温 18°C",
    "getForecast": "上海明天小雨 16~21°C",
    "queryOrder": '[{"order_no": "ORD20250201001", "status": "已发货"}]',
    "applyRefund": "订单 ORD20250201001 的退款申请已受理",
    "trackLogistics": "订单 ORD20250201001 由顺丰速运承运，当前状态：运输中",
}


class ToolRecorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, name, arguments):
        self.calls.append((name, arguments))
        return TOOL_RESULTS.get(name, f"{name} ok")


@pytest.fixture
def scripted_llm():
    """Factory: ``scripted_llm(router=..., plan=[...], step=[...])``."""
    return ScriptedLLM


@pytest.fixture
def catalog():
    catalog = SkillCatalog()
    for skill in SKILLS:
        catalog.register(skill, prompt=f"你是{skill.description}助手。")
    return catalog


@pytest.fixture
def tool_recorder():
    return ToolRecorder()


@pytest.fixture
def connection_manager(tool_recorder):
    def factory(config: MCPServerConfig):
        tools = [
            MCPTool(
                name=name,
                description=f"{name} tool",
                input_schema={"type": "object", "properties": {}},
                server_name=config.name,
            )
            for name in SERVER_TOOLS[config.name]
        ]
        return MockMCPClient(name=config.name, tools=tools, tool_handler=tool_recorder)

    return ToolConnectionManager(
        [
            MCPServerConfig(name="weather-server", url="http://localhost:8082/sse"),
            MCPServerConfig(name="business-server", url="http://localhost:8081/sse"),
        ],
        client_factory=factory,
    )


@pytest.fixture
def make_engine(catalog, connection_manager):
    def _make(llm, config: Optional[PlanExecuteConfig] = None) -> PlanExecuteEngine:
        return PlanExecuteEngine(
            llm,
            catalog,
            ToolResolver(connection_manager),
            ToolExecutor(llm, connection_manager),
            config,
        )

    return _make


@pytest.fixture
def make_orchestrator(catalog, make_engine):
    """Factory wiring router, scheduler and in-memory stores around one LLM."""

    def _make(llm, config: Optional[PlanExecuteConfig] = None) -> Orchestrator:
        config = config or PlanExecuteConfig()
        scheduler = MultiIntentScheduler(
            make_engine(llm, config),
            llm,
            catalog,
            MemoryPendingIntentStore(),
            AskUserRounds(),
            config,
        )
        return Orchestrator(
            IntentRouter(llm, catalog, config),
            scheduler,
            InMemoryChatMemory(config.memory_window),
            config=config,
        )

    return _make
