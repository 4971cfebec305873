"""End-to-end turns through skillgate.orchestrator.Orchestrator

A scripted LLM plays router, planner, step executor, observer and
summarizer; tool-servers are in-process MockMCPClients.
"""

from unittest.mock import AsyncMock

import pytest

from skillgate.constants import SYSTEM_ERROR_MESSAGE
from skillgate.errors import ToolServerUnavailableError
from skillgate.llm.base import LLMResponse, ToolCall
from skillgate.models import ChatMessage
from skillgate.orchestrator.orchestrator import render_context_note
from skillgate.skills import SkillIndex
from skillgate.streaming import EventType


def tool_call(name, arguments):
    return LLMResponse(content="", tool_calls=[ToolCall(id=f"call_{name}", name=name, arguments=arguments)])


async def _turn(orchestrator, message, conversation_id="conv-1"):
    return [event async for event in orchestrator.handle_turn(conversation_id, message)]


def _of_type(events, event_type):
    return [e for e in events if e.type == event_type]


class KeywordEmbedder:
    KEYWORDS = ["天气", "订单", "退款", "物流", "闲聊"]

    async def embed(self, texts):
        return [[1.0 if k in t else 0.0 for k in self.KEYWORDS] for t in texts]


# ── Tests: render_context_note ──


class TestRenderContextNote:
    def test_recent_messages_only(self):
        history = [ChatMessage("user", "a"), ChatMessage("assistant", "b"), ChatMessage("user", "c")]
        assert render_context_note(history, 2) == "最近对话:\n助手: b\n用户: c"

    def test_empty(self):
        assert render_context_note([], 6) == ""
        assert render_context_note([ChatMessage("user", "a")], 0) == ""


# ── Tests: full turns ──


class TestSingleIntentTurn:
    @pytest.mark.asyncio
    async def test_weather_question(self, scripted_llm, make_orchestrator, tool_recorder):
        llm = scripted_llm(
            router="weather|查询北京的天气",
            plan="调用 getWeather 查询北京天气\n整理结果并回复用户",
            step=[tool_call("getWeather", {"city": "北京"}), "北京当前天气：晴，气温 18°C", "已整理"],
            final="北京今天晴，气温 18°C。",
        )
        orchestrator = make_orchestrator(llm)

        events = await _turn(orchestrator, "北京天气怎么样")

        assert events[0].message == "🤔 正在理解您的问题..."
        assert events[1].message == "💡 已理解，正在规划执行方案..."
        assert events[-1].type == EventType.DONE
        assert len(_of_type(events, EventType.DONE)) == 1
        assert _of_type(events, EventType.RESULT)[-1].content == "北京今天晴，气温 18°C。"
        assert tool_recorder.calls == [("getWeather", {"city": "北京"})]

        history = await orchestrator.chat_memory.read("conv-1")
        assert history == [
            ChatMessage("user", "北京天气怎么样"),
            ChatMessage("assistant", "北京今天晴，气温 18°C。"),
        ]

    @pytest.mark.asyncio
    async def test_handle_message_returns_final_text(self, scripted_llm, make_orchestrator):
        llm = scripted_llm(router="chitchat", final="你好！我可以帮您查天气、查订单。")
        orchestrator = make_orchestrator(llm)
        assert await orchestrator.handle_message("conv-1", "你好") == "你好！我可以帮您查天气、查订单。"

    @pytest.mark.asyncio
    async def test_router_failure_falls_back_to_chitchat(self, scripted_llm, make_orchestrator):
        llm = scripted_llm(router=RuntimeError("router down"), final="您好")
        events = await _turn(make_orchestrator(llm), "在吗")
        assert _of_type(events, EventType.SKILL_START)[0].skill == "chitchat"
        assert _of_type(events, EventType.RESULT)[-1].content == "您好"

    @pytest.mark.asyncio
    async def test_skill_index_narrows_router_candidates(self, scripted_llm, make_orchestrator, catalog):
        llm = scripted_llm(router="refund|为订单申请退款")
        orchestrator = make_orchestrator(llm)
        orchestrator.skill_index = SkillIndex(catalog, KeywordEmbedder(), top_k=1)

        await _turn(orchestrator, "我要退款")

        router_prompt = llm.calls_for("router")[0]["messages"][0]["content"]
        assert "- refund:" in router_prompt
        assert "- chitchat:" in router_prompt
        assert "- weather:" not in router_prompt


class TestMultiIntentTurn:
    @pytest.mark.asyncio
    async def test_weather_and_logistics(self, scripted_llm, make_orchestrator, tool_recorder):
        llm = scripted_llm(
            router="weather|查询上海明天的天气预报\nlogistics|查询订单ORD20250201001的物流状态",
            plan=[
                "调用 getForecast 查询上海明天天气\n整理结果并回复用户",
                "调用 trackLogistics 查询订单物流\n整理结果并回复用户",
            ],
            step=[
                tool_call("getForecast", {"city": "上海"}),
                "上海明天小雨 16~21°C",
                "已整理",
                tool_call("trackLogistics", {"orderNo": "ORD20250201001"}),
                "顺丰运输中",
                "已整理",
            ],
            final=["上海明天有小雨", "您的订单正在运输中"],
            summary="上海明天有小雨，记得带伞；订单 ORD20250201001 正在运输中。",
        )
        orchestrator = make_orchestrator(llm)

        events = await _turn(orchestrator, "上海明天会下雨吗？顺便查一下订单ORD20250201001的物流")

        assert [s.skill for s in _of_type(events, EventType.SKILL_START)] == ["weather", "logistics"]
        assert [name for name, _ in tool_recorder.calls] == ["getForecast", "trackLogistics"]
        assert events[-2].content == "上海明天有小雨，记得带伞；订单 ORD20250201001 正在运输中。"
        assert events[-1].type == EventType.DONE

        history = await orchestrator.chat_memory.read("conv-1")
        assert history[-1].text == "上海明天有小雨，记得带伞；订单 ORD20250201001 正在运输中。"


class TestCrossTurnFollowUp:
    @pytest.mark.asyncio
    async def test_pending_intent_resumes_after_answer(self, scripted_llm, make_orchestrator):
        llm = scripted_llm(
            router=[
                "refund|为订单申请退款\nweather|查询北京的天气",
                "refund|为订单ORD20250201001申请退款",
            ],
            plan=[
                "追问用户：请提供需要退款的订单号",
                "调用 applyRefund 为订单ORD20250201001申请退款\n整理结果并回复用户",
                "调用 getWeather 查询北京天气\n整理结果并回复用户",
            ],
            final=["退款申请已受理", "北京今天晴"],
            summary="退款申请已受理；北京今天晴。",
        )
        orchestrator = make_orchestrator(llm)

        first = await _turn(orchestrator, "帮我退款，顺便看看北京天气")
        assert [s.skill for s in _of_type(first, EventType.SKILL_START)] == ["refund"]
        assert _of_type(first, EventType.RESULT)[-1].content == "请提供需要退款的订单号"

        second = await _turn(orchestrator, "ORD20250201001")
        assert [s.skill for s in _of_type(second, EventType.SKILL_START)] == ["refund", "weather"]
        assert _of_type(second, EventType.RESULT)[-1].content == "退款申请已受理；北京今天晴。"

        router_prompt = llm.calls_for("router")[1]["messages"][1]["content"]
        assert "助手: 请提供需要退款的订单号" in router_prompt
        refund_plan_prompt = llm.calls_for("plan")[1]["messages"][1]["content"]
        assert "助手: 请提供需要退款的订单号" in refund_plan_prompt


class TestTurnFailures:
    @pytest.mark.asyncio
    async def test_unexpected_error_yields_one_error_then_done(self, scripted_llm, make_orchestrator):
        orchestrator = make_orchestrator(scripted_llm())
        orchestrator.chat_memory.read = AsyncMock(side_effect=RuntimeError("db gone"))

        events = await _turn(orchestrator, "你好")

        assert [e.type for e in events] == [EventType.PLANNING, EventType.ERROR, EventType.DONE]
        assert events[1].message == SYSTEM_ERROR_MESSAGE

    @pytest.mark.asyncio
    async def test_handle_message_returns_error_text(self, scripted_llm, make_orchestrator):
        orchestrator = make_orchestrator(scripted_llm())
        orchestrator.chat_memory.read = AsyncMock(side_effect=RuntimeError("db gone"))
        assert await orchestrator.handle_message("conv-1", "你好") == SYSTEM_ERROR_MESSAGE

    @pytest.mark.asyncio
    async def test_tool_servers_down_ends_intent_with_error(
        self, scripted_llm, make_orchestrator, connection_manager
    ):
        connection_manager.get_all_tools = AsyncMock(
            side_effect=ToolServerUnavailableError(["weather-server", "business-server"])
        )
        orchestrator = make_orchestrator(scripted_llm(router="weather|查询北京天气"))

        events = await _turn(orchestrator, "北京天气")

        errors = _of_type(events, EventType.ERROR)
        assert len(errors) == 1
        assert "weather-server" in errors[0].message
        assert _of_type(events, EventType.RESULT) == []
        assert events[-1].type == EventType.DONE
