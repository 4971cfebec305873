"""
Test that the public SkillGate imports work.
"""


def test_core_imports():
    """Test top-level package exports"""
    from skillgate import (
        SkillGate,
        SkillGateError,
        ToolServerUnavailableError,
        SkillNotFoundError,
        ChatMessage,
        Intent,
        EventType,
        OrchestrationEvent,
        __version__,
    )

    assert SkillGate is not None
    assert issubclass(ToolServerUnavailableError, SkillGateError)
    assert issubclass(SkillNotFoundError, SkillGateError)
    assert Intent("weather", "查询天气").to_dict() == {"skill_name": "weather", "sub_task": "查询天气"}
    assert ChatMessage("user", "hi").role == "user"
    assert EventType.DONE.value == "done"
    assert OrchestrationEvent is not None
    assert __version__


def test_subpackage_imports():
    """Test subpackage imports"""
    from skillgate.llm import LiteLLMClient, LiteLLMEmbeddingClient, LLMConfig
    from skillgate.mcp import MCPClient, ToolConnectionManager
    from skillgate.memory import SQLiteChatMemory, SQLitePendingIntentStore
    from skillgate.orchestrator import Orchestrator, PlanExecuteEngine
    from skillgate.skills import SkillCatalog, SkillIndex, ToolResolver
    from skillgate.tools import ToolExecutor

    assert all(
        cls is not None
        for cls in (
            LiteLLMClient, LiteLLMEmbeddingClient, LLMConfig, MCPClient, ToolConnectionManager,
            SQLiteChatMemory, SQLitePendingIntentStore, Orchestrator, PlanExecuteEngine,
            SkillCatalog, SkillIndex, ToolResolver, ToolExecutor,
        )
    )


def test_protocol_imports():
    """Test protocol imports"""
    from skillgate.protocols import EmbeddingClientProtocol, LLMClientProtocol
    from skillgate.mcp import MCPClientProtocol

    assert LLMClientProtocol is not None
    assert EmbeddingClientProtocol is not None
    assert MCPClientProtocol is not None
