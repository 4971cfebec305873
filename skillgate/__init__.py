"""
SkillGate - Plan-and-Execute skill gateway over MCP tool-servers

Routes natural-language requests to skills, plans and executes each skill's
work against remote tools and streams progress events.

Usage:
    from skillgate import SkillGate

    app = SkillGate("config.yaml")
    async for event in app.handle_turn("conv-1", "北京天气怎么样"):
        print(event.to_dict())
"""

__version__ = "0.1.0"

from .app import SkillGate
from .errors import SkillGateError, SkillNotFoundError, ToolServerUnavailableError
from .models import ChatMessage, Intent
from .streaming.models import EventType, OrchestrationEvent

__all__ = [
    "SkillGate",
    "SkillGateError",
    "SkillNotFoundError",
    "ToolServerUnavailableError",
    "ChatMessage",
    "Intent",
    "EventType",
    "OrchestrationEvent",
    "__version__",
]
