"""
SkillGate Tool Models - Data structures for LLM tool calling
"""

from dataclasses import dataclass


@dataclass
class ToolResult:
    """
    Result of a tool execution

    Attributes:
        tool_call_id: ID of the tool call this result is for
        content: String result content handed back to the LLM
        is_error: Whether execution failed
    """
    tool_call_id: str
    content: str
    is_error: bool = False


@dataclass
class ToolRunResult:
    """Outcome of one tool-calling loop: final text and number of tool invocations"""
    content: str
    tool_calls: int = 0
    iterations: int = 0
