"""
SkillGate Tools - tool-calling loop over remote tool handles
"""

from .models import ToolResult, ToolRunResult
from .executor import ToolExecutor

__all__ = ["ToolResult", "ToolRunResult", "ToolExecutor"]
