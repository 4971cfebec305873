"""
ToolResolver - bind a skill's declared short tool names to live tool handles
"""

import json
import logging
from typing import Dict, List, Sequence, TypeVar

from ..mcp.manager import ToolConnectionManager
from ..mcp.models import MCPTool
from .models import SkillDefinition

logger = logging.getLogger(__name__)

T = TypeVar("T")


def match_tools(allowed_tools: Sequence[str], live_tools: Dict[str, T], skill_name: str = "") -> List[T]:
    """
    Resolve short names against a live catalog keyed by qualified name.

    Exact name first, else the first live name ending with ``"_" + short``.
    The catalog's insertion order decides ties. Names that match nothing are
    logged and dropped.
    """
    resolved: List[T] = []
    missing: List[str] = []
    for short_name in allowed_tools:
        handle = live_tools.get(short_name)
        if handle is None:
            suffix = f"_{short_name}"
            handle = next(
                (h for name, h in live_tools.items() if name.endswith(suffix)),
                None,
            )
        if handle is None:
            missing.append(short_name)
            continue
        if not any(h is handle for h in resolved):
            resolved.append(handle)

    if missing:
        logger.warning(
            f"[ToolResolver] Skill {skill_name or '?'}: tools not found on any server: {', '.join(missing)}"
        )
    return resolved


def format_tool_signatures(tools: List[MCPTool]) -> str:
    """Tool list for planning prompts: name, description and parameter schema."""
    if not tools:
        return "无"
    lines = []
    for tool in tools:
        lines.append(f"- {tool.qualified_name}: {tool.description}")
        if tool.input_schema:
            lines.append(f"  参数 schema: {json.dumps(tool.input_schema, ensure_ascii=False)}")
    return "\n".join(lines)


class ToolResolver:
    """
    Resolves SkillDefinition.allowed_tools against the live tool catalog.

    Example:
        resolver = ToolResolver(connection_manager)
        tools = await resolver.resolve(catalog.get("weather"))
    """

    def __init__(self, connection_manager: ToolConnectionManager):
        self._manager = connection_manager

    async def resolve(self, skill: SkillDefinition) -> List[MCPTool]:
        if not skill.allowed_tools:
            return []
        live: Dict[str, MCPTool] = {}
        for tool in await self._manager.get_all_tools():
            live.setdefault(tool.qualified_name, tool)
        tools = match_tools(skill.allowed_tools, live, skill_name=skill.name)
        logger.info(
            f"[ToolResolver] Skill {skill.name}: resolved {len(tools)}/{len(skill.allowed_tools)} tools"
        )
        return tools
