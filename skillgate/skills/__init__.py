"""
SkillGate skills - skill catalog, tool resolution and the routing pre-filter
"""

from .models import SkillDefinition
from .loader import SkillCatalog
from .resolver import ToolResolver, format_tool_signatures, match_tools
from .index import SkillIndex

__all__ = [
    "SkillDefinition",
    "SkillCatalog",
    "ToolResolver",
    "format_tool_signatures",
    "match_tools",
    "SkillIndex",
]
