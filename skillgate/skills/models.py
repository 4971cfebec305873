"""
Skill models
"""

from dataclasses import dataclass, field
from typing import Dict, Tuple


@dataclass(frozen=True)
class SkillDefinition:
    """
    A named, independently-prompted behavior bound to a subset of remote tools.

    Attributes:
        name: Unique lowercase-hyphen key (e.g. "order-query")
        description: One-line summary shown to the router
        allowed_tools: Ordered short tool names the skill may call
        prompt_source: Path of the SKILL.md holding the system prompt
    """
    name: str
    description: str
    allowed_tools: Tuple[str, ...] = field(default_factory=tuple)
    prompt_source: str = ""

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "description": self.description,
            "allowed_tools": list(self.allowed_tools),
        }
