"""
SkillGate Models - value types shared across the orchestration layers
"""

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class Intent:
    """One (skill, sub-task) unit of work derived from a user message"""
    skill_name: str
    sub_task: str

    def to_dict(self) -> Dict[str, str]:
        return {"skill_name": self.skill_name, "sub_task": self.sub_task}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Intent":
        return cls(skill_name=data["skill_name"], sub_task=data["sub_task"])


@dataclass(frozen=True)
class ChatMessage:
    """One entry of a conversation transcript"""
    role: str  # "user" or "assistant"
    text: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "text": self.text}
