"""
SkillGate Streaming Models - events pushed by the orchestration pipeline

This module defines:
- EventType: the tagged variants of OrchestrationEvent
- OrchestrationEvent: one progress event of a turn
- Helper functions for creating events
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class EventType(str, Enum):
    """Types of events that can be streamed"""
    SKILL_START = "skill_start"   # A new intent of a multi-intent batch begins
    PLANNING = "planning"         # Progress message
    PLAN = "plan"                 # Plan produced
    ACTION = "action"             # Step started (running) or completed (done)
    OBSERVE = "observe"           # Observer verdict for the step just executed
    REPLAN = "replan"             # Remaining plan replaced
    RESULT = "result"             # Final text of an intent or of the turn
    ERROR = "error"
    DONE = "done"                 # Always the last event of a turn


class ActionStatus(str, Enum):
    RUNNING = "running"
    DONE = "done"


@dataclass
class OrchestrationEvent:
    """
    One event of a turn's event stream.

    Only the fields relevant to ``type`` are set; ``to_dict`` omits the rest.
    """
    type: EventType
    message: Optional[str] = None
    step: Optional[int] = None
    total_steps: Optional[int] = None
    status: Optional[ActionStatus] = None
    steps: Optional[List[str]] = None
    content: Optional[str] = None
    skill: Optional[str] = None
    reason: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization"""
        data: Dict[str, Any] = {"type": self.type.value}
        for name in ("message", "step", "total_steps", "steps", "content", "skill", "reason"):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        if self.status is not None:
            data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrchestrationEvent":
        """Create event from dictionary"""
        return cls(
            type=EventType(data["type"]),
            message=data.get("message"),
            step=data.get("step"),
            total_steps=data.get("total_steps"),
            status=ActionStatus(data["status"]) if data.get("status") else None,
            steps=data.get("steps"),
            content=data.get("content"),
            skill=data.get("skill"),
            reason=data.get("reason"),
        )


def create_skill_start_event(index: int, total: int, skill: str, sub_task: str) -> OrchestrationEvent:
    """Create the event announcing intent ``index`` of ``total``"""
    return OrchestrationEvent(
        type=EventType.SKILL_START,
        message=f"📋 任务 {index}/{total} [{skill}]: {sub_task}",
        step=index,
        total_steps=total,
        skill=skill,
    )


def create_planning_event(message: str) -> OrchestrationEvent:
    return OrchestrationEvent(type=EventType.PLANNING, message=message)


def create_plan_event(steps: List[str]) -> OrchestrationEvent:
    return OrchestrationEvent(type=EventType.PLAN, steps=list(steps), total_steps=len(steps))


def create_action_start_event(step: int, total: int, description: str) -> OrchestrationEvent:
    """Create the event emitted before a step runs"""
    return OrchestrationEvent(
        type=EventType.ACTION,
        step=step,
        total_steps=total,
        status=ActionStatus.RUNNING,
        message=description,
    )


def create_action_done_event(step: int, total: int, description: str, result: str) -> OrchestrationEvent:
    """Create the event emitted with a step's result"""
    return OrchestrationEvent(
        type=EventType.ACTION,
        step=step,
        total_steps=total,
        status=ActionStatus.DONE,
        message=description,
        content=result,
    )


def create_observe_event(step: int, text: str) -> OrchestrationEvent:
    return OrchestrationEvent(type=EventType.OBSERVE, step=step, message=text)


def create_replan_event(reason: str, new_steps: List[str]) -> OrchestrationEvent:
    return OrchestrationEvent(
        type=EventType.REPLAN,
        reason=reason,
        steps=list(new_steps),
        total_steps=len(new_steps),
    )


def create_result_event(content: str) -> OrchestrationEvent:
    return OrchestrationEvent(type=EventType.RESULT, content=content)


def create_error_event(message: str) -> OrchestrationEvent:
    return OrchestrationEvent(type=EventType.ERROR, message=message)


def create_done_event() -> OrchestrationEvent:
    return OrchestrationEvent(type=EventType.DONE)
