"""
SkillGate Streaming - event model of the orchestration pipeline

Usage:
    async for event in app.handle_turn("conv-1", "北京天气怎么样"):
        print(event.to_dict())
"""

from .models import (
    ActionStatus,
    EventType,
    OrchestrationEvent,
    create_action_done_event,
    create_action_start_event,
    create_done_event,
    create_error_event,
    create_observe_event,
    create_plan_event,
    create_planning_event,
    create_replan_event,
    create_result_event,
    create_skill_start_event,
)

__all__ = [
    "ActionStatus",
    "EventType",
    "OrchestrationEvent",
    "create_action_done_event",
    "create_action_start_event",
    "create_done_event",
    "create_error_event",
    "create_observe_event",
    "create_plan_event",
    "create_planning_event",
    "create_replan_event",
    "create_result_event",
    "create_skill_start_event",
]
