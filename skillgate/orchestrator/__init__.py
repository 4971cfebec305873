"""
SkillGate Orchestrator - routing, Plan-and-Execute and multi-intent scheduling
"""

from .config import PlanExecuteConfig
from .models import EngineState, ExecutionContext, Observation, StepResult
from .intent_router import IntentRouter
from .engine import PlanExecuteEngine
from .scheduler import MultiIntentScheduler, merge_intents
from .orchestrator import Orchestrator

__all__ = [
    "PlanExecuteConfig",
    "EngineState",
    "ExecutionContext",
    "Observation",
    "StepResult",
    "IntentRouter",
    "PlanExecuteEngine",
    "MultiIntentScheduler",
    "merge_intents",
    "Orchestrator",
]
