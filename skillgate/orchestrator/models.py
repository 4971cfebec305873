"""Plan-and-Execute state: engine states, observations and the per-intent execution context."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..constants import MAX_ASK_USER_ROUNDS, MAX_REPLAN_ROUNDS, VERDICT_REPLAN
from ..mcp.models import MCPTool
from ..skills.models import SkillDefinition


class EngineState(str, Enum):
    """States of the Plan-and-Execute state machine for one intent."""

    PRELOAD = "preload"
    PLANNING = "planning"
    EXECUTING = "executing"
    OBSERVING = "observing"
    REPLANNING = "replanning"
    ADVANCING = "advancing"
    ASKING_USER = "asking_user"
    FINALIZING = "finalizing"
    DONE = "done"


@dataclass
class StepResult:
    """A completed plan step and the text it produced."""

    step: str
    result: str


@dataclass
class Observation:
    """Observer verdict for the step just executed."""

    verdict: str  # "OK" or "REPLAN"
    text: str

    @property
    def needs_replan(self) -> bool:
        return self.verdict == VERDICT_REPLAN


@dataclass
class ExecutionContext:
    """Mutable state of one PlanExecuteEngine run, threaded through every transition.

    ``plan_history`` is append-only and its last entry is the current plan;
    ``completed_steps`` keeps insertion order and only belongs to the current plan.
    """

    skill: SkillDefinition
    conversation_id: str
    user_message: str
    enriched_message: str = ""
    state: EngineState = EngineState.PRELOAD

    cached_prompt: Optional[str] = None
    cached_tools: Optional[List[MCPTool]] = None

    completed_steps: List[StepResult] = field(default_factory=list)
    plan_history: List[List[str]] = field(default_factory=list)
    step_index: int = 0
    replan_count: int = 0
    ask_user_count: int = 0
    ask_user_terminated: bool = False

    tool_invocations: int = 0
    last_observation: Optional[Observation] = None
    final_answer: Optional[str] = None
    ask_user_exhausted: bool = False
    error: Optional[str] = None

    max_replan_rounds: int = MAX_REPLAN_ROUNDS
    max_ask_user_rounds: int = MAX_ASK_USER_ROUNDS

    def __post_init__(self):
        if not self.enriched_message:
            self.enriched_message = self.user_message

    # ── Plan cursor ──

    @property
    def current_plan(self) -> List[str]:
        return self.plan_history[-1] if self.plan_history else []

    @property
    def current_step(self) -> Optional[str]:
        plan = self.current_plan
        return plan[self.step_index] if self.step_index < len(plan) else None

    @property
    def current_step_display(self) -> int:
        """1-based step number shown in events."""
        return self.step_index + 1

    @property
    def has_more_steps(self) -> bool:
        return self.step_index < len(self.current_plan)

    @property
    def total_steps(self) -> int:
        return len(self.current_plan)

    @property
    def remaining_steps(self) -> List[str]:
        return self.current_plan[self.step_index + 1:]

    def add_plan(self, steps: List[str]) -> None:
        self.plan_history.append(list(steps))
        self.step_index = 0

    def add_completed_step(self, step: str, result: str) -> None:
        self.completed_steps.append(StepResult(step=step, result=result))

    def advance(self) -> None:
        if self.step_index >= len(self.current_plan):
            raise IndexError("Cannot advance past the end of the current plan")
        self.step_index += 1

    # ── Bounds ──

    @property
    def can_replan(self) -> bool:
        return self.replan_count < self.max_replan_rounds

    def reset_for_replan(self, new_steps: List[str]) -> None:
        """Install a new plan: cursor back to 0, completed steps cleared."""
        if not self.can_replan:
            raise RuntimeError(f"Replan budget of {self.max_replan_rounds} exhausted")
        self.replan_count += 1
        self.add_plan(new_steps)
        self.completed_steps = []

    @property
    def can_ask_user(self) -> bool:
        return self.ask_user_count < self.max_ask_user_rounds

    def record_ask_user(self) -> None:
        if not self.can_ask_user:
            raise RuntimeError(f"Ask-user budget of {self.max_ask_user_rounds} exhausted")
        self.ask_user_count += 1
