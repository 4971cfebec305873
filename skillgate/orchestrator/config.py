"""Plan-and-Execute configuration.

Centralizes the tunable bounds and timeouts of routing, the per-intent state
machine and multi-intent summarization.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from ..constants import (
    CHAT_MEMORY_WINDOW,
    ENRICHED_HISTORY_MESSAGES,
    FALLBACK_SKILL_NAME,
    LLM_CALL_TIMEOUT_SECONDS,
    MAX_ASK_USER_ROUNDS,
    MAX_REPLAN_ROUNDS,
    MAX_TOOL_ITERATIONS,
    ROUTER_ASSISTANT_TRUNCATE,
    ROUTER_HISTORY_LIMIT,
    SKILL_TOP_K,
    TOOL_LIST_TIMEOUT_SECONDS,
)


@dataclass
class PlanExecuteConfig:
    """All orchestration configuration centralized in one place."""

    # Bounds
    max_replan_rounds: int = MAX_REPLAN_ROUNDS
    """New plans allowed per intent after the first one."""
    max_ask_user_rounds: int = MAX_ASK_USER_ROUNDS
    """Consecutive clarifying questions per skill before the fixed apology."""
    max_tool_iterations: int = MAX_TOOL_ITERATIONS
    """LLM rounds of the tool-calling loop inside one step."""

    # Timeouts
    llm_timeout: float = LLM_CALL_TIMEOUT_SECONDS
    """Hard timeout of every LLM call in seconds."""
    step_timeout: Optional[float] = None
    """Timeout of one whole step (LLM rounds plus tool calls). Defaults to
    llm_timeout * max_tool_iterations."""
    tool_list_timeout: float = TOOL_LIST_TIMEOUT_SECONDS
    """Tool catalog fetch timeout per server in seconds."""

    # Routing
    fallback_skill: str = FALLBACK_SKILL_NAME
    history_limit: int = ROUTER_HISTORY_LIMIT
    """Chat messages shown to the router."""
    assistant_truncate: int = ROUTER_ASSISTANT_TRUNCATE
    """Assistant messages longer than this are truncated in the router prompt."""
    skill_top_k: int = SKILL_TOP_K

    # Memory
    memory_window: int = CHAT_MEMORY_WINDOW
    enriched_history: int = ENRICHED_HISTORY_MESSAGES
    """Recent messages appended to the request given to the planner."""

    # LLM sampling
    planning_temperature: float = 0.2
    routing_temperature: float = 0.0
    observer_temperature: float = 0.0

    @property
    def effective_step_timeout(self) -> float:
        return self.step_timeout or self.llm_timeout * self.max_tool_iterations

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PlanExecuteConfig":
        """Build from the ``engine`` config section, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in (data or {}).items() if k in known})
