"""Plan-and-Execute engine - runs one (skill, sub-task) intent.

State machine::

    PRELOAD -> PLANNING -> EXECUTING -> OBSERVING -> ADVANCING -> EXECUTING ...
                               |            |
                               |            +-> REPLANNING -> EXECUTING
                               +-> ASKING_USER -> DONE
    (plan exhausted) -> FINALIZING -> DONE

``run`` drives an ExecutionContext with an explicit ``while state != DONE``
loop. Each state has one handler, an async generator that yields the events
of its transition and sets the next state on the context.
"""

import asyncio
import logging
from typing import AsyncIterator, List, Optional

from ..constants import (
    ASK_USER_LIMIT_MESSAGE,
    OBSERVER_DEFAULT_TEXT,
    STEP_FAILURE_PREFIX,
    VERDICT_OK,
)
from ..protocols import LLMClientProtocol
from ..skills.loader import SkillCatalog
from ..skills.models import SkillDefinition
from ..skills.resolver import ToolResolver, format_tool_signatures
from ..streaming.models import (
    OrchestrationEvent,
    create_action_done_event,
    create_action_start_event,
    create_error_event,
    create_observe_event,
    create_plan_event,
    create_planning_event,
    create_replan_event,
    create_result_event,
)
from ..tools.executor import ToolExecutor
from .config import PlanExecuteConfig
from .llm_utils import call_llm
from .models import EngineState, ExecutionContext, Observation
from .parsing import extract_ask_user_question, is_ask_user_step, parse_observation, parse_plan
from .prompts import (
    build_final_answer_messages,
    build_observer_messages,
    build_planning_messages,
    build_step_messages,
)

logger = logging.getLogger(__name__)


class PlanExecuteEngine:
    """
    Plan -> Execute-step -> Observe -> (Replan | Advance | AskUser) -> Final-Answer.

    Step execution failures become textual step results; planning and
    finalizing failures end the intent with one error event.

    Example:
        engine = PlanExecuteEngine(llm_client, catalog, resolver, tool_executor)
        ctx = engine.new_context(catalog.get("weather"), "conv-1", "查询北京的天气")
        async for event in engine.run(ctx):
            print(event.to_dict())
    """

    def __init__(
        self,
        llm_client: LLMClientProtocol,
        catalog: SkillCatalog,
        resolver: ToolResolver,
        tool_executor: ToolExecutor,
        config: Optional[PlanExecuteConfig] = None,
    ):
        self.llm_client = llm_client
        self.catalog = catalog
        self.resolver = resolver
        self.tool_executor = tool_executor
        self.config = config or PlanExecuteConfig()
        self._handlers = {
            EngineState.PRELOAD: self._preload,
            EngineState.PLANNING: self._plan,
            EngineState.EXECUTING: self._execute,
            EngineState.OBSERVING: self._observe,
            EngineState.REPLANNING: self._replan,
            EngineState.ADVANCING: self._advance,
            EngineState.ASKING_USER: self._ask_user,
            EngineState.FINALIZING: self._finalize,
        }

    def new_context(
        self,
        skill: SkillDefinition,
        conversation_id: str,
        user_message: str,
        enriched_message: str = "",
        ask_user_count: int = 0,
    ) -> ExecutionContext:
        return ExecutionContext(
            skill=skill,
            conversation_id=conversation_id,
            user_message=user_message,
            enriched_message=enriched_message,
            ask_user_count=ask_user_count,
            max_replan_rounds=self.config.max_replan_rounds,
            max_ask_user_rounds=self.config.max_ask_user_rounds,
        )

    async def run(self, ctx: ExecutionContext) -> AsyncIterator[OrchestrationEvent]:
        """Drive ``ctx`` until DONE, yielding events in order."""
        logger.info(f"[PlanExecute] Start skill={ctx.skill.name} task={ctx.user_message!r}")
        while ctx.state != EngineState.DONE:
            state = ctx.state
            try:
                async for event in self._handlers[state](ctx):
                    yield event
            except Exception as e:
                logger.error(f"[PlanExecute] {ctx.skill.name} failed in {state.value}: {e}", exc_info=True)
                ctx.error = str(e) or type(e).__name__
                ctx.state = EngineState.DONE
                yield create_error_event(f"技能 {ctx.skill.name} 执行失败: {ctx.error}")
        logger.info(
            f"[PlanExecute] Done skill={ctx.skill.name} plans={len(ctx.plan_history)} "
            f"replans={ctx.replan_count} tool_calls={ctx.tool_invocations}"
        )

    async def step(self, ctx: ExecutionContext) -> List[OrchestrationEvent]:
        """Run exactly one transition from ``ctx.state`` and return its events."""
        if ctx.state == EngineState.DONE:
            return []
        return [event async for event in self._handlers[ctx.state](ctx)]

    # ── Transitions ──

    @staticmethod
    def _after_plan_change(ctx: ExecutionContext) -> EngineState:
        return EngineState.EXECUTING if ctx.has_more_steps else EngineState.FINALIZING

    async def _preload(self, ctx: ExecutionContext):
        yield create_planning_event(f"🔧 正在准备技能 [{ctx.skill.name}] ...")
        ctx.cached_tools = await self.resolver.resolve(ctx.skill)
        ctx.cached_prompt = self.catalog.load_prompt(ctx.skill.name)
        ctx.state = EngineState.PLANNING

    async def _plan(self, ctx: ExecutionContext):
        yield create_planning_event("📝 正在制定执行计划...")
        steps = await self._generate_plan(ctx)
        ctx.add_plan(steps)
        yield create_plan_event(steps)
        ctx.state = self._after_plan_change(ctx)

    async def _execute(self, ctx: ExecutionContext):
        step = ctx.current_step
        if is_ask_user_step(step):
            ctx.state = EngineState.ASKING_USER
            return

        display, total = ctx.current_step_display, ctx.total_steps
        yield create_action_start_event(display, total, step)
        result = await self._run_step(ctx, step)
        ctx.add_completed_step(step, result)
        yield create_action_done_event(display, total, step, result)
        ctx.state = EngineState.OBSERVING

    async def _observe(self, ctx: ExecutionContext):
        last = ctx.completed_steps[-1]
        try:
            raw = await call_llm(
                self.llm_client,
                build_observer_messages(last.step, last.result, ctx.remaining_steps),
                timeout=self.config.llm_timeout,
                temperature=self.config.observer_temperature,
                max_tokens=200,
            )
            observation = parse_observation(raw)
        except Exception as e:
            logger.warning(f"[PlanExecute] Observer failed, continuing: {e}")
            observation = Observation(verdict=VERDICT_OK, text=OBSERVER_DEFAULT_TEXT)

        ctx.last_observation = observation
        yield create_observe_event(ctx.current_step_display, observation.text)

        if observation.needs_replan:
            if ctx.can_replan:
                ctx.state = EngineState.REPLANNING
                return
            logger.warning(
                f"[PlanExecute] Replan budget ({ctx.max_replan_rounds}) exhausted for "
                f"{ctx.skill.name}, advancing"
            )
        ctx.state = EngineState.ADVANCING

    async def _replan(self, ctx: ExecutionContext):
        reason = ctx.last_observation.text if ctx.last_observation else ""
        new_steps = await self._generate_plan(ctx, replan_reason=reason)
        ctx.reset_for_replan(new_steps)
        logger.info(f"[PlanExecute] Replan {ctx.replan_count}/{ctx.max_replan_rounds}: {new_steps}")
        yield create_replan_event(reason, new_steps)
        ctx.state = self._after_plan_change(ctx)

    async def _advance(self, ctx: ExecutionContext):
        ctx.advance()
        ctx.state = self._after_plan_change(ctx)
        return
        yield  # no events for this transition

    async def _ask_user(self, ctx: ExecutionContext):
        if ctx.can_ask_user:
            ctx.record_ask_user()
            answer = extract_ask_user_question(ctx.current_step)
            logger.info(
                f"[PlanExecute] Asking user ({ctx.ask_user_count}/{ctx.max_ask_user_rounds}): {answer}"
            )
        else:
            logger.warning(f"[PlanExecute] Ask-user budget exhausted for {ctx.skill.name}")
            ctx.ask_user_exhausted = True
            answer = ASK_USER_LIMIT_MESSAGE

        ctx.ask_user_terminated = True
        ctx.final_answer = answer
        yield create_result_event(answer)
        ctx.state = EngineState.DONE

    async def _finalize(self, ctx: ExecutionContext):
        yield create_planning_event("✍️ 正在整理最终回复...")
        answer = await call_llm(
            self.llm_client,
            build_final_answer_messages(ctx.cached_prompt or "", ctx.user_message, ctx.completed_steps),
            timeout=self.config.llm_timeout,
        )
        if not answer and ctx.completed_steps:
            answer = ctx.completed_steps[-1].result
        ctx.final_answer = answer
        yield create_result_event(answer)
        ctx.state = EngineState.DONE

    # ── LLM work ──

    async def _generate_plan(self, ctx: ExecutionContext, replan_reason: str = "") -> List[str]:
        messages = build_planning_messages(
            ctx.cached_prompt or "",
            format_tool_signatures(ctx.cached_tools or []),
            ctx.enriched_message,
            ctx.completed_steps,
            replan_reason,
        )
        raw = await call_llm(
            self.llm_client,
            messages,
            timeout=self.config.llm_timeout,
            temperature=self.config.planning_temperature,
        )
        logger.debug(f"[PlanExecute] Raw plan: {raw!r}")
        return parse_plan(raw)

    async def _run_step(self, ctx: ExecutionContext, step: str) -> str:
        """Execute one step with the skill's tools bound; failures become result text."""
        messages = build_step_messages(
            ctx.cached_prompt or "",
            step,
            ctx.enriched_message,
            ctx.completed_steps,
        )
        try:
            run = await asyncio.wait_for(
                self.tool_executor.run_with_tools(
                    messages,
                    ctx.cached_tools or [],
                    max_iterations=self.config.max_tool_iterations,
                ),
                timeout=self.config.effective_step_timeout,
            )
        except Exception as e:
            logger.warning(f"[PlanExecute] Step failed: {step} - {e}")
            return f"{STEP_FAILURE_PREFIX}{str(e) or type(e).__name__}"

        ctx.tool_invocations += run.tool_calls
        return run.content
