"""Multi-Intent Scheduler - serial execution of a turn's intents.

Intents run one after another (intent K's events all precede intent K+1's).
An intent that only asks the user a clarifying question stops the batch: the
intents after it are saved as pending work for the next turn. When several
intents produce results they are merged by one summarizer call.
"""

import logging
from typing import AsyncIterator, List, Optional

from ..errors import SkillNotFoundError
from ..memory.base import AskUserRoundStore, PendingIntentStore
from ..memory.memory_store import AskUserRounds
from ..models import Intent
from ..protocols import LLMClientProtocol
from ..skills.loader import SkillCatalog
from ..skills.models import SkillDefinition
from ..streaming.models import (
    EventType,
    OrchestrationEvent,
    create_planning_event,
    create_result_event,
    create_skill_start_event,
)
from .config import PlanExecuteConfig
from .engine import PlanExecuteEngine
from .llm_utils import call_llm
from .prompts import RESULT_SEPARATOR, build_summary_messages, format_intent_result

logger = logging.getLogger(__name__)


def merge_intents(new_intents: List[Intent], pending: List[Intent]) -> List[Intent]:
    """New intents first; a pending intent is kept only if no new intent targets its skill."""
    merged = list(new_intents)
    taken = {intent.skill_name for intent in new_intents}
    for intent in pending:
        if intent.skill_name not in taken:
            merged.append(intent)
            taken.add(intent.skill_name)
    return merged


class MultiIntentScheduler:
    """Runs intents serially against the PlanExecuteEngine and aggregates results."""

    def __init__(
        self,
        engine: PlanExecuteEngine,
        llm_client: LLMClientProtocol,
        catalog: SkillCatalog,
        pending_store: PendingIntentStore,
        ask_user_rounds: Optional[AskUserRoundStore] = None,
        config: Optional[PlanExecuteConfig] = None,
    ):
        self.engine = engine
        self.llm_client = llm_client
        self.catalog = catalog
        self.pending_store = pending_store
        self.ask_user_rounds = ask_user_rounds or AskUserRounds()
        self.config = config or PlanExecuteConfig()

    async def pop_pending(self, conversation_id: str) -> List[Intent]:
        pending = await self.pending_store.pop(conversation_id)
        if pending:
            logger.info(f"[Scheduler] {conversation_id}: resuming {len(pending)} pending intent(s)")
        return pending

    def resolve_skill(self, skill_name: str) -> SkillDefinition:
        """Catalog lookup with fallback; raises SkillNotFoundError without a fallback."""
        skill = self.catalog.get(skill_name)
        if skill is not None:
            return skill
        fallback = self.catalog.get(self.config.fallback_skill)
        if fallback is None:
            raise SkillNotFoundError(skill_name)
        logger.warning(f"[Scheduler] Unknown skill {skill_name}, using {fallback.name}")
        return fallback

    async def run(
        self,
        conversation_id: str,
        user_message: str,
        intents: List[Intent],
        context_note: str = "",
    ) -> AsyncIterator[OrchestrationEvent]:
        """
        Execute ``intents`` in order.

        Args:
            conversation_id: Conversation the turn belongs to
            user_message: Original user message (for the summarizer)
            intents: Ordered intents from the router, merged with pending ones
            context_note: Recent conversation appended to each sub-task for planning
        """
        total = len(intents)
        if total > 1:
            yield create_planning_event(f"💡 识别到 {total} 个任务，开始逐个处理...")

        results: List[str] = []
        terminated_early = False

        for index, intent in enumerate(intents):
            if terminated_early:
                remaining = intents[index:]
                await self.pending_store.replace(conversation_id, remaining)
                logger.info(
                    f"[Scheduler] Waiting for user input, {len(remaining)} intent(s) kept pending: "
                    + ", ".join(i.skill_name for i in remaining)
                )
                break

            skill = self.resolve_skill(intent.skill_name)
            yield create_skill_start_event(index + 1, total, skill.name, intent.sub_task)

            enriched = intent.sub_task
            if context_note:
                enriched = f"{intent.sub_task}\n\n{context_note}"
            ctx = self.engine.new_context(
                skill,
                conversation_id,
                intent.sub_task,
                enriched_message=enriched,
                ask_user_count=await self.ask_user_rounds.get(conversation_id, skill.name),
            )

            had_action = False
            intent_result = None
            async for event in self.engine.run(ctx):
                if event.type == EventType.ACTION:
                    had_action = True
                elif event.type == EventType.RESULT:
                    intent_result = event.content
                yield event

            await self._track_ask_user(conversation_id, skill.name, ctx)

            if ctx.ask_user_terminated and not had_action:
                terminated_early = True
            elif intent_result is not None:
                results.append(format_intent_result(intent.sub_task, intent_result))

        if terminated_early or len(results) <= 1:
            return

        yield create_planning_event("📝 正在汇总所有任务结果...")
        yield create_result_event(await self._summarize(user_message, results))

    async def _track_ask_user(self, conversation_id: str, skill_name: str, ctx) -> None:
        if ctx.error is not None:
            return
        if ctx.ask_user_terminated and not ctx.ask_user_exhausted:
            await self.ask_user_rounds.set(conversation_id, skill_name, ctx.ask_user_count)
        else:
            await self.ask_user_rounds.reset(conversation_id, skill_name)

    async def _summarize(self, user_message: str, results: List[str]) -> str:
        try:
            summary = await call_llm(
                self.llm_client,
                build_summary_messages(user_message, results),
                timeout=self.config.llm_timeout,
            )
        except Exception as e:
            logger.warning(f"[Scheduler] Summarizer failed, returning joined results: {e}")
            summary = ""
        return summary or RESULT_SEPARATOR.join(results)
