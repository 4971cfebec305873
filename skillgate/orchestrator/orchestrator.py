"""
SkillGate Orchestrator - one conversational turn from message to event stream

Flow:
    1. Read conversation history, pre-filter candidate skills
    2. Route the message into intents; merge with pending intents
    3. Run intents serially through the MultiIntentScheduler
    4. Record the turn in chat memory
Every turn ends with exactly one ``done`` event.
"""

import logging
from typing import AsyncIterator, List, Optional

from ..constants import SYSTEM_ERROR_MESSAGE
from ..memory.base import ChatMemory
from ..models import ChatMessage
from ..skills.index import SkillIndex
from ..streaming.models import (
    EventType,
    OrchestrationEvent,
    create_done_event,
    create_error_event,
    create_planning_event,
)
from .config import PlanExecuteConfig
from .intent_router import IntentRouter
from .scheduler import MultiIntentScheduler, merge_intents

logger = logging.getLogger(__name__)


def render_context_note(history: List[ChatMessage], limit: int) -> str:
    """Recent transcript appended to sub-tasks so follow-up answers complete earlier requests."""
    recent = history[-limit:] if limit > 0 else []
    if not recent:
        return ""
    lines = [f"{'用户' if m.role == 'user' else '助手'}: {m.text}" for m in recent]
    return "最近对话:\n" + "\n".join(lines)


class Orchestrator:
    """
    Entry point of the orchestration core.

    Example:
        orchestrator = Orchestrator(router, scheduler, chat_memory, skill_index)
        async for event in orchestrator.handle_turn("conv-1", "北京天气怎么样"):
            ...
        text = await orchestrator.handle_message("conv-1", "帮我退款")
    """

    def __init__(
        self,
        router: IntentRouter,
        scheduler: MultiIntentScheduler,
        chat_memory: ChatMemory,
        skill_index: Optional[SkillIndex] = None,
        config: Optional[PlanExecuteConfig] = None,
    ):
        self.router = router
        self.scheduler = scheduler
        self.chat_memory = chat_memory
        self.skill_index = skill_index
        self.config = config or PlanExecuteConfig()

    async def handle_turn(self, conversation_id: str, user_message: str) -> AsyncIterator[OrchestrationEvent]:
        """Stream the events of one turn; the last event is always ``done``."""
        final_text = None
        try:
            yield create_planning_event("🤔 正在理解您的问题...")

            history = await self.chat_memory.read(conversation_id)
            candidates = await self.skill_index.retrieve(user_message) if self.skill_index else None
            intents = await self.router.route(user_message, history, candidates)

            pending = await self.scheduler.pop_pending(conversation_id)
            if pending:
                intents = merge_intents(intents, pending)
                logger.info(f"[Orchestrator] Merged with pending: {[i.skill_name for i in intents]}")

            yield create_planning_event("💡 已理解，正在规划执行方案...")
            await self.chat_memory.append(conversation_id, "user", user_message)

            context_note = render_context_note(history, self.config.enriched_history)
            async for event in self.scheduler.run(conversation_id, user_message, intents, context_note):
                if event.type == EventType.RESULT:
                    final_text = event.content
                yield event
        except Exception as e:
            logger.error(f"[Orchestrator] Turn failed for {conversation_id}: {e}", exc_info=True)
            yield create_error_event(SYSTEM_ERROR_MESSAGE)

        if final_text:
            try:
                await self.chat_memory.append(conversation_id, "assistant", final_text)
            except Exception as e:
                logger.warning(f"[Orchestrator] Failed to record reply for {conversation_id}: {e}")

        yield create_done_event()

    async def handle_message(self, conversation_id: str, user_message: str) -> str:
        """Drain ``handle_turn`` and return the terminal result text."""
        final_text = ""
        error_text = ""
        async for event in self.handle_turn(conversation_id, user_message):
            if event.type == EventType.RESULT:
                final_text = event.content or ""
            elif event.type == EventType.ERROR:
                error_text = event.message or SYSTEM_ERROR_MESSAGE
        return final_text or error_text
