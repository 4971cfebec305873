"""Intent Router - classifies a user message into ordered (skill, sub-task) intents.

One lightweight LLM call per turn. The router never returns an empty route:
any failure or unparseable answer falls back to a single intent for the
fallback skill carrying the full user message.
"""

import logging
from typing import List, Optional, Sequence

from ..models import ChatMessage, Intent
from ..protocols import LLMClientProtocol
from ..skills.loader import SkillCatalog
from ..skills.models import SkillDefinition
from .config import PlanExecuteConfig
from .llm_utils import call_llm
from .parsing import parse_routing
from .prompts import build_router_messages

logger = logging.getLogger(__name__)


class IntentRouter:
    """LLM-based skill router with multi-intent decomposition."""

    def __init__(
        self,
        llm_client: LLMClientProtocol,
        catalog: SkillCatalog,
        config: Optional[PlanExecuteConfig] = None,
    ):
        self.llm_client = llm_client
        self.catalog = catalog
        self.config = config or PlanExecuteConfig()

    async def route(
        self,
        user_message: str,
        history: Optional[Sequence[ChatMessage]] = None,
        candidates: Optional[Sequence[SkillDefinition]] = None,
    ) -> List[Intent]:
        """Return intents in the order the user asked for them.

        Args:
            user_message: Raw user message
            history: Conversation transcript, oldest first
            candidates: Pre-filtered skills shown to the LLM (default: all)
        """
        candidates = list(candidates) if candidates else self.catalog.list_skill_definitions()
        recent = list(history or [])[-self.config.history_limit:]
        messages = build_router_messages(
            user_message,
            candidates,
            recent,
            self.config.assistant_truncate,
            fallback_skill=self.config.fallback_skill,
        )

        try:
            raw = await call_llm(
                self.llm_client,
                messages,
                timeout=self.config.llm_timeout,
                temperature=self.config.routing_temperature,
                max_tokens=400,
            )
        except Exception as e:
            logger.warning(f"[IntentRouter] LLM call failed: {e}")
            return self._fallback(user_message)

        logger.debug(f"[IntentRouter] Raw routing output: {raw!r}")
        intents = parse_routing(raw, self.catalog.names, user_message)
        if not intents:
            logger.warning(f"[IntentRouter] No skill matched in {raw!r}, using {self.config.fallback_skill}")
            return self._fallback(user_message)

        logger.info(
            f"[IntentRouter] {len(intents)} intent(s): "
            + ", ".join(f"{i.skill_name}|{i.sub_task}" for i in intents)
        )
        return intents

    def _fallback(self, user_message: str) -> List[Intent]:
        """Safe fallback: one intent for the fallback skill with the full message."""
        return [Intent(skill_name=self.config.fallback_skill, sub_task=user_message)]
