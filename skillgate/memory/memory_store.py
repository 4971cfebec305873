"""
In-memory backends - single-process deployments and tests
"""

import logging
from collections import OrderedDict, deque
from typing import Deque, Dict, List, Tuple

from ..constants import ASK_USER_ROUNDS_MAX_ENTRIES, CHAT_MEMORY_WINDOW
from ..models import ChatMessage, Intent
from .base import AskUserRoundStore, ChatMemory, PendingIntentStore

logger = logging.getLogger(__name__)


class InMemoryChatMemory(ChatMemory):
    """Keeps the last ``max_messages`` messages of every conversation."""

    def __init__(self, max_messages: int = CHAT_MEMORY_WINDOW):
        self.max_messages = max_messages
        self._conversations: Dict[str, Deque[ChatMessage]] = {}

    async def append(self, conversation_id: str, role: str, text: str) -> None:
        messages = self._conversations.setdefault(
            conversation_id, deque(maxlen=self.max_messages)
        )
        messages.append(ChatMessage(role=role, text=text))

    async def read(self, conversation_id: str) -> List[ChatMessage]:
        return list(self._conversations.get(conversation_id, ()))

    async def clear(self, conversation_id: str) -> None:
        self._conversations.pop(conversation_id, None)


class MemoryPendingIntentStore(PendingIntentStore):

    def __init__(self):
        self._pending: Dict[str, List[Intent]] = {}

    async def get(self, conversation_id: str) -> List[Intent]:
        return list(self._pending.get(conversation_id, []))

    async def replace(self, conversation_id: str, intents: List[Intent]) -> None:
        if intents:
            self._pending[conversation_id] = list(intents)
        else:
            self._pending.pop(conversation_id, None)
        logger.info(f"[PendingIntents] {conversation_id}: {len(intents)} pending")

    async def clear(self, conversation_id: str) -> None:
        self._pending.pop(conversation_id, None)


class AskUserRounds(AskUserRoundStore):
    """
    Process-local ask-user counters.

    Holds at most ``max_entries`` (conversation, skill) pairs; the least
    recently updated pair is evicted first, so conversations abandoned
    mid-question do not accumulate.
    """

    def __init__(self, max_entries: int = ASK_USER_ROUNDS_MAX_ENTRIES):
        self.max_entries = max_entries
        self._rounds: "OrderedDict[Tuple[str, str], int]" = OrderedDict()

    async def get(self, conversation_id: str, skill_name: str) -> int:
        return self._rounds.get((conversation_id, skill_name), 0)

    async def set(self, conversation_id: str, skill_name: str, count: int) -> None:
        key = (conversation_id, skill_name)
        self._rounds.pop(key, None)
        if count <= 0:
            return
        self._rounds[key] = count
        while len(self._rounds) > self.max_entries:
            self._rounds.popitem(last=False)
