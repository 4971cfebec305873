"""
SkillGate Memory - conversation transcript, pending intents, ask-user rounds
"""

from .base import AskUserRoundStore, ChatMemory, PendingIntentStore
from .memory_store import AskUserRounds, InMemoryChatMemory, MemoryPendingIntentStore
from .sqlite_store import SQLiteAskUserRounds, SQLiteChatMemory, SQLitePendingIntentStore

__all__ = [
    "AskUserRoundStore",
    "ChatMemory",
    "PendingIntentStore",
    "AskUserRounds",
    "InMemoryChatMemory",
    "MemoryPendingIntentStore",
    "SQLiteAskUserRounds",
    "SQLiteChatMemory",
    "SQLitePendingIntentStore",
]
