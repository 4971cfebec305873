"""
Storage interfaces for conversation-scoped state
"""

from abc import ABC, abstractmethod
from typing import List

from ..models import ChatMessage, Intent


class ChatMemory(ABC):
    """Append/read log of a conversation's transcript"""

    @abstractmethod
    async def append(self, conversation_id: str, role: str, text: str) -> None:
        """Append one message"""
        pass

    @abstractmethod
    async def read(self, conversation_id: str) -> List[ChatMessage]:
        """Messages of the conversation, oldest first"""
        pass

    @abstractmethod
    async def clear(self, conversation_id: str) -> None:
        pass


class PendingIntentStore(ABC):
    """
    Intents left over when a turn stopped to ask the user a question.

    At most one pending list exists per conversation: ``replace`` overwrites it.
    """

    @abstractmethod
    async def get(self, conversation_id: str) -> List[Intent]:
        pass

    @abstractmethod
    async def replace(self, conversation_id: str, intents: List[Intent]) -> None:
        pass

    @abstractmethod
    async def clear(self, conversation_id: str) -> None:
        pass

    async def pop(self, conversation_id: str) -> List[Intent]:
        """Read then delete."""
        intents = await self.get(conversation_id)
        if intents:
            await self.clear(conversation_id)
        return intents


class AskUserRoundStore(ABC):
    """
    Consecutive clarifying questions per (conversation, skill).

    Seeds ExecutionContext.ask_user_count so the ask-user bound holds across
    turns. A count of zero means no entry.
    """

    @abstractmethod
    async def get(self, conversation_id: str, skill_name: str) -> int:
        pass

    @abstractmethod
    async def set(self, conversation_id: str, skill_name: str, count: int) -> None:
        pass

    async def reset(self, conversation_id: str, skill_name: str) -> None:
        await self.set(conversation_id, skill_name, 0)
