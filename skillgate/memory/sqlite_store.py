"""
SQLite backends (aiosqlite) for chat memory, pending intents and ask-user rounds
"""

import json
import logging
from typing import List

from ..constants import CHAT_MEMORY_WINDOW
from ..models import ChatMessage, Intent
from .base import AskUserRoundStore, ChatMemory, PendingIntentStore

logger = logging.getLogger(__name__)


def _require_aiosqlite():
    try:
        import aiosqlite
    except ImportError:
        raise ImportError(
            "aiosqlite is required for SQLite storage. "
            "Install it with: pip install aiosqlite"
        )
    return aiosqlite


class SQLiteChatMemory(ChatMemory):
    """
    Chat transcript in SQLite, trimmed to the last ``max_messages`` per conversation.
    """

    def __init__(self, db_path: str = "skillgate.db", max_messages: int = CHAT_MEMORY_WINDOW):
        self.db_path = db_path
        self.max_messages = max_messages
        self._initialized = False

    async def _ensure_initialized(self):
        if self._initialized:
            return
        aiosqlite = _require_aiosqlite()
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS chat_memory (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    conversation_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            """)
            await db.execute(
                "CREATE INDEX IF NOT EXISTS idx_chat_memory_conversation ON chat_memory(conversation_id)"
            )
            await db.commit()
        self._initialized = True

    async def append(self, conversation_id: str, role: str, text: str) -> None:
        import aiosqlite

        await self._ensure_initialized()
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "INSERT INTO chat_memory (conversation_id, role, content) VALUES (?, ?, ?)",
                (conversation_id, role, text),
            )
            await db.execute(
                """
                DELETE FROM chat_memory
                WHERE conversation_id = ? AND id NOT IN (
                    SELECT id FROM chat_memory WHERE conversation_id = ?
                    ORDER BY id DESC LIMIT ?
                )
                """,
                (conversation_id, conversation_id, self.max_messages),
            )
            await db.commit()

    async def read(self, conversation_id: str) -> List[ChatMessage]:
        import aiosqlite

        await self._ensure_initialized()
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(
                "SELECT role, content FROM chat_memory WHERE conversation_id = ? ORDER BY id",
                (conversation_id,),
            ) as cursor:
                rows = await cursor.fetchall()
        return [ChatMessage(role=row[0], text=row[1]) for row in rows]

    async def clear(self, conversation_id: str) -> None:
        import aiosqlite

        await self._ensure_initialized()
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("DELETE FROM chat_memory WHERE conversation_id = ?", (conversation_id,))
            await db.commit()


class SQLitePendingIntentStore(PendingIntentStore):
    """Pending intents in SQLite; ``replace`` is a delete followed by inserts."""

    def __init__(self, db_path: str = "skillgate.db"):
        self.db_path = db_path
        self._initialized = False

    async def _ensure_initialized(self):
        if self._initialized:
            return
        aiosqlite = _require_aiosqlite()
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS pending_intents (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    conversation_id TEXT NOT NULL,
                    intents TEXT NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            """)
            await db.execute(
                "CREATE INDEX IF NOT EXISTS idx_pending_conversation ON pending_intents(conversation_id)"
            )
            await db.commit()
        self._initialized = True

    async def get(self, conversation_id: str) -> List[Intent]:
        import aiosqlite

        await self._ensure_initialized()
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(
                "SELECT intents FROM pending_intents WHERE conversation_id = ? ORDER BY id DESC LIMIT 1",
                (conversation_id,),
            ) as cursor:
                row = await cursor.fetchone()
        if not row:
            return []
        try:
            return [Intent.from_dict(item) for item in json.loads(row[0])]
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"[PendingIntents] Corrupt pending intents for {conversation_id}: {e}")
            return []

    async def replace(self, conversation_id: str, intents: List[Intent]) -> None:
        import aiosqlite

        await self._ensure_initialized()
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("DELETE FROM pending_intents WHERE conversation_id = ?", (conversation_id,))
            if intents:
                await db.execute(
                    "INSERT INTO pending_intents (conversation_id, intents) VALUES (?, ?)",
                    (conversation_id, json.dumps([i.to_dict() for i in intents], ensure_ascii=False)),
                )
            await db.commit()
        logger.info(f"[PendingIntents] {conversation_id}: {len(intents)} pending")

    async def clear(self, conversation_id: str) -> None:
        import aiosqlite

        await self._ensure_initialized()
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("DELETE FROM pending_intents WHERE conversation_id = ?", (conversation_id,))
            await db.commit()


class SQLiteAskUserRounds(AskUserRoundStore):
    """Ask-user counters in SQLite, one row per (conversation, skill); zero deletes the row."""

    def __init__(self, db_path: str = "skillgate.db"):
        self.db_path = db_path
        self._initialized = False

    async def _ensure_initialized(self):
        if self._initialized:
            return
        aiosqlite = _require_aiosqlite()
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS ask_user_rounds (
                    conversation_id TEXT NOT NULL,
                    skill_name TEXT NOT NULL,
                    count INTEGER NOT NULL,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    PRIMARY KEY (conversation_id, skill_name)
                )
            """)
            await db.commit()
        self._initialized = True

    async def get(self, conversation_id: str, skill_name: str) -> int:
        import aiosqlite

        await self._ensure_initialized()
        async with aiosqlite.connect(self.db_path) as db:
            async with db.execute(
                "SELECT count FROM ask_user_rounds WHERE conversation_id = ? AND skill_name = ?",
                (conversation_id, skill_name),
            ) as cursor:
                row = await cursor.fetchone()
        return row[0] if row else 0

    async def set(self, conversation_id: str, skill_name: str, count: int) -> None:
        import aiosqlite

        await self._ensure_initialized()
        async with aiosqlite.connect(self.db_path) as db:
            if count > 0:
                await db.execute(
                    """
                    INSERT OR REPLACE INTO ask_user_rounds (conversation_id, skill_name, count, updated_at)
                    VALUES (?, ?, ?, CURRENT_TIMESTAMP)
                    """,
                    (conversation_id, skill_name, count),
                )
            else:
                await db.execute(
                    "DELETE FROM ask_user_rounds WHERE conversation_id = ? AND skill_name = ?",
                    (conversation_id, skill_name),
                )
            await db.commit()
