"""
SkillGate Application - Single entry point for the skill gateway.

Usage:
    from skillgate import SkillGate

    app = SkillGate("config.yaml")

    # Streaming
    async for event in app.handle_turn("conv-1", "北京天气怎么样"):
        print(event.to_dict())

    # Request/response
    text = await app.chat("conv-1", "查一下ORD20250201001的物流")
"""

import asyncio
import logging
import os
import re
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from .constants import SYSTEM_ERROR_MESSAGE
from .mcp.models import MCPServerConfig
from .streaming.models import OrchestrationEvent, create_done_event, create_error_event

logger = logging.getLogger(__name__)

STORAGE_BACKENDS = ("memory", "sqlite")


def _load_config(path: str) -> dict:
    """Read YAML config file with ${VAR} environment variable substitution."""
    try:
        import yaml
    except ImportError:
        raise ImportError(
            "pyyaml is required for config file loading. "
            "Install with: pip install pyyaml"
        )

    with open(path, "r", encoding="utf-8") as f:
        raw = f.read()

    def _replace_env(match):
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ValueError(
                f"Environment variable '{var_name}' not set "
                f"(referenced in config file '{path}')"
            )
        return value

    resolved = re.sub(r"\$\{(\w+)\}", _replace_env, raw)
    return yaml.safe_load(resolved) or {}


class SkillGate:
    """
    SkillGate Application entry point.

    Sync constructor reads and validates config; async initialization
    (tool-server connections, skill catalog, stores) is deferred to the
    first call that needs it.

    Args:
        config: Path to YAML configuration file.
        llm_client: Optional LLM client overriding the ``llm`` section.
        mcp_client_factory: Optional factory building tool-server clients.
        embedding_client: Optional embedding client overriding ``embedding``.
    """

    def __init__(
        self,
        config: str,
        llm_client: Any = None,
        mcp_client_factory: Optional[Callable[[MCPServerConfig], Any]] = None,
        embedding_client: Any = None,
    ):
        self._config_path = Path(config).resolve()
        self._config = _load_config(config)
        self._initialized = False
        self._init_lock = asyncio.Lock()

        llm_cfg = self._config.get("llm") or {}
        if llm_client is None and not llm_cfg.get("model"):
            raise ValueError("Missing required config field: 'llm.model'")
        servers = self._config.get("mcp_servers") or {}
        if not servers:
            raise ValueError("Missing required config field: 'mcp_servers'")
        self._server_configs = [MCPServerConfig.from_dict(name, data) for name, data in servers.items()]
        backend = (self._config.get("storage") or {}).get("backend", "memory")
        if backend not in STORAGE_BACKENDS:
            raise ValueError(f"Unknown storage backend: {backend}")

        from .orchestrator.config import PlanExecuteConfig
        engine_cfg = dict(self._config.get("engine") or {})
        if self._config.get("fallback_skill"):
            engine_cfg["fallback_skill"] = self._config["fallback_skill"]
        self._engine_config = PlanExecuteConfig.from_dict(engine_cfg)

        self._llm_client = llm_client
        self._embedding_client = embedding_client
        self._mcp_client_factory = mcp_client_factory

        # Will be set during lazy initialization
        self._connection_manager = None
        self._catalog = None
        self._skill_index = None
        self._orchestrator = None

    @property
    def config(self) -> dict:
        return self._config

    def _resolve_path(self, value: str) -> Path:
        path = Path(value)
        return path if path.is_absolute() else self._config_path.parent / path

    async def _ensure_initialized(self) -> None:
        """Lazy initialization, runs once."""
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            try:
                await self._initialize()
            except Exception:
                await self._discard_partial_init()
                raise
            self._initialized = True

    async def _discard_partial_init(self) -> None:
        """Close tool-server sessions opened by a failed initialization."""
        if self._connection_manager is not None:
            try:
                await self._connection_manager.shutdown()
            except Exception as e:
                logger.warning(f"Failed to close tool-servers after init failure: {e}")
        self._connection_manager = None
        self._orchestrator = None

    async def _initialize(self) -> None:
        cfg = self._config
        engine_config = self._engine_config

        # 1. LLM client
        if self._llm_client is None:
            from .llm.base import LLMConfig
            from .llm.litellm_client import LiteLLMClient
            llm_cfg = cfg["llm"]
            llm_config = LLMConfig(
                model=llm_cfg["model"],
                api_key=llm_cfg.get("api_key"),
                base_url=llm_cfg.get("base_url"),
                temperature=llm_cfg.get("temperature", 0.3),
                max_tokens=llm_cfg.get("max_tokens", 2048),
                timeout=llm_cfg.get("timeout", engine_config.llm_timeout),
            )
            self._llm_client = LiteLLMClient(config=llm_config, provider_name=llm_cfg.get("provider", "openai"))

        # 2. Embeddings for the skill pre-filter (optional)
        embedding_cfg = cfg.get("embedding")
        if self._embedding_client is None and embedding_cfg and embedding_cfg.get("model"):
            from .llm.litellm_client import LiteLLMEmbeddingClient
            self._embedding_client = LiteLLMEmbeddingClient(
                model=embedding_cfg["model"],
                provider_name=embedding_cfg.get("provider", "openai"),
                api_key=embedding_cfg.get("api_key"),
                base_url=embedding_cfg.get("base_url"),
            )

        # 3. Tool-servers
        from .mcp.manager import ToolConnectionManager
        self._connection_manager = ToolConnectionManager(
            self._server_configs,
            client_factory=self._mcp_client_factory,
            list_timeout=engine_config.tool_list_timeout,
        )
        await self._connection_manager.connect_all()

        # 4. Skills
        from .skills.index import SkillIndex
        from .skills.loader import SkillCatalog
        from .skills.resolver import ToolResolver
        self._catalog = SkillCatalog(str(self._resolve_path(cfg.get("skills_dir", "skills"))))
        self._catalog.load()
        if engine_config.fallback_skill not in self._catalog:
            logger.warning(f"Fallback skill '{engine_config.fallback_skill}' is not defined")
        self._skill_index = SkillIndex(
            self._catalog,
            embedder=self._embedding_client,
            top_k=engine_config.skill_top_k,
            fallback_skill=engine_config.fallback_skill,
        )
        resolver = ToolResolver(self._connection_manager)

        # 5. Stores
        chat_memory, pending_store, ask_user_rounds = self._build_stores(cfg.get("storage") or {})

        # 6. Orchestration
        from .orchestrator.engine import PlanExecuteEngine
        from .orchestrator.intent_router import IntentRouter
        from .orchestrator.orchestrator import Orchestrator
        from .orchestrator.scheduler import MultiIntentScheduler
        from .tools.executor import ToolExecutor
        engine = PlanExecuteEngine(
            self._llm_client,
            self._catalog,
            resolver,
            ToolExecutor(self._llm_client, self._connection_manager),
            config=engine_config,
        )
        scheduler = MultiIntentScheduler(
            engine,
            self._llm_client,
            self._catalog,
            pending_store,
            ask_user_rounds=ask_user_rounds,
            config=engine_config,
        )
        self._orchestrator = Orchestrator(
            IntentRouter(self._llm_client, self._catalog, config=engine_config),
            scheduler,
            chat_memory,
            skill_index=self._skill_index,
            config=engine_config,
        )
        logger.info(
            f"SkillGate initialized: {len(self._catalog)} skills, "
            f"{len(self._server_configs)} tool-servers"
        )

    def _build_stores(self, storage_cfg: dict):
        backend = storage_cfg.get("backend", "memory")
        window = self._engine_config.memory_window
        if backend == "sqlite":
            from .memory.sqlite_store import SQLiteAskUserRounds, SQLiteChatMemory, SQLitePendingIntentStore
            db_path = str(self._resolve_path(storage_cfg.get("path", "skillgate.db")))
            return (
                SQLiteChatMemory(db_path, max_messages=window),
                SQLitePendingIntentStore(db_path),
                SQLiteAskUserRounds(db_path),
            )
        from .memory.memory_store import AskUserRounds, InMemoryChatMemory, MemoryPendingIntentStore
        return InMemoryChatMemory(max_messages=window), MemoryPendingIntentStore(), AskUserRounds()

    # ── Conversation ──

    async def handle_turn(self, conversation_id: str, message: str) -> AsyncIterator[OrchestrationEvent]:
        """Stream the events of one turn (always ends with ``done``)."""
        try:
            await self._ensure_initialized()
        except Exception as e:
            logger.error(f"SkillGate initialization failed: {e}", exc_info=True)
            yield create_error_event(SYSTEM_ERROR_MESSAGE)
            yield create_done_event()
            return
        async for event in self._orchestrator.handle_turn(conversation_id, message):
            yield event

    async def chat(self, conversation_id: str, message: str) -> str:
        """Run one turn and return only its final text."""
        try:
            await self._ensure_initialized()
        except Exception as e:
            logger.error(f"SkillGate initialization failed: {e}", exc_info=True)
            return SYSTEM_ERROR_MESSAGE
        return await self._orchestrator.handle_message(conversation_id, message)

    # ── Operational controls ──

    async def reconnect(self, server: Optional[str] = None) -> Dict[str, bool]:
        """Reconnect one named tool-server, or all of them when ``server`` is None."""
        await self._ensure_initialized()
        if server:
            return {server: await self._connection_manager.reconnect(server)}
        return await self._connection_manager.reconnect_all()

    async def list_available_tools(self) -> List[Dict[str, str]]:
        await self._ensure_initialized()
        return [tool.to_dict() for tool in await self._connection_manager.get_all_tools()]

    async def list_skills(self) -> Dict[str, str]:
        await self._ensure_initialized()
        return self._catalog.list_skills()

    async def shutdown(self) -> None:
        """Close tool-server sessions and the LLM client."""
        if not self._initialized:
            return
        await self._connection_manager.shutdown()
        if hasattr(self._llm_client, "close"):
            await self._llm_client.close()
        self._initialized = False
        logger.info("SkillGate shut down")
