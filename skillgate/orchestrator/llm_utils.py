"""Bounded LLM calls shared by the router, the engine and the scheduler."""

import asyncio
from typing import Any, Dict, List, Optional

from ..protocols import LLMClientProtocol


async def call_llm(
    llm_client: LLMClientProtocol,
    messages: List[Dict[str, Any]],
    timeout: float,
    tools: Optional[List[Any]] = None,
    **config: Any,
) -> str:
    """Run one completion under ``timeout`` seconds and return its text.

    Raises whatever the client raises, or ``asyncio.TimeoutError``.
    """
    response = await asyncio.wait_for(
        llm_client.chat_completion(messages=messages, tools=tools, config=config or None),
        timeout=timeout,
    )
    return (response.content or "").strip()
