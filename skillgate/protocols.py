"""
SkillGate Protocols - Abstract interfaces for dependency injection

The orchestration core talks to the LLM through this protocol only, so any
provider client (or a test double) can be plugged in.
"""

from typing import Protocol, List, Dict, Any, Optional, runtime_checkable


@runtime_checkable
class LLMClientProtocol(Protocol):
    """
    Abstract interface for LLM clients

    Example:
        class MyLLMClient:
            async def chat_completion(self, messages, tools=None, config=None):
                ...
                return LLMResponse(content="...")
    """

    async def chat_completion(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict]] = None,
        config: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        Call LLM for chat completion

        Args:
            messages: List of message dicts with 'role' and 'content'
            tools: Optional list of tool schemas (OpenAI format)
            config: Optional configuration (temperature, max_tokens, ...)

        Returns:
            Object exposing ``content`` and ``tool_calls`` (see LLMResponse)
        """
        ...


@runtime_checkable
class EmbeddingClientProtocol(Protocol):
    """Abstract interface for text embedding providers"""

    async def embed(self, texts: List[str]) -> List[List[float]]:
        """Return one embedding vector per input text"""
        ...
