"""
SkillGate LLM Client - Unified LLM client via litellm

Usage:
    from skillgate.llm import LiteLLMClient, LLMConfig

    config = LLMConfig(model="gpt-4o", api_key="sk-xxx")
    client = LiteLLMClient(config=config, provider_name="openai")
    response = await client.chat_completion(messages=[...])
"""

from .base import BaseLLMClient, LLMConfig, LLMResponse, StopReason, ToolCall, Usage
from .litellm_client import LiteLLMClient, LiteLLMEmbeddingClient, build_litellm_model_string

__all__ = [
    "BaseLLMClient",
    "LLMConfig",
    "LLMResponse",
    "StopReason",
    "ToolCall",
    "Usage",
    "LiteLLMClient",
    "LiteLLMEmbeddingClient",
    "build_litellm_model_string",
]
