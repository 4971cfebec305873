"""
SkillGate LiteLLM Client - Unified LLM client powered by litellm

Supports all providers through a single client:
- OpenAI (GPT-4o, o-series)
- Anthropic (Claude)
- Azure OpenAI
- Google Gemini
- Ollama (local models)
- DashScope (Qwen, Deepseek via OpenAI-compatible mode)
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional

from .base import (
    BaseLLMClient,
    LLMConfig,
    LLMResponse,
    ToolCall,
    Usage,
    StopReason,
)

logger = logging.getLogger(__name__)

# Provider -> default environment variable for API key
_PROVIDER_ENV_VARS: Dict[str, Optional[str]] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_OPENAI_API_KEY",
    "dashscope": "DASHSCOPE_API_KEY",
    "gemini": "GOOGLE_API_KEY",
    "ollama": None,
}


def build_litellm_model_string(provider: str, model: str) -> str:
    """Map provider + model to the litellm model string.

    litellm uses prefixed model strings to route to the correct provider.
    See https://docs.litellm.ai/docs/providers
    """
    provider = provider.lower()
    if provider == "openai":
        return model
    if provider in ("anthropic", "azure", "gemini", "ollama"):
        return f"{provider}/{model}"
    if provider == "dashscope":
        # DashScope uses OpenAI-compatible mode via base_url
        return f"openai/{model}"
    return model


def _resolve_api_key(provider: str, api_key: Optional[str]) -> Optional[str]:
    """Explicit key wins, then the provider's conventional environment variable."""
    if api_key:
        return api_key
    env_var = _PROVIDER_ENV_VARS.get(provider)
    return os.environ.get(env_var) if env_var else None


class LiteLLMClient(BaseLLMClient):
    """
    Unified LLM client powered by litellm.

    Example:
        from skillgate.llm import LiteLLMClient, LLMConfig

        config = LLMConfig(model="qwen-plus", base_url="https://dashscope.aliyuncs.com/compatible-mode/v1")
        client = LiteLLMClient(config=config, provider_name="dashscope")
        response = await client.chat_completion([
            {"role": "user", "content": "你好"}
        ])
    """

    def __init__(
        self,
        config: Optional[LLMConfig] = None,
        provider_name: str = "openai",
        **kwargs,
    ):
        if config is None:
            if "model" not in kwargs:
                raise ValueError("model is required")
            model = kwargs.pop("model")
            config = LLMConfig(model=model, **kwargs)
            kwargs = {}

        super().__init__(config, **kwargs)

        self.provider = provider_name.lower()
        self._litellm_model = build_litellm_model_string(self.provider, self.config.model)

        api_key = _resolve_api_key(self.provider, self.config.api_key)
        self._base_kwargs: Dict[str, Any] = {"num_retries": self.config.max_retries}
        if self.config.base_url:
            self._base_kwargs["api_base"] = self.config.base_url
        if api_key:
            self._base_kwargs["api_key"] = api_key

        logger.info(
            f"LiteLLMClient initialized: provider={self.provider}, "
            f"litellm_model={self._litellm_model}"
        )

    async def _call_api(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        **kwargs,
    ) -> LLMResponse:
        """Make a non-streaming call via litellm.acompletion."""
        import litellm

        model = kwargs.get("model") or self._litellm_model
        params: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            **self._model_params(**kwargs),
            **self._base_kwargs,
        }

        if tools:
            params["tools"] = tools
            params["tool_choice"] = kwargs.get("tool_choice", "auto")

        logger.debug(
            f"[LiteLLM] model={model}, tools={len(tools) if tools else 0}, "
            f"messages={len(messages)}"
        )

        response = await litellm.acompletion(**params)

        choice = response.choices[0]
        message = choice.message

        tool_calls = None
        if message.tool_calls:
            tool_calls = []
            for tc in message.tool_calls:
                arguments = tc.function.arguments
                if isinstance(arguments, str):
                    try:
                        arguments = json.loads(arguments) if arguments else {}
                    except json.JSONDecodeError:
                        logger.warning(f"[LiteLLM] Malformed tool arguments for {tc.function.name}: {arguments}")
                        arguments = {}
                tool_calls.append(
                    ToolCall(id=tc.id, name=tc.function.name, arguments=arguments)
                )

        usage = None
        if getattr(response, "usage", None):
            usage = Usage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )
            if self.config.track_costs:
                try:
                    usage.cost = litellm.completion_cost(completion_response=response)
                except Exception as e:
                    logger.debug(f"[LiteLLM] Cost unavailable for {model}: {e}")

        return LLMResponse(
            content=message.content or "",
            tool_calls=tool_calls,
            stop_reason=self._parse_stop_reason(choice.finish_reason),
            usage=usage,
            model=getattr(response, "model", self.config.model),
            raw_response=response,
        )

    def _model_params(self, **kwargs) -> Dict[str, Any]:
        """Sampling parameters: per-call overrides over the client config."""
        return {
            "temperature": kwargs.get("temperature", self.config.temperature),
            "max_tokens": kwargs.get("max_tokens", self.config.max_tokens),
        }

    @staticmethod
    def _parse_stop_reason(finish_reason: Optional[str]) -> StopReason:
        """Map litellm/OpenAI finish_reason to StopReason enum."""
        if finish_reason is None:
            return StopReason.END_TURN
        mapping = {
            "stop": StopReason.END_TURN,
            "end_turn": StopReason.END_TURN,
            "length": StopReason.MAX_TOKENS,
            "max_tokens": StopReason.MAX_TOKENS,
            "tool_calls": StopReason.TOOL_USE,
            "tool_use": StopReason.TOOL_USE,
            "function_call": StopReason.TOOL_USE,
            "content_filter": StopReason.CONTENT_FILTER,
            "stop_sequence": StopReason.STOP_SEQUENCE,
        }
        return mapping.get(finish_reason, StopReason.END_TURN)


class LiteLLMEmbeddingClient:
    """Text embeddings through litellm.aembedding, used by the skill index."""

    def __init__(
        self,
        model: str,
        provider_name: str = "openai",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        self.provider = provider_name.lower()
        self._litellm_model = build_litellm_model_string(self.provider, model)
        self._base_kwargs: Dict[str, Any] = {}
        api_key = _resolve_api_key(self.provider, api_key)
        if api_key:
            self._base_kwargs["api_key"] = api_key
        if base_url:
            self._base_kwargs["api_base"] = base_url

    async def embed(self, texts: List[str]) -> List[List[float]]:
        import litellm

        response = await litellm.aembedding(
            model=self._litellm_model,
            input=texts,
            **self._base_kwargs,
        )
        vectors = []
        for item in response.data:
            vectors.append(item["embedding"] if isinstance(item, dict) else item.embedding)
        return vectors
