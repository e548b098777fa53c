"""Read-only catalog of models and providers.

The catalog is built once at import time. ``ModelRegistry`` wraps it in an
immutable view that request-scoped components share by reference; extending
the catalog from configuration produces a new registry instead of mutating
the existing one.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from edge_ai_dispatch.core.exceptions import AIError, AIErrorCode
from edge_ai_dispatch.providers.resolver import LOCAL_EDGE_PROVIDER, resolve

ModelTier = Literal["flagship", "balanced", "fast", "specialized", "reasoning"]


class ModelConfig(BaseModel):
    """Capabilities and limits of a single model."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Canonical model identifier")
    display_name: str
    provider: str
    context_window: int = Field(gt=0)
    max_output_tokens: int = Field(gt=0)
    is_reasoning: bool = False
    supports_streaming: bool = True
    supports_tools: bool = False
    supports_vision: bool = False
    tier: ModelTier = "balanced"
    description: str = ""


class ProviderInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    is_free: bool = False


def _edge(model_id: str, display_name: str, **kwargs) -> ModelConfig:
    return ModelConfig(
        id=model_id, display_name=display_name, provider=LOCAL_EDGE_PROVIDER, **kwargs
    )


def _external(model_id: str, display_name: str, **kwargs) -> ModelConfig:
    return ModelConfig(
        id=model_id,
        display_name=display_name,
        provider=resolve(model_id).provider,
        **kwargs,
    )


_BUILTIN_MODELS: tuple[ModelConfig, ...] = (
    # Edge-hosted models
    _edge(
        "@cf/meta/llama-3.3-70b-instruct-fp8-fast",
        "Llama 3.3 70B",
        context_window=128000,
        max_output_tokens=2000,
        supports_tools=True,
        tier="flagship",
        description="Most capable edge model, supports function calling",
    ),
    _edge(
        "@cf/meta/llama-3.1-8b-instruct",
        "Llama 3.1 8B",
        context_window=7968,
        max_output_tokens=1000,
        description="Reliable general purpose model",
    ),
    _edge(
        "@cf/meta/llama-3.1-8b-instruct-fast",
        "Llama 3.1 8B Fast",
        context_window=128000,
        max_output_tokens=1000,
        description="Speed-optimised variant of Llama 3.1 8B",
    ),
    _edge(
        "@cf/meta/llama-3.2-3b-instruct",
        "Llama 3.2 3B",
        context_window=128000,
        max_output_tokens=500,
        tier="fast",
        description="Smallest and cheapest edge model",
    ),
    _edge(
        "@cf/meta/llama-4-scout-17b-16e-instruct",
        "Llama 4 Scout 17B",
        context_window=128000,
        max_output_tokens=2000,
        supports_tools=True,
        supports_vision=True,
        description="Multimodal mixture-of-experts model",
    ),
    _edge(
        "@cf/qwen/qwq-32b",
        "QwQ 32B",
        context_window=24000,
        max_output_tokens=2000,
        is_reasoning=True,
        tier="reasoning",
        description="Reasoning model that emits <think> blocks",
    ),
    _edge(
        "@cf/qwen/qwen2.5-coder-32b-instruct",
        "Qwen 2.5 Coder 32B",
        context_window=32000,
        max_output_tokens=2000,
        tier="specialized",
        description="Code generation",
    ),
    _edge(
        "@cf/qwen/qwen3-30b-a3b-fp8",
        "Qwen 3 30B",
        context_window=32000,
        max_output_tokens=2000,
        supports_tools=True,
    ),
    _edge(
        "@cf/google/gemma-3-12b-it",
        "Gemma 3 12B",
        context_window=80000,
        max_output_tokens=1000,
        supports_vision=True,
        description="Multilingual model with vision",
    ),
    _edge(
        "@hf/nousresearch/hermes-2-pro-mistral-7b",
        "Hermes 2 Pro 7B",
        context_window=8000,
        max_output_tokens=1000,
        supports_tools=True,
        tier="fast",
        description="Small model tuned for function calling",
    ),
    _edge(
        "@cf/ibm/granite-4.0-h-micro",
        "Granite 4.0 Micro",
        context_window=8000,
        max_output_tokens=1000,
        supports_tools=True,
        tier="fast",
    ),
    # Models routed through the gateway
    _external(
        "openai/gpt-4o",
        "GPT-4o",
        context_window=128000,
        max_output_tokens=4096,
        supports_tools=True,
        supports_vision=True,
        tier="flagship",
    ),
    _external(
        "openai/gpt-4o-mini",
        "GPT-4o Mini",
        context_window=128000,
        max_output_tokens=4096,
        supports_tools=True,
        supports_vision=True,
        tier="fast",
    ),
    _external(
        "anthropic/claude-sonnet-4-5-20250929",
        "Claude Sonnet 4.5",
        context_window=200000,
        max_output_tokens=8192,
        supports_tools=True,
        supports_vision=True,
        tier="flagship",
    ),
    _external(
        "anthropic/claude-3-5-sonnet-20241022",
        "Claude 3.5 Sonnet",
        context_window=200000,
        max_output_tokens=8192,
        supports_tools=True,
        supports_vision=True,
    ),
    _external(
        "google-ai-studio/gemini-2.5-flash",
        "Gemini 2.5 Flash",
        context_window=1000000,
        max_output_tokens=8192,
        supports_tools=True,
        supports_vision=True,
        tier="fast",
    ),
    _external(
        "google-ai-studio/gemini-2.5-pro",
        "Gemini 2.5 Pro",
        context_window=1000000,
        max_output_tokens=8192,
        supports_tools=True,
        supports_vision=True,
        tier="flagship",
    ),
    _external(
        "groq/llama-3.3-70b-versatile",
        "Llama 3.3 70B (Groq)",
        context_window=128000,
        max_output_tokens=4096,
        supports_tools=True,
        tier="flagship",
    ),
    _external(
        "deepseek/deepseek-chat",
        "DeepSeek Chat",
        context_window=64000,
        max_output_tokens=4096,
        supports_tools=True,
    ),
    _external(
        "qwen/reasoner",
        "Qwen Reasoner",
        context_window=32000,
        max_output_tokens=2000,
        is_reasoning=True,
        tier="reasoning",
    ),
    _external(
        "openrouter/openai/gpt-4o-mini",
        "GPT-4o Mini (OpenRouter)",
        context_window=128000,
        max_output_tokens=4096,
        supports_tools=True,
        tier="fast",
        description="Passed through to OpenRouter unchanged",
    ),
)

MODEL_CATALOG: Mapping[str, ModelConfig] = MappingProxyType(
    {model.id: model for model in _BUILTIN_MODELS}
)

PROVIDERS: Mapping[str, ProviderInfo] = MappingProxyType(
    {
        info.id: info
        for info in (
            ProviderInfo(
                id=LOCAL_EDGE_PROVIDER,
                name="Edge AI",
                description="Models hosted on the edge platform",
                is_free=True,
            ),
            ProviderInfo(id="openai", name="OpenAI"),
            ProviderInfo(id="anthropic", name="Anthropic"),
            ProviderInfo(id="google-ai-studio", name="Google AI Studio"),
            ProviderInfo(id="groq", name="Groq"),
            ProviderInfo(id="mistral", name="Mistral AI"),
            ProviderInfo(id="deepseek", name="DeepSeek"),
            ProviderInfo(id="cohere", name="Cohere"),
            ProviderInfo(id="grok", name="xAI (Grok)"),
            ProviderInfo(id="openrouter", name="OpenRouter"),
        )
    }
)

DEFAULT_MODEL = "@cf/meta/llama-3.1-8b-instruct"

DEFAULT_MODELS: Mapping[str, str] = MappingProxyType(
    {
        LOCAL_EDGE_PROVIDER: "@cf/meta/llama-3.3-70b-instruct-fp8-fast",
        "openai": "openai/gpt-4o-mini",
        "anthropic": "anthropic/claude-sonnet-4-5-20250929",
        "google-ai-studio": "google-ai-studio/gemini-2.5-flash",
        "groq": "groq/llama-3.3-70b-versatile",
        "deepseek": "deepseek/deepseek-chat",
    }
)

MODEL_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "llama-8b": "@cf/meta/llama-3.1-8b-instruct",
        "llama-8b-fast": "@cf/meta/llama-3.1-8b-instruct-fast",
        "llama-3b": "@cf/meta/llama-3.2-3b-instruct",
        "llama-70b": "@cf/meta/llama-3.3-70b-instruct-fp8-fast",
        "llama-scout": "@cf/meta/llama-4-scout-17b-16e-instruct",
        "qwq-32b": "@cf/qwen/qwq-32b",
        "qwen-coder": "@cf/qwen/qwen2.5-coder-32b-instruct",
        "qwen-30b": "@cf/qwen/qwen3-30b-a3b-fp8",
        "gemma-12b": "@cf/google/gemma-3-12b-it",
        "hermes-7b": "@hf/nousresearch/hermes-2-pro-mistral-7b",
        "granite-micro": "@cf/ibm/granite-4.0-h-micro",
    }
)

RECOMMENDED_MODELS: Mapping[str, str] = MappingProxyType(
    {
        "general": "@cf/meta/llama-3.1-8b-instruct",
        "fast": "@cf/meta/llama-3.1-8b-instruct-fast",
        "cheap": "@cf/meta/llama-3.2-3b-instruct",
        "quality": "@cf/meta/llama-3.3-70b-instruct-fp8-fast",
        "reasoning": "@cf/qwen/qwq-32b",
        "code": "@cf/qwen/qwen2.5-coder-32b-instruct",
        "multilingual": "@cf/google/gemma-3-12b-it",
        "tools": "@cf/meta/llama-3.3-70b-instruct-fp8-fast",
        "tools-fast": "@cf/meta/llama-4-scout-17b-16e-instruct",
        "tools-cheap": "@hf/nousresearch/hermes-2-pro-mistral-7b",
    }
)


def resolve_alias(name: str) -> str:
    """Map a short alias to its model id; other strings pass through."""
    return MODEL_ALIASES.get(name, name)


def recommended_model(use_case: str) -> str:
    try:
        return RECOMMENDED_MODELS[use_case]
    except KeyError:
        raise ValueError(
            f"Unknown use case '{use_case}'. Choose from: {', '.join(RECOMMENDED_MODELS)}"
        ) from None


class ModelRegistry:
    """Immutable lookup over a model catalog."""

    def __init__(
        self,
        models: Iterable[ModelConfig] | Mapping[str, ModelConfig] = MODEL_CATALOG,
        providers: Mapping[str, ProviderInfo] = PROVIDERS,
    ):
        if isinstance(models, Mapping):
            models = models.values()
        self._models: Mapping[str, ModelConfig] = MappingProxyType(
            {model.id: model for model in models}
        )
        self._providers = providers

    def __len__(self) -> int:
        return len(self._models)

    def __contains__(self, model_id: object) -> bool:
        return isinstance(model_id, str) and self.get(model_id) is not None

    def __iter__(self):
        return iter(self._models.values())

    def get(self, model_id: str) -> ModelConfig | None:
        """Look up a model by id, alias or any form resolving to a catalog entry."""
        model_id = resolve_alias(model_id)
        config = self._models.get(model_id)
        if config is None:
            config = self._models.get(resolve(model_id).canonical_id)
        return config

    def require(self, model_id: str) -> ModelConfig:
        config = self.get(model_id)
        if config is None:
            raise AIError(
                f"Model not found in registry: {model_id}",
                AIErrorCode.MODEL_NOT_FOUND,
                model=model_id,
            )
        return config

    def supports_tools(self, model_id: str) -> bool:
        config = self.get(model_id)
        return config is not None and config.supports_tools

    def supports_streaming(self, model_id: str) -> bool:
        """Unknown models are assumed to stream; the upstream decides."""
        config = self.get(model_id)
        return config is None or config.supports_streaming

    def is_reasoning(self, model_id: str) -> bool:
        config = self.get(model_id)
        return config is not None and config.is_reasoning

    def list_models(
        self, provider: str | None = None, tier: str | None = None
    ) -> list[ModelConfig]:
        return [
            model
            for model in self._models.values()
            if (provider is None or model.provider == provider)
            and (tier is None or model.tier == tier)
        ]

    def tool_capable_models(self) -> list[ModelConfig]:
        return [model for model in self._models.values() if model.supports_tools]

    def providers(self) -> list[ProviderInfo]:
        return list(self._providers.values())

    def free_providers(self) -> list[ProviderInfo]:
        return [p for p in self._providers.values() if p.is_free]

    def with_models(self, extra: Iterable[ModelConfig]) -> ModelRegistry:
        """Return a new registry with ``extra`` added; same ids replace existing entries."""
        merged = dict(self._models)
        for model in extra:
            merged[model.id] = model
        return ModelRegistry(merged, self._providers)


MODEL_REGISTRY = ModelRegistry()


def build_registry(
    entries: Iterable[BaseModel | Mapping], base: ModelRegistry = MODEL_REGISTRY
) -> ModelRegistry:
    """Extend ``base`` with catalog entries loaded from configuration."""
    models = []
    for entry in entries:
        data = dict(entry.model_dump() if isinstance(entry, BaseModel) else entry)
        data["provider"] = data.get("provider") or resolve(data["id"]).provider
        data["display_name"] = data.get("display_name") or data["id"]
        models.append(ModelConfig(**data))
    if not models:
        return base
    return base.with_models(models)
