"""Model identifier resolution and routing-class selection."""

from enum import Enum
from typing import NamedTuple

LOCAL_EDGE_PROVIDER = "local-edge"
DEFAULT_PROVIDER = "openai"

# Vendor prefixes reserved for models hosted on the edge platform itself
LOCAL_MODEL_PREFIXES = ("@cf/", "@hf/")

# Providers reached through a provider-native passthrough route on the gateway
PASSTHROUGH_PROVIDERS = frozenset({"openrouter"})

# Names the gateway uses for providers that are spelled differently here
GATEWAY_PROVIDER_NAMES = {LOCAL_EDGE_PROVIDER: "workers-ai"}


class RoutingClass(str, Enum):
    """How a resolved model is reached."""

    LOCAL_EDGE = "local-edge"
    GATEWAY_COMPAT = "gateway-compat"
    PASSTHROUGH = "passthrough"


class ResolvedModel(NamedTuple):
    provider: str
    model: str

    @property
    def canonical_id(self) -> str:
        """Identifier that resolves back to this pair."""
        if self.provider == LOCAL_EDGE_PROVIDER:
            return self.model
        return f"{self.provider}/{self.model}"

    @property
    def routing_class(self) -> "RoutingClass":
        return routing_class(self.provider)


def resolve(model_id: str) -> ResolvedModel:
    """Split a model identifier into ``(provider, model)``.

    Resolution is total:
        - ``@cf/...`` and ``@hf/...`` belong to the local edge provider, whole string kept
        - ``provider/model`` splits at the first ``/``
        - anything else is a model of the default provider
    """
    model_id = model_id.strip()
    if model_id.startswith(LOCAL_MODEL_PREFIXES):
        return ResolvedModel(LOCAL_EDGE_PROVIDER, model_id)
    if "/" in model_id:
        provider, _, model = model_id.partition("/")
        return ResolvedModel(provider, model)
    return ResolvedModel(DEFAULT_PROVIDER, model_id)


def routing_class(provider: str) -> RoutingClass:
    if provider == LOCAL_EDGE_PROVIDER:
        return RoutingClass.LOCAL_EDGE
    if provider in PASSTHROUGH_PROVIDERS:
        return RoutingClass.PASSTHROUGH
    return RoutingClass.GATEWAY_COMPAT


def gateway_model_name(resolved: ResolvedModel) -> str:
    """Model field for the unified compatibility endpoint (``provider/model``)."""
    provider = GATEWAY_PROVIDER_NAMES.get(resolved.provider, resolved.provider)
    return f"{provider}/{resolved.model}"


def is_external_model(model_id: str) -> bool:
    return resolve(model_id).routing_class is not RoutingClass.LOCAL_EDGE
