"""Model catalog, identifier resolution, error classification and transports."""

from .classifier import classify_error, extract_error_message
from .registry import (
    DEFAULT_MODEL,
    MODEL_CATALOG,
    MODEL_REGISTRY,
    ModelConfig,
    ModelRegistry,
    recommended_model,
    resolve_alias,
)
from .resolver import ResolvedModel, RoutingClass, resolve, routing_class

__all__ = [
    "DEFAULT_MODEL",
    "MODEL_CATALOG",
    "MODEL_REGISTRY",
    "ModelConfig",
    "ModelRegistry",
    "ResolvedModel",
    "RoutingClass",
    "classify_error",
    "extract_error_message",
    "recommended_model",
    "resolve",
    "resolve_alias",
    "routing_class",
]
