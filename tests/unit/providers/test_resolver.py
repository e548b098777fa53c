"""Tests for model identifier resolution."""

import pytest

from edge_ai_dispatch.providers.resolver import (
    DEFAULT_PROVIDER,
    LOCAL_EDGE_PROVIDER,
    ResolvedModel,
    RoutingClass,
    gateway_model_name,
    is_external_model,
    resolve,
)


@pytest.mark.parametrize(
    "model_id, provider, model",
    [
        ("@cf/meta/llama-3.1-8b-instruct", LOCAL_EDGE_PROVIDER, "@cf/meta/llama-3.1-8b-instruct"),
        ("@hf/nousresearch/hermes-2-pro-mistral-7b", LOCAL_EDGE_PROVIDER, "@hf/nousresearch/hermes-2-pro-mistral-7b"),
        ("openai/gpt-4o", "openai", "gpt-4o"),
        ("anthropic/claude-3-5-sonnet-20241022", "anthropic", "claude-3-5-sonnet-20241022"),
        ("openrouter/openai/gpt-4o-mini", "openrouter", "openai/gpt-4o-mini"),
        ("gpt-4o-mini", DEFAULT_PROVIDER, "gpt-4o-mini"),
    ],
)
def test_resolve_splits_provider_and_model(model_id, provider, model):
    assert resolve(model_id) == ResolvedModel(provider, model)


def test_resolve_strips_surrounding_whitespace():
    assert resolve("  openai/gpt-4o \n") == ResolvedModel("openai", "gpt-4o")


@pytest.mark.parametrize(
    "model_id",
    [
        "@cf/meta/llama-3.3-70b-instruct-fp8-fast",
        "openai/gpt-4o",
        "openrouter/openai/gpt-4o-mini",
        "deepseek/deepseek-chat",
        "gpt-4o",
    ],
)
def test_canonical_id_resolves_back_to_same_pair(model_id):
    first = resolve(model_id)
    assert resolve(first.canonical_id) == first


def test_bare_model_gets_default_provider_in_canonical_id():
    assert resolve("gpt-4o").canonical_id == "openai/gpt-4o"


def test_routing_classes():
    assert resolve("@cf/meta/llama-3.1-8b-instruct").routing_class is RoutingClass.LOCAL_EDGE
    assert resolve("openai/gpt-4o").routing_class is RoutingClass.GATEWAY_COMPAT
    assert resolve("openrouter/openai/gpt-4o-mini").routing_class is RoutingClass.PASSTHROUGH


def test_gateway_model_name_renames_local_edge_provider():
    assert gateway_model_name(resolve("@cf/meta/llama-3.1-8b-instruct")) == (
        "workers-ai/@cf/meta/llama-3.1-8b-instruct"
    )
    assert gateway_model_name(resolve("groq/llama-3.3-70b-versatile")) == (
        "groq/llama-3.3-70b-versatile"
    )


def test_is_external_model():
    assert not is_external_model("@cf/meta/llama-3.1-8b-instruct")
    assert is_external_model("anthropic/claude-sonnet-4-5-20250929")
