import pytest

from edge_ai_dispatch.core import (
    AIError,
    AIErrorCode,
    CLIError,
    ConfigError,
    DispatchError,
    ToolRegistryError,
)


@pytest.mark.parametrize(
    "exc_type, prefix",
    [(ConfigError, "[config]"), (ToolRegistryError, "[tools]"), (CLIError, "[cli]")],
)
def test_subsystem_prefix(exc_type, prefix):
    err = exc_type("went wrong")
    assert isinstance(err, DispatchError)
    assert str(err) == f"{prefix} went wrong"


def test_explicit_subsystem_overrides_class_default():
    assert str(DispatchError("x", subsystem="custom")) == "[custom] x"
    assert str(DispatchError("x")) == "[core] x"


def test_ai_error_string_and_cause():
    cause = ConnectionError("reset")
    err = AIError("upstream failed", AIErrorCode.NETWORK_ERROR, model="openai/gpt-4o", cause=cause)
    assert str(err) == "[ai] AIError [NETWORK_ERROR] (model: openai/gpt-4o): upstream failed"
    assert err.__cause__ is cause
    assert err.retryable


def test_ai_error_code_accepts_string_values():
    err = AIError("nope", "AUTH_ERROR")
    assert err.code is AIErrorCode.AUTH_ERROR
    assert not err.retryable
    assert err.to_dict()["cause"] is None
