import io
import logging

import typer

from edge_ai_dispatch.core.error_handler import (
    GENERIC_ERROR_MESSAGE,
    error_response_body,
    handle_error,
    safe_entrypoint,
)
from edge_ai_dispatch.core.exceptions import AIError, AIErrorCode, CLIError
from edge_ai_dispatch.utils.logging import setup_logging


def test_handle_error_logs_known_dispatch_error_as_error():
    buf = io.StringIO()
    setup_logging(level=logging.DEBUG, stream=buf)

    handle_error(CLIError("invalid flag"))

    out = buf.getvalue()
    assert "[cli] invalid flag" in out
    assert "🔥" in out


def test_handle_error_logs_ai_error_cause_at_debug():
    buf = io.StringIO()
    setup_logging(level=logging.DEBUG, stream=buf)

    handle_error(AIError("upstream down", AIErrorCode.NETWORK_ERROR, cause=OSError("reset")), context="chat")

    out = buf.getvalue()
    assert "[chat] [ai] AIError [NETWORK_ERROR]: upstream down" in out
    assert "Caused by: OSError('reset')" in out


def test_handle_error_logs_unknown_exception_as_critical():
    buf = io.StringIO()
    setup_logging(level=logging.DEBUG, stream=buf)

    handle_error(ValueError("boom"))

    out = buf.getvalue()
    assert "💀" in out
    assert "Unexpected error: ValueError: boom" in out


def test_handle_error_verbose_includes_traceback():
    buf = io.StringIO()
    setup_logging(level=logging.DEBUG, stream=buf)

    try:
        raise RuntimeError("trace-me")
    except RuntimeError as e:
        handle_error(e, context="unit", verbose=True)

    out = buf.getvalue()
    assert "Traceback:\n" in out
    assert "[unit] Unexpected error: RuntimeError: trace-me" in out


def test_handle_error_with_only_a_message():
    buf = io.StringIO()
    setup_logging(level=logging.DEBUG, stream=buf)

    handle_error(error_str="something broke", context="ctx")
    assert "[ctx] something broke" in buf.getvalue()


def test_error_response_body_hides_detail_in_production():
    error = AIError("secret upstream detail", AIErrorCode.RATE_LIMITED, model="openai/gpt-4o")
    assert error_response_body(error) == {
        "error": {"message": GENERIC_ERROR_MESSAGE, "code": "RATE_LIMITED"}
    }


def test_error_response_body_includes_detail_outside_production():
    error = AIError("bad key", AIErrorCode.AUTH_ERROR, model="openai/gpt-4o", cause=PermissionError("401"))
    body = error_response_body(error, production=False)["error"]
    assert body["code"] == "AUTH_ERROR"
    assert "bad key" in body["detail"]
    assert body["model"] == "openai/gpt-4o"
    assert body["cause"] == "PermissionError('401')"


def test_error_response_body_for_plain_exception():
    assert error_response_body(KeyError("x"))["error"]["code"] == "UNKNOWN"


def test_safe_entrypoint_returns_function_result():
    @safe_entrypoint("unit.ok")
    def f(x: int, *, verbose: bool = False) -> int:
        return x + 1

    assert f(41, verbose=False) == 42


def test_safe_entrypoint_catches_exception_logs_and_returns_none():
    buf = io.StringIO()
    setup_logging(level=logging.DEBUG, stream=buf)

    @safe_entrypoint("unit.fail")
    def g(*, verbose: bool = True):
        raise CLIError("bad input")

    assert g(verbose=True) is None
    assert "[unit.fail] [cli] bad input" in buf.getvalue()


def test_safe_entrypoint_lets_typer_exit_through():
    @safe_entrypoint("unit.exit")
    def h():
        raise typer.Exit(3)

    try:
        h()
    except typer.Exit as e:
        assert e.exit_code == 3
    else:
        raise AssertionError("typer.Exit was swallowed")
