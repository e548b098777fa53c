import io
import logging

from edge_ai_dispatch.utils import logging as utils_logging


def test_setup_logging_configures_root_with_emoji_formatter():
    buf = io.StringIO()
    utils_logging.setup_logging(level=logging.DEBUG, stream=buf)

    root = logging.getLogger()
    assert len(root.handlers) == 1

    utils_logging.get_logger("test_mod").info("hello world")

    out = buf.getvalue()
    assert "💡 [INFO" in out
    assert "(edge_ai_dispatch.test_mod)" in out
    assert "hello world" in out


def test_setup_logging_is_idempotent_replaces_handler():
    buf1 = io.StringIO()
    utils_logging.setup_logging(level=logging.INFO, stream=buf1)
    buf2 = io.StringIO()
    utils_logging.setup_logging(level=logging.INFO, stream=buf2)

    utils_logging.get_logger("another_mod").warning("warn msg")

    assert buf1.getvalue() == ""
    assert "⚠️ [WARNING" in buf2.getvalue()
    assert "warn msg" in buf2.getvalue()


def test_setup_logging_accepts_level_names():
    buf = io.StringIO()
    utils_logging.setup_logging(level="warning", stream=buf)
    assert logging.getLogger().level == logging.WARNING

    utils_logging.setup_logging(level="not-a-level", stream=buf)
    assert logging.getLogger().level == logging.INFO


def test_extras_are_rendered_and_secrets_masked():
    buf = io.StringIO()
    utils_logging.setup_logging(level=logging.DEBUG, stream=buf)

    utils_logging.get_logger("gateway").info(
        "sending", extra={"model": "openai/gpt-4o", "api_key": "sk-123", "cf_aig_token": "abc"}
    )

    out = buf.getvalue()
    assert "model='openai/gpt-4o'" in out
    assert "api_key=***" in out
    assert "cf_aig_token=***" in out
    assert "sk-123" not in out
    assert "'abc'" not in out


def test_exception_info_is_appended():
    buf = io.StringIO()
    utils_logging.setup_logging(level=logging.DEBUG, stream=buf)

    try:
        raise ValueError("kaboom")
    except ValueError:
        utils_logging.get_logger("x").exception("failed")

    out = buf.getvalue()
    assert "🔥 [ERROR" in out
    assert "ValueError: kaboom" in out
