import logging
import sys
from typing import TextIO

EMOJI_MAP = {
    "DEBUG": "🐞",
    "INFO": "💡",
    "WARNING": "⚠️",
    "ERROR": "🔥",
    "CRITICAL": "💀",
}

# Extra keys whose values never reach a log line
SECRET_KEYS = ("token", "authorization", "api_key", "secret")

_DEFAULT_RECORD_ATTRS = frozenset(
    logging.LogRecord(
        name="",
        level=logging.NOTSET,
        pathname="",
        lineno=0,
        msg="",
        args=(),
        exc_info=None,
    ).__dict__
) | {"message", "asctime"}


def _is_secret(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in SECRET_KEYS)


class EmojiFormatter(logging.Formatter):
    """Formatter that prefixes an emoji per level and appends request extras.

    Extras passed through ``logger.info(..., extra={...})`` are rendered as
    ``key=value`` pairs after a pipe. Keys that look like credentials are
    masked.
    """

    def format(self, record: logging.LogRecord) -> str:
        emoji = EMOJI_MAP.get(record.levelname, "")
        log_line = (
            f"{emoji} [{record.levelname:<8}] ({record.name}) {record.getMessage()}"
        )

        extra_attrs = {
            k: v
            for k, v in record.__dict__.items()
            if k not in _DEFAULT_RECORD_ATTRS and not k.startswith("_")
        }

        if extra_attrs:
            extra_str = " ".join(
                f"{k}={'***' if _is_secret(k) else repr(v)}"
                for k, v in extra_attrs.items()
            )
            log_line = f"{log_line} | {extra_str}"

        if record.exc_info:
            log_line = f"{log_line}\n{self.formatException(record.exc_info)}"

        return log_line


def setup_logging(level: int | str = logging.INFO, stream: TextIO | None = None) -> None:
    """Configure the root logger with the emoji formatter."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(EmojiFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Get a subsystem logger namespaced under the package."""
    return logging.getLogger(f"edge_ai_dispatch.{name}")
