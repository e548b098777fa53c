from enum import Enum
from typing import Any


class DispatchError(Exception):
    """Base exception for all dispatch layer errors.

    The message is automatically prefixed with the subsystem name in square brackets.
    """

    subsystem = "core"

    def __init__(self, message: str, *, subsystem: str | None = None) -> None:
        self.subsystem = subsystem or self.subsystem
        super().__init__(f"[{self.subsystem}] {message}")


# ─── AI error taxonomy ────────────────────────────────────────────────────────


class AIErrorCode(str, Enum):
    """Closed set of failure codes surfaced by the dispatch layer."""

    MODEL_NOT_FOUND = "MODEL_NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    TIMEOUT = "TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    JSON_PARSE_ERROR = "JSON_PARSE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    UNKNOWN = "UNKNOWN"


class AIError(DispatchError):
    """Typed failure of a model call.

    Carries the classified code, the model identifier that was requested,
    the resolved provider when known, and the underlying cause.
    """

    subsystem = "ai"

    def __init__(
        self,
        message: str,
        code: AIErrorCode = AIErrorCode.UNKNOWN,
        *,
        model: str | None = None,
        provider: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.message = message
        self.code = AIErrorCode(code)
        self.model = model
        self.provider = provider
        self.cause = cause
        model_part = f" (model: {model})" if model else ""
        super().__init__(f"AIError [{self.code.value}]{model_part}: {message}")
        if cause is not None:
            self.__cause__ = cause

    @property
    def retryable(self) -> bool:
        return self.code in (
            AIErrorCode.RATE_LIMITED,
            AIErrorCode.TIMEOUT,
            AIErrorCode.NETWORK_ERROR,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": type(self).__name__,
            "code": self.code.value,
            "message": self.message,
            "model": self.model,
            "provider": self.provider,
            "cause": str(self.cause) if self.cause is not None else None,
        }


# ─── Subsystem-level exceptions ───────────────────────────────────────────────


class ToolRegistryError(DispatchError):
    """Raised for tool registration or lookup errors."""

    subsystem = "tools"


class ConfigError(DispatchError):
    """Raised for configuration loading or parsing errors."""

    subsystem = "config"


class CLIError(DispatchError):
    """Raised for CLI-specific logic or user input issues."""

    subsystem = "cli"
