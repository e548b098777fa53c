import inspect
import traceback
from collections.abc import Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar

from edge_ai_dispatch.core.exceptions import AIError, DispatchError
from edge_ai_dispatch.utils.logging import get_logger

logger = get_logger("core.error_handler")

GENERIC_ERROR_MESSAGE = "An internal error occurred while contacting the AI service"


def handle_error(
    error: Exception | None = None,
    *,
    context: str | None = None,
    verbose: bool = False,
    error_str: str | None = None,
) -> None:
    """Central error handler.

    Args:
        error: The exception instance to handle (can be None if error_str is provided).
        context: Optional string describing where the error occurred.
        verbose: If True, log detailed traceback for debugging.
        error_str: Optional error message string if no exception object is available.
    """
    ctx = f"[{context}]" if context else ""

    if error is None and error_str:
        logger.critical(f"{ctx} {error_str}".strip())
        return

    if error is None:
        logger.critical(f"{ctx} An unknown error occurred")
        return

    if isinstance(error, DispatchError):
        logger.error(f"{ctx} {error}".strip())
        if isinstance(error, AIError) and error.cause is not None:
            logger.debug(f"{ctx} Caused by: {error.cause!r}".strip())
    else:
        error_name = type(error).__name__
        error_msg = str(error) if str(error) else "No error message provided"
        logger.critical(f"{ctx} Unexpected error: {error_name}: {error_msg}".strip())

    if verbose:
        trace = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )
        logger.debug(f"Traceback:\n{trace}")


def error_response_body(error: Exception, *, production: bool = True) -> dict[str, Any]:
    """Translate an error into the generic 5xx JSON body served by HTTP layers.

    In production the cause detail is logged and only the code is exposed.
    """
    handle_error(error, context="http", verbose=not production)

    code = error.code.value if isinstance(error, AIError) else "UNKNOWN"
    body: dict[str, Any] = {
        "error": {
            "message": GENERIC_ERROR_MESSAGE,
            "code": code,
        }
    }
    if not production:
        body["error"]["detail"] = str(error)
        if isinstance(error, AIError):
            body["error"]["model"] = error.model
            if error.cause is not None:
                body["error"]["cause"] = repr(error.cause)
    return body


T = TypeVar("T")
P = ParamSpec("P")


def safe_entrypoint(context: str) -> Callable[[Callable[P, T]], Callable[P, T | None]]:
    """Decorator to wrap entrypoint functions with unified error handling.

    Does not require the wrapped function to accept a `verbose` parameter.
    """

    def decorator(func: Callable[P, T]) -> Callable[P, T | None]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T | None:
            verbose = bool(kwargs.get("verbose", False))
            try:
                return func(*args, **kwargs)
            except Exception as err:
                # typer/click Exit must reach click untouched
                if "Exit" in err.__class__.__name__:
                    raise
                handle_error(err, context=context, verbose=verbose)
                return None

        wrapper.__signature__ = inspect.signature(func)  # type: ignore[attr-defined]
        return wrapper

    return decorator
