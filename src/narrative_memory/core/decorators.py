"""Error handling decorators"""

from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar, cast

from .base import ApplicationError, ErrorLevel
from .error_context import ErrorContext
from .logging import get_logger

logger = get_logger(__name__)
P = ParamSpec("P")
T = TypeVar("T")


def with_error_handling(
    error_level: ErrorLevel = ErrorLevel.ERROR,
    reraise: bool = True,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T | None]]]:
    """Decorator for handling errors in coroutine functions.

    Application errors are logged at their own level, anything else at ``error_level``.

    Args:
        error_level: Severity level for unexpected exceptions
        reraise: Whether to re-raise the error after logging it

    Returns:
        Decorated function with error handling
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T | None]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T | None:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                level = e.level if isinstance(e, ApplicationError) else error_level
                error_context: dict[str, Any] = {
                    "function": func.__name__,
                    "error_context": ErrorContext(e).to_dict(),
                }
                logger.log(
                    level.to_logging_level(),
                    f"Error in {func.__name__}: {e!s}",
                    extra=error_context,
                    exc_info=level in (ErrorLevel.ERROR, ErrorLevel.CRITICAL),
                )
                if reraise:
                    raise
                return None

        return cast("Callable[P, Awaitable[T | None]]", wrapper)

    return decorator
