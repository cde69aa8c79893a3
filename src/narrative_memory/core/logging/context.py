"""Logging context utilities for structured logging.

Operations bind their correlation ids (conversation, unit, request) into structlog's
contextvars so every line logged while the operation runs carries them, including lines
logged by collaborators deep in the call stack.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog


@contextmanager
def bind_operation(**context: Any) -> Iterator[dict[str, Any]]:
    """Bind correlation ids for the duration of one operation.

    ``None`` values are skipped so optional ids do not clutter the output.

    Args:
        **context: Key/value pairs to attach to every log event

    Yields:
        The bound context
    """
    bound = {key: value for key, value in context.items() if value is not None}
    with structlog.contextvars.bound_contextvars(**bound):
        yield bound


def get_log_context() -> dict[str, Any]:
    """Get the current logging context.

    Returns:
        Dict containing the currently bound context variables
    """
    return dict(structlog.contextvars.get_contextvars())
