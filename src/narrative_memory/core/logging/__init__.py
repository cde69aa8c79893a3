"""Structured logging module.

This module provides utilities for structured logging using structlog and logfire.
"""

from .context import bind_operation, get_log_context
from .setup import get_logger, setup_logging

__all__ = [
    # Context management
    "bind_operation",
    "get_log_context",
    # Setup
    "get_logger",
    "setup_logging",
]
