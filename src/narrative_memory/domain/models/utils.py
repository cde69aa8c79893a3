"""Utility functions for domain models."""

import time
from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get the current UTC datetime with timezone awareness."""
    return datetime.now(UTC)


def epoch_millis() -> int:
    """Milliseconds since the epoch, the timestamp format stored in record metadata."""
    return int(time.time() * 1000)
