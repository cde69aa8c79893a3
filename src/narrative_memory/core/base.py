"""Base error classes and enums"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_serializer

from narrative_memory.domain.models.utils import utc_now


class ErrorLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    def to_logging_level(self) -> int:
        """Convert ErrorLevel to logging level"""
        return {
            ErrorLevel.DEBUG: logging.DEBUG,
            ErrorLevel.INFO: logging.INFO,
            ErrorLevel.WARNING: logging.WARNING,
            ErrorLevel.ERROR: logging.ERROR,
            ErrorLevel.CRITICAL: logging.CRITICAL,
        }[self]


class ErrorCode(str, Enum):
    """Error codes for the application."""

    # General Errors (1xxx)
    PROCESSING_FAILED = "1004"
    CONFIG_INVALID = "1005"
    TIMEOUT = "1007"

    # Lifecycle Errors (2xxx)
    NOT_INITIALIZED = "2001"
    SUMMARIZATION_PENDING = "2002"
    RATE_LIMITED = "2003"

    # Embedding Errors (4xxx)
    EMBEDDING_FAILED = "4003"

    # Infrastructure Errors (5xxx)
    SERVICE_UNAVAILABLE = "5002"

    # Storage Errors (6xxx)
    STORE_UNAVAILABLE = "6002"
    STORE_OPERATION = "6003"
    WRITE_FAILED = "6004"
    COLLECTION_ABSENT = "6005"


class ErrorDetails(BaseModel):
    """Base model for structured error details"""

    source: str = Field(description="Component or module where the error occurred")
    operation: str = Field(description="Operation being performed when the error occurred")
    timestamp: datetime = Field(default_factory=utc_now, description="When the error occurred")

    @field_serializer("timestamp")
    def serialize_timestamp(self, timestamp: datetime) -> str:
        return timestamp.isoformat()


class MemoryErrorDetails(ErrorDetails):
    """Details for errors scoped to one conversation (and possibly one unit)"""

    conversation_id: str | None = Field(None, description="Conversation the operation belonged to")
    unit_id: str | int | None = Field(None, description="Unit (chapter/message) involved, if any")
    stage: str | None = Field(None, description="Step of a multi-step operation that failed")


class ServiceErrorDetails(ErrorDetails):
    """Details for collaborator-related errors"""

    service_name: str = Field(description="Name of the service that failed")
    endpoint: str | None = Field(None, description="Service endpoint or collection that was called")
    status_code: int | None = Field(None, description="HTTP or service status code")
    latency_ms: float | None = Field(None, description="Response time in milliseconds")


class ApplicationError(Exception):
    """Base class for all application errors"""

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        level: ErrorLevel = ErrorLevel.ERROR,
        details: ErrorDetails | dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.level = level

        if details is None:
            self.details = ErrorDetails(source="unknown", operation="unknown")
        elif isinstance(details, dict):
            details = dict(details)
            source = details.pop("source", "unknown")
            operation = details.pop("operation", "unknown")
            self.details = MemoryErrorDetails(source=source, operation=operation, **details)
        else:
            self.details = details

        super().__init__(message)

    @property
    def conversation_id(self) -> str | None:
        return getattr(self.details, "conversation_id", None)

    @property
    def unit_id(self) -> str | int | None:
        return getattr(self.details, "unit_id", None)
