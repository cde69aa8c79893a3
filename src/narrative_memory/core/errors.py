"""Specific error types for the narrative memory service."""

from .base import ApplicationError, ErrorCode, ErrorDetails, ErrorLevel, ServiceErrorDetails

Details = ErrorDetails | dict | None


class NotInitializedError(ApplicationError):
    """Collaborators are not loaded yet; the operation was rejected without side effects."""

    def __init__(self, message: str = "Memory context is not initialized", details: Details = None):
        super().__init__(
            message=message,
            code=ErrorCode.NOT_INITIALIZED,
            level=ErrorLevel.WARNING,
            details=details,
        )


class ConfigurationError(ApplicationError):
    """Invalid configuration, rejected when the component is constructed."""

    def __init__(self, message: str, details: Details = None):
        super().__init__(
            message=message,
            code=ErrorCode.CONFIG_INVALID,
            level=ErrorLevel.ERROR,
            details=details,
        )


class StoreUnavailableError(ApplicationError):
    """The collection store could not be reached or initialized."""

    def __init__(self, message: str, details: Details = None):
        super().__init__(
            message=message,
            code=ErrorCode.STORE_UNAVAILABLE,
            level=ErrorLevel.ERROR,
            details=details
            or ServiceErrorDetails(source="store", operation="connect", service_name="collection_store"),
        )


class StoreOperationError(ApplicationError):
    """The store was reachable but rejected an operation."""

    def __init__(self, message: str, details: Details = None):
        super().__init__(
            message=message,
            code=ErrorCode.STORE_OPERATION,
            level=ErrorLevel.ERROR,
            details=details,
        )


class WriteFailedError(ApplicationError):
    """A batch persist failed or only partially succeeded."""

    def __init__(self, message: str, details: Details = None):
        super().__init__(
            message=message,
            code=ErrorCode.WRITE_FAILED,
            level=ErrorLevel.ERROR,
            details=details,
        )


class CollectionAbsentError(ApplicationError):
    """Clear/delete targeted a conversation with no stores. Callers treat it as success."""

    def __init__(self, message: str, details: Details = None):
        super().__init__(
            message=message,
            code=ErrorCode.COLLECTION_ABSENT,
            level=ErrorLevel.INFO,
            details=details,
        )


class SummarizationPending(ApplicationError):
    """Archival of a unit is deferred until its summary arrives. Not a failure."""

    def __init__(self, message: str, details: Details = None):
        super().__init__(
            message=message,
            code=ErrorCode.SUMMARIZATION_PENDING,
            level=ErrorLevel.INFO,
            details=details,
        )


class EmbeddingError(ApplicationError):
    """The embedding collaborator failed or returned unusable vectors."""

    def __init__(self, message: str, details: Details = None):
        super().__init__(
            message=message,
            code=ErrorCode.EMBEDDING_FAILED,
            level=ErrorLevel.ERROR,
            details=details
            or ServiceErrorDetails(source="embeddings", operation="embed_batch", service_name="embedding"),
        )


class ServiceError(ApplicationError):
    """Error from external service calls."""

    def __init__(self, message: str, details: ServiceErrorDetails | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.SERVICE_UNAVAILABLE,
            level=ErrorLevel.ERROR,
            details=details
            or ServiceErrorDetails(source="service", operation="external_call", service_name="unknown"),
        )


class RateLimitError(ApplicationError):
    """Rate limiting errors."""

    def __init__(self, message: str, details: ServiceErrorDetails | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.RATE_LIMITED,
            level=ErrorLevel.WARNING,
            details=details,
        )


class TimeoutError(ApplicationError):  # noqa: A001
    """Timeout errors."""

    def __init__(self, message: str, details: ServiceErrorDetails | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.TIMEOUT,
            level=ErrorLevel.ERROR,
            details=details,
        )
