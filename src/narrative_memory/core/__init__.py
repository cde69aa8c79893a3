from .base import ApplicationError, ErrorCode, ErrorLevel, MemoryErrorDetails, ServiceErrorDetails
from .errors import (
    CollectionAbsentError,
    ConfigurationError,
    EmbeddingError,
    NotInitializedError,
    StoreOperationError,
    StoreUnavailableError,
    SummarizationPending,
    WriteFailedError,
)
