# =============================================================================
# pos_core/errors/__init__.py
# Centralized Error Handling for the Vitana POS
# =============================================================================

from .exceptions import (
    POSError,
    RecordValidationError,
    UnknownRecordTypeError,
    UnsupportedActionError,
    StorageError,
    GatewayError,
    NetworkUnreachableError,
    ServerRejectedError,
    ConfigurationError,
)

from .handlers import (
    handle_error,
    safe_execute,
    ErrorContext,
    error_boundary,
)

__all__ = [
    # Exceptions
    "POSError",
    "RecordValidationError",
    "UnknownRecordTypeError",
    "UnsupportedActionError",
    "StorageError",
    "GatewayError",
    "NetworkUnreachableError",
    "ServerRejectedError",
    "ConfigurationError",
    # Handlers
    "handle_error",
    "safe_execute",
    "ErrorContext",
    "error_boundary",
]
