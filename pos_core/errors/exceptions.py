# =============================================================================
# pos_core/errors/exceptions.py
# Custom Exception Hierarchy for the Vitana POS
# =============================================================================

from typing import Optional, Dict, Any


class POSError(Exception):
    """
    Base exception for all POS errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "REC_001")
        details: Additional context as a dictionary
        recoverable: Whether the error can be recovered from
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "POS_000"
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# RECORD / FACADE EXCEPTIONS
# =============================================================================

class RecordValidationError(POSError):
    """Raised when a facade call is missing required fields"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        record_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if record_type:
            details["record_type"] = record_type

        super().__init__(
            message=message,
            code="REC_001",
            details=details,
            **kwargs,
        )


class UnknownRecordTypeError(POSError):
    """Raised when a record type is not one of products/sales/settings/movements"""

    def __init__(self, record_type: Any, **kwargs):
        details = kwargs.pop("details", {})
        details["record_type"] = str(record_type)

        super().__init__(
            message=f"Unknown record type: {record_type}",
            code="REC_002",
            details=details,
            **kwargs,
        )


class UnsupportedActionError(POSError):
    """Raised when the backend has no operation for a type/action pair"""

    def __init__(self, record_type: Any, action: Any, **kwargs):
        details = kwargs.pop("details", {})
        details["record_type"] = str(record_type)
        details["action"] = str(action)

        super().__init__(
            message=f"Action '{action}' is not supported for '{record_type}'",
            code="REC_003",
            details=details,
            **kwargs,
        )


# =============================================================================
# STORAGE EXCEPTIONS
# =============================================================================

class StorageError(POSError):
    """Raised when the local store cannot serialize or persist a value"""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if key:
            details["key"] = key

        super().__init__(
            message=message,
            code="STORE_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# REMOTE GATEWAY EXCEPTIONS
# =============================================================================

class GatewayError(POSError):
    """Base class for failures talking to the backend"""

    retryable = True

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        code: str = "SYNC_000",
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if endpoint:
            details["endpoint"] = endpoint

        super().__init__(
            message=message,
            code=code,
            details=details,
            **kwargs,
        )


class NetworkUnreachableError(GatewayError):
    """The request never completed (timeout, refused connection, offline)"""

    retryable = True

    def __init__(self, message: str, endpoint: Optional[str] = None, **kwargs):
        super().__init__(message, endpoint=endpoint, code="SYNC_001", **kwargs)


class ServerRejectedError(GatewayError):
    """The backend answered with an application-level error"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if status_code is not None:
            details["status_code"] = status_code
        self.status_code = status_code

        super().__init__(
            message,
            endpoint=endpoint,
            code="SYNC_002",
            details=details,
            **kwargs,
        )

    @property
    def retryable(self) -> bool:
        # 5xx and throttling may succeed later; validation/auth errors will not
        if self.status_code is None:
            return False
        return self.status_code >= 500 or self.status_code == 429


# =============================================================================
# CONFIGURATION EXCEPTIONS
# =============================================================================

class ConfigurationError(POSError):
    """Raised when configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type

        super().__init__(
            message=message,
            code="CONFIG_001",
            details=details,
            recoverable=False,
            **kwargs,
        )
