"""
Custom exception hierarchy for the PAYONE adapter.

All application-level exceptions inherit from AppException so they can be
caught by a single global handler. Processor-side declines are NOT
exceptions: they come back as classified responses.
"""


class AppException(Exception):
    """Base for all app exceptions."""

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: dict | None = None,
    ):
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(AppException):
    """Raised when merchant settings are incomplete (aid, portalid or key missing)."""

    def __init__(self, message: str = "Payone settings not configured", details: dict | None = None):
        super().__init__(
            status_code=500,
            error_code="CONFIGURATION_ERROR",
            message=message,
            details=details,
        )


class PreconditionError(AppException):
    """Raised when an operation is missing a required field."""

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        error_code: str = "PRECONDITION_FAILED",
    ):
        super().__init__(
            status_code=400,
            error_code=error_code,
            message=message,
            details=details,
        )


class MissingTxIdError(PreconditionError):
    """Raised by capture / refund when no txid was supplied."""

    def __init__(self, operation: str):
        super().__init__(
            message=f"Transaction ID (txid) is required for {operation}",
            details={"operation": operation},
            error_code="MISSING_TXID",
        )


class TransportError(AppException):
    """Raised when the PAYONE gateway could not be reached or timed out."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            status_code=502,
            error_code="TRANSPORT_ERROR",
            message=message,
            details=details,
        )


class SessionInvalidError(AppException):
    """Raised when Apple Pay merchant validation yields no usable session."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            status_code=502,
            error_code="SESSION_INVALID",
            message=message,
            details=details,
        )
