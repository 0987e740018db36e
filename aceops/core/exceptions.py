from typing import Optional, Any


class AceOpsError(Exception):
    """
    Base exception for the application. Rendered as ``{message, code, details}``.
    """
    def __init__(self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500, details: Optional[Any] = None):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class NotFoundError(AceOpsError):
    """
    Raised when a requested resource is not found.
    """
    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)


class AuthenticationError(AceOpsError):
    """
    Raised when a request carries no usable credentials.
    """
    def __init__(self, message: str = "Authentication failed", details: Optional[Any] = None):
        super().__init__(message, code="AUTHENTICATION_FAILED", status_code=401, details=details)


class PermissionDeniedError(AceOpsError):
    """
    Raised when an authenticated user lacks the required role.
    """
    def __init__(self, message: str = "Access denied", details: Optional[Any] = None):
        super().__init__(message, code="FORBIDDEN", status_code=403, details=details)


class ValidationError(AceOpsError):
    """
    Raised when business-level input validation fails.
    """
    def __init__(self, message: str = "Validation error", details: Optional[Any] = None):
        super().__init__(message, code="VALIDATION_ERROR", status_code=400, details=details)


class DuplicateError(AceOpsError):
    """
    Raised when a record with the same natural key already exists.
    """
    def __init__(self, message: str = "Already exists", details: Optional[Any] = None):
        super().__init__(message, code="DUPLICATE", status_code=400, details=details)


class ExternalServiceError(AceOpsError):
    """
    Raised when the e-invoice provider cannot be reached.
    """
    def __init__(self, message: str = "External service error", details: Optional[Any] = None, status_code: int = 502):
        super().__init__(message, code="EXTERNAL_SERVICE_ERROR", status_code=status_code, details=details)


class EInvoiceError(AceOpsError):
    """
    Raised when the e-invoice provider answers with a business failure.
    """
    def __init__(self, message: str, status_desc: Optional[Any] = None, status_code: int = 400):
        super().__init__(message, code="EINVOICE_FAILED", status_code=status_code, details={"status_desc": status_desc})
