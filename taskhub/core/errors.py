"""Error taxonomy and REST error rendering."""

from enum import Enum

from pydantic import BaseModel

from taskhub.core.db_client import RecordNotFoundError


class AuthError(Exception):
    """A bearer credential was missing, malformed, expired or resolved to no user."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Authentication error: {reason}")
        self.reason = reason


class DeliveryError(Exception):
    """Writing an event to a specific connection failed."""

    def __init__(self, connection_id: str, reason: str) -> None:
        super().__init__(f"Delivery to connection {connection_id} failed: {reason}")
        self.connection_id = connection_id
        self.reason = reason


class GenerationError(Exception):
    """A recurring template could not be turned into a task instance."""

    def __init__(self, template_id: str, reason: str) -> None:
        super().__init__(f"Recurring template {template_id}: {reason}")
        self.template_id = template_id
        self.reason = reason


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes returned in REST error bodies."""

    ERR_AUTHENTICATION_FAILED = "ERR_AUTHENTICATION_FAILED"
    ERR_PERMISSION_DENIED = "ERR_PERMISSION_DENIED"
    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_VALIDATION = "ERR_VALIDATION"
    ERR_RATE_LIMIT_EXCEEDED = "ERR_RATE_LIMIT_EXCEEDED"
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity


HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_SERVER_ERROR = 500


def classify_error_with_response(exception: Exception) -> tuple[int, ErrorResponse]:
    """Map an exception raised by a route to an HTTP status and error body.

    Args:
        exception: The exception raised while handling the request

    Returns:
        Tuple of (http_status_code, ErrorResponse)
    """
    if isinstance(exception, AuthError):
        return HTTP_UNAUTHORIZED, ErrorResponse(
            code=ErrorCode.ERR_AUTHENTICATION_FAILED,
            message=str(exception),
            suggestion="Sign in again to obtain a fresh token.",
            severity=ErrorSeverity.MEDIUM,
        )

    if isinstance(exception, PermissionError):
        return HTTP_FORBIDDEN, ErrorResponse(
            code=ErrorCode.ERR_PERMISSION_DENIED,
            message=str(exception) or "You don't have permission for this action.",
            suggestion="Ask the task creator or a manager to make this change.",
            severity=ErrorSeverity.MEDIUM,
        )

    if isinstance(exception, RecordNotFoundError):
        # KeyError wraps its message in quotes
        message = exception.args[0] if exception.args else "Record not found"
        return HTTP_NOT_FOUND, ErrorResponse(
            code=ErrorCode.ERR_NOT_FOUND,
            message=str(message),
            suggestion="Refresh the page; the record may have been deleted.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, ValueError):
        return HTTP_BAD_REQUEST, ErrorResponse(
            code=ErrorCode.ERR_VALIDATION,
            message=str(exception),
            suggestion="Check the request fields and try again.",
            severity=ErrorSeverity.LOW,
        )

    return HTTP_SERVER_ERROR, ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
        suggestion="Please try again later. If the problem persists, contact support.",
        severity=ErrorSeverity.HIGH,
    )
