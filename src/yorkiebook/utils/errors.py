"""
Error handling utilities for the Yorkie Storybook service.

Provides the error taxonomy shared by every layer, structured error
responses and the Flask error handlers that map exceptions onto the
``{error, message, retry, details?, retry_after?}`` envelope.
"""

import logging
import traceback
from typing import Any, Dict, List, Optional, Union

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)

Details = Union[List[Dict[str, Any]], Dict[str, Any]]

UNEXPECTED_MESSAGE = (
    "An unexpected error occurred. Please try again or contact support if the issue persists."
)
RATE_LIMIT_MESSAGE = "The story service is busy right now. Please try again in a few moments."
DEFAULT_RETRY_AFTER_SECONDS = 60


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(
        self,
        message: str,
        error_code: str,
        status_code: int = 500,
        details: Optional[Details] = None,
        retry: bool = False,
    ):
        """
        Initialize API error.

        Args:
            message: Human-readable error message
            error_code: Error category reported in the ``error`` field
            status_code: HTTP status code
            details: Additional error details (field-level problems for validation)
            retry: Whether the client may retry the same request
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details
        self.retry = retry

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
            "retry": self.retry,
        }
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(APIError):
    """Raised when input is malformed or incomplete."""

    def __init__(self, message: str, details: Optional[Details] = None):
        super().__init__(
            message=message,
            error_code="ValidationFailed",
            status_code=400,
            details=details,
        )


class NotFoundError(APIError):
    """Raised when a referenced record does not exist."""

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            message=f"{resource_type} with ID '{resource_id}' not found.",
            error_code="NotFound",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": str(resource_id)},
        )


class FileMissingError(APIError):
    """Raised when a record exists but its file is missing on disk."""

    def __init__(self, path: str):
        super().__init__(
            message="The image file could not be found on the server.",
            error_code="FileNotFound",
            status_code=404,
            details={"path": path},
        )


class RateLimitError(APIError):
    """Raised when this service's own request rate limit is exceeded."""

    def __init__(self, retry_after: Optional[int] = None):
        message = "Rate limit exceeded. Please try again later."
        details = {}
        if retry_after:
            details["retry_after"] = retry_after
            message += f" Retry after {retry_after} seconds."

        super().__init__(
            message=message,
            error_code="RateLimited",
            status_code=429,
            details=details,
            retry=True,
        )


class ServiceUnavailableError(APIError):
    """Raised when an internal dependency (such as the job queue) is unavailable."""

    def __init__(self, service: str, message: Optional[str] = None):
        error_message = message or f"Service '{service}' is currently unavailable."
        super().__init__(
            message=error_message,
            error_code="ServiceUnavailable",
            status_code=503,
            details={"service": service},
            retry=True,
        )


class ProviderError(APIError):
    """Base class for failures reported by an external generative provider."""

    def __init__(
        self,
        message: str,
        error_code: str,
        status_code: int,
        retry: bool,
        provider: Optional[str] = None,
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status_code,
            retry=retry,
        )
        self.provider = provider


class ProviderTransientError(ProviderError):
    """Rate limits, 5xx responses, timeouts and unreadable responses. Retryable."""

    def __init__(
        self,
        message: str = RATE_LIMIT_MESSAGE,
        status_code: int = 503,
        retry_after: Optional[int] = None,
        provider: Optional[str] = None,
    ):
        super().__init__(
            message=message,
            error_code="ProviderTransient",
            status_code=status_code,
            retry=True,
            provider=provider,
        )
        if retry_after is None and status_code == 429:
            retry_after = DEFAULT_RETRY_AFTER_SECONDS
        self.retry_after = retry_after

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.retry_after is not None:
            body["retry_after"] = self.retry_after
        return body


class ProviderFatalError(ProviderError):
    """Authentication, content-policy and oversized-input rejections. Not retryable."""

    def __init__(
        self,
        message: str,
        status_code: int = 502,
        provider: Optional[str] = None,
    ):
        super().__init__(
            message=message,
            error_code="ProviderFatal",
            status_code=status_code,
            retry=False,
            provider=provider,
        )


def validation_error_from_pydantic(error, message: str = "Invalid parameters") -> ValidationError:
    """
    Convert a pydantic ``ValidationError`` into the service's ValidationError.

    Each pydantic error becomes a ``{"path": "a.b", "message": ...}`` entry.
    """
    details = []
    for item in error.errors():
        path = ".".join(str(part) for part in item.get("loc", ()))
        details.append({"path": path, "message": item.get("msg", "Invalid value")})
    return ValidationError(message, details=details)


def create_error_response(
    error: Exception,
    include_traceback: bool = False
) -> tuple:
    """
    Create a standardized error response.

    Args:
        error: Exception instance
        include_traceback: Whether to include traceback in response (for debugging)

    Returns:
        Tuple of (json_response, status_code)
    """
    path = request.path if request else None
    method = request.method if request else None

    # Handle APIError instances
    if isinstance(error, APIError):
        if error.status_code >= 500:
            logger.error(
                f"{error.error_code} on {method} {path}: {error.message}",
                exc_info=error,
            )
        else:
            logger.warning(f"{error.error_code} on {method} {path}: {error.message}")

        response = error.to_dict()
        if include_traceback:
            response["traceback"] = traceback.format_exc()
        return jsonify(response), error.status_code

    # Everything else is Unexpected; detail stays in the server log
    logger.error(
        f"Unexpected error on {method} {path}: {type(error).__name__}: {error}",
        exc_info=error,
    )
    response = {
        "error": "Unexpected",
        "message": UNEXPECTED_MESSAGE,
        "retry": False,
    }
    if include_traceback:
        response["error_type"] = type(error).__name__
        response["traceback"] = traceback.format_exc()

    return jsonify(response), 500


def register_error_handlers(app, debug: bool = False):
    """
    Register error handlers for the Flask app.

    Args:
        app: Flask application instance
        debug: Whether to include tracebacks in error responses
    """
    @app.errorhandler(APIError)
    def handle_api_error(error: APIError):
        """Handle APIError exceptions."""
        return create_error_response(error, include_traceback=debug)

    @app.errorhandler(404)
    def handle_not_found(error):
        """Handle 404 errors."""
        return create_error_response(
            NotFoundError("Resource", request.path),
            include_traceback=debug
        )

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        """Handle 405 Method Not Allowed errors."""
        return jsonify({
            "error": "MethodNotAllowed",
            "message": f"Method '{request.method}' not allowed for this endpoint.",
            "retry": False,
        }), 405

    @app.errorhandler(413)
    def handle_payload_too_large(error):
        """Handle uploads larger than MAX_CONTENT_LENGTH."""
        return create_error_response(
            APIError(
                "The uploaded file is too large.",
                error_code="ValidationFailed",
                status_code=413,
            ),
            include_traceback=debug
        )

    @app.errorhandler(429)
    def handle_rate_limit(error):
        """Handle 429 Rate Limit errors."""
        return create_error_response(
            RateLimitError(),
            include_traceback=debug
        )

    @app.errorhandler(Exception)
    def handle_generic_exception(error: Exception):
        """Handle all other exceptions."""
        if isinstance(error, HTTPException):
            return jsonify({
                "error": error.name.replace(" ", ""),
                "message": error.description,
                "retry": False,
            }), error.code
        return create_error_response(error, include_traceback=debug)
