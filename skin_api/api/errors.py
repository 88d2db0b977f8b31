"""
Error types and the terminal error boundary.

Every failure that escapes a pipeline stage or a route handler ends up
here and is rendered as a 500 response shaped ``{errorId, message}``.
``errorId`` comes from the optional error-reporting collaborator.
"""

import uuid
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any

from flask import jsonify, request
from werkzeug.exceptions import HTTPException, MethodNotAllowed, NotFound

from skin_api.observability import get_logger

logger = get_logger(__name__)


class AppError(Exception):
    """
    Base application error.

    All custom exceptions should inherit from this class.
    """

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class OriginNotAllowedError(AppError):
    """Cross-origin request from an origin outside the allow-list."""
    code = "ORIGIN_NOT_ALLOWED"

    def __init__(self, origin: str, message: Optional[str] = None):
        super().__init__(
            message or f'Request from origin "{origin}" not allowed by CORS.',
            details={"origin": origin}
        )
        self.origin = origin


class UploadTooLargeError(AppError):
    """An uploaded file exceeded the configured size limit."""
    code = "UPLOAD_TOO_LARGE"

    def __init__(self, filename: str, size: int, limit: int):
        super().__init__(
            f'File "{filename}" is {size} bytes, over the {limit} byte upload limit.',
            details={"filename": filename, "size": size, "limit": limit}
        )


class PipelineOrderError(AppError):
    """Pipeline stages were composed in an order that breaks their contracts."""
    code = "PIPELINE_ORDER"


class ErrorReporter(ABC):
    """
    Interface of the optional error-reporting collaborator.

    ``on_request`` runs as the first pipeline stage; ``capture`` runs just
    before the error boundary renders a failure and returns the id the
    backend assigned to it, if any. When an id comes back the boundary
    leaves logging the failure to the reporter.
    """

    @abstractmethod
    def on_request(self) -> None:
        """Instrument the incoming request."""

    @abstractmethod
    def capture(self, error: BaseException) -> Optional[str]:
        """Report a failure and return its id."""


class LoggingErrorReporter(ErrorReporter):
    """Error reporter that records failures in the error log."""

    def __init__(self, logger_name: str = 'skin_api.errors.reported'):
        self.logger = get_logger(logger_name)

    def on_request(self) -> None:
        self.logger.debug(
            "Request instrumented",
            extra={'method': request.method, 'path': request.path}
        )

    def capture(self, error: BaseException) -> Optional[str]:
        error_id = f"err_{uuid.uuid4().hex}"
        self.logger.error(
            f"Captured error {error_id}: {error}",
            exc_info=error,
            extra={
                'error_id': error_id,
                'error_type': type(error).__name__,
                'path': request.path
            }
        )
        return error_id


def error_message(error: BaseException) -> str:
    """Message text exposed to clients for an error."""
    if isinstance(error, AppError):
        return error.message
    if isinstance(error, HTTPException):
        return error.description or error.name
    return str(error)


def error_body(error: BaseException, error_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Build the JSON body of an error response.

    Args:
        error: The failure being rendered
        error_id: Correlation id assigned by the error reporter, if any

    Returns:
        ``{"errorId": ..., "message": ...}``; ``errorId`` is omitted when absent
    """
    body: Dict[str, Any] = {}
    if error_id is not None:
        body["errorId"] = error_id
    body["message"] = error_message(error)
    return body


class ErrorBoundary:
    """
    Terminal fallback converting unhandled failures into JSON responses.

    Args:
        reporter: Optional error-reporting collaborator
    """

    def __init__(self, reporter: Optional[ErrorReporter] = None):
        self.reporter = reporter

    def install(self, app) -> None:
        app.register_error_handler(Exception, self.handle)

    def handle(self, error: Exception):
        # Unmatched routes are not failures; keep their own status
        if isinstance(error, (NotFound, MethodNotAllowed)) and request.routing_exception is error:
            return error

        error_id = self._report(error)
        # A reporter that assigned an id owns the record of the failure
        if error_id is None:
            logger.error(
                f"Unhandled error: {error}",
                exc_info=error,
                extra={
                    'error_type': type(error).__name__,
                    'path': request.path
                }
            )

        response = jsonify(error_body(error, error_id))
        response.status_code = 500
        return response

    def _report(self, error: Exception) -> Optional[str]:
        if self.reporter is None:
            return None
        try:
            return self.reporter.capture(error)
        except Exception as report_error:
            logger.exception(
                "Error reporter failed",
                extra={'error_type': type(report_error).__name__}
            )
            return None
