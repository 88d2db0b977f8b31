"""
API layer for HTTP request handling.

Provides:
- The terminal error boundary and error types
- Origin allow-list enforcement
- Per-request context, logging and middleware stages

The app factory lives in ``skin_api.api.app``.
"""

from .errors import (
    AppError,
    OriginNotAllowedError,
    UploadTooLargeError,
    PipelineOrderError,
    ErrorReporter,
    LoggingErrorReporter,
    ErrorBoundary,
    error_body
)

from .cors import OriginGate, OriginRule, OriginDecision, ALLOW

from .context import UserContext, RequestContextProvider, current_context

from .request_log import RequestLogger

__all__ = [
    # Errors
    'AppError',
    'OriginNotAllowedError',
    'UploadTooLargeError',
    'PipelineOrderError',
    'ErrorReporter',
    'LoggingErrorReporter',
    'ErrorBoundary',
    'error_body',

    # Origins
    'OriginGate',
    'OriginRule',
    'OriginDecision',
    'ALLOW',

    # Request scope
    'UserContext',
    'RequestContextProvider',
    'current_context',
    'RequestLogger',
]
