"""
Observability module for logging and request tracing.

This module provides:
- Structured logging with correlation IDs
- Correlation ID scopes bound per request
"""

from .logging_config import setup_logging, get_logger
from .context import (
    accept_correlation_id,
    correlation_scope,
    CorrelationScope,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id
)

__all__ = [
    'setup_logging',
    'get_logger',
    'accept_correlation_id',
    'correlation_scope',
    'CorrelationScope',
    'generate_correlation_id',
    'get_correlation_id',
    'set_correlation_id',
]
