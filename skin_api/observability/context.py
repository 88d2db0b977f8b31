"""
Correlation ids for requests.

A request's correlation id is bound to the current execution context from
the first pipeline stage until teardown, so every record logged while the
request is served carries it. Callers may supply their own id through the
``X-Correlation-ID`` header; ids that are not safe to log are replaced.
"""

import re
import time
import uuid
from contextvars import ContextVar, Token
from typing import Optional

_correlation_id: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)

MAX_CORRELATION_ID_LENGTH = 128
_SAFE_CORRELATION_ID = re.compile(r'[A-Za-z0-9._:\-]+')


def generate_correlation_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


def accept_correlation_id(candidate: Optional[str]) -> Optional[str]:
    """
    Validate a caller-supplied correlation id.

    Args:
        candidate: Raw header value, if any

    Returns:
        The id when it is short and limited to letters, digits and ``._:-``;
        otherwise None
    """
    if not candidate or len(candidate) > MAX_CORRELATION_ID_LENGTH:
        return None
    if not _SAFE_CORRELATION_ID.fullmatch(candidate):
        return None
    return candidate


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


def set_correlation_id(correlation_id: Optional[str]) -> None:
    _correlation_id.set(correlation_id)


class CorrelationScope:
    """
    Binds a correlation id for the duration of a request.

    Flask opens the scope in a before-request hook and closes it in the
    teardown hook, so ``__enter__`` and ``__exit__`` are called directly as
    well as through ``with``. Exiting restores the id that was bound before.

    Usage:
        with correlation_scope(request.headers.get('X-Correlation-ID')) as scope:
            logger.info("Serving", extra={'duration_ms': scope.elapsed_ms})
    """

    def __init__(self, correlation_id: Optional[str] = None):
        self.correlation_id = accept_correlation_id(correlation_id) or generate_correlation_id()
        self._started = time.perf_counter()
        self._token: Optional[Token] = None

    def __enter__(self) -> 'CorrelationScope':
        self._token = _correlation_id.set(self.correlation_id)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._token is not None:
            _correlation_id.reset(self._token)
            self._token = None

    @property
    def elapsed_ms(self) -> int:
        """Milliseconds since the scope was created."""
        return int((time.perf_counter() - self._started) * 1000)


def correlation_scope(correlation_id: Optional[str] = None) -> CorrelationScope:
    """Scope for ``correlation_id``, or for a fresh id when it is missing or unsafe."""
    return CorrelationScope(correlation_id)
