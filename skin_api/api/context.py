"""
Per-request user context.

One ``UserContext`` is created when a request enters the pipeline and is
closed by the teardown hook when the request finishes, whether it
succeeded, failed or was aborted. Handlers reach it through
``current_context()`` or ``g.ctx``.
"""

import threading
from typing import Any, Callable, Dict, Optional

from flask import g, request

from skin_api.observability import get_logger, correlation_scope

logger = get_logger(__name__)

CORRELATION_HEADER = 'X-Correlation-ID'


class UserContext:
    """
    Request-scoped state shared by the pipeline and route handlers.

    Holds the request's correlation id, the authenticated user (if any)
    and a memo cache for lookups that should run at most once per request.

    Work that outlives the request, such as background event delivery,
    calls ``retain()`` before it starts and ``release()`` when it is done.
    ``close()`` then waits for the last release before disposing.
    """

    def __init__(self, correlation_id: Optional[str] = None):
        self.correlation_id = correlation_id
        self.username: Optional[str] = None
        self._cache: Dict[Any, Any] = {}
        self._lock = threading.Lock()
        self._holds = 0
        self._close_requested = False
        self.closed = False

    def memo(self, key: Any, factory: Callable[[], Any]) -> Any:
        """Return the cached value for ``key``, computing it on first use."""
        if self.closed:
            raise RuntimeError("UserContext used after the request finished")
        if key not in self._cache:
            self._cache[key] = factory()
        return self._cache[key]

    def retain(self) -> None:
        """Keep the context open until a matching ``release()``."""
        with self._lock:
            if self.closed:
                raise RuntimeError("UserContext used after the request finished")
            self._holds += 1

    def release(self) -> None:
        with self._lock:
            self._holds -= 1
            if self._holds == 0 and self._close_requested:
                self._dispose()

    def close(self) -> None:
        """
        Release request-scoped resources. Safe to call more than once.

        Disposal is deferred while the context is retained.
        """
        with self._lock:
            self._close_requested = True
            if self._holds == 0:
                self._dispose()

    def _dispose(self) -> None:
        self._cache.clear()
        self.closed = True

    def __repr__(self) -> str:
        return f"UserContext(correlation_id={self.correlation_id!r}, username={self.username!r})"


ContextFactory = Callable[[Optional[str]], UserContext]


class RequestContextProvider:
    """
    Creates the request's context at pipeline entry and releases it at teardown.

    Args:
        factory: Builds a context from the request's correlation id
    """

    def __init__(self, factory: ContextFactory = UserContext):
        self.factory = factory

    def install(self, app) -> None:
        app.before_request(self.open)
        app.after_request(self.tag_response)
        app.teardown_request(self.release)

    def open(self) -> None:
        scope = correlation_scope(request.headers.get(CORRELATION_HEADER))
        scope.__enter__()
        g.correlation_scope = scope
        g.ctx = self.factory(scope.correlation_id)

    def tag_response(self, response):
        if 'correlation_scope' in g:
            response.headers[CORRELATION_HEADER] = g.correlation_scope.correlation_id
        return response

    def release(self, exc: Optional[BaseException] = None) -> None:
        ctx = g.pop('ctx', None)
        if ctx is not None:
            ctx.close()
        scope = g.pop('correlation_scope', None)
        if scope is not None:
            scope.__exit__(None, None, None)


def current_context() -> UserContext:
    """Context of the request being served."""
    return g.ctx
