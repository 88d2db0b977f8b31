"""
Request-scoped log functions.

``g.log`` and ``g.log_error`` write a message together with a snapshot of
the request (URL, route params, query string) taken when they are called.
"""

import logging
from typing import Any, Callable, Dict, Optional, Tuple

from flask import g, request

from skin_api.observability import get_logger

LogFn = Callable[[str], None]


def request_snapshot() -> Dict[str, Any]:
    """Ambient metadata of the current request."""
    return {
        'url': request.url,
        'params': dict(request.view_args or {}),
        'query': request.args.to_dict(flat=False),
    }


class RequestLogger:
    """
    Attaches ``log``/``log_error`` to each request and logs its completion.

    Args:
        logger: Sink for request messages (default: ``skin_api.requests``)
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger if logger is not None else get_logger('skin_api.requests')

    def bind(self) -> Tuple[LogFn, LogFn]:
        logger = self.logger

        def log(message: str) -> None:
            logger.info(message, extra={'request': request_snapshot()})

        def log_error(message: str) -> None:
            logger.error(message, extra={'request': request_snapshot()})

        return log, log_error

    def install(self, app) -> None:
        @app.before_request
        def attach_log():
            g.log, g.log_error = self.bind()

        @app.after_request
        def log_completed(response):
            scope = g.get('correlation_scope')
            self.logger.info(
                "Request completed",
                extra={
                    'method': request.method,
                    'path': request.path,
                    'status_code': response.status_code,
                    'duration_ms': scope.elapsed_ms if scope is not None else None
                }
            )
            return response
