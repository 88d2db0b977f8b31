"""
Logging setup for the skin API.

Every record carries the correlation id of the request it was written in.
Records written through ``g.log`` and ``g.log_error`` also carry a
``request`` snapshot (url, route params, query string); the JSON and the
text formatter both render it, with the same keys in the same order.

Console output is always on. With a log directory, records also go to a
rotating ``app.log`` and errors additionally to ``error.log``.
"""

import logging
import logging.handlers
import os
import sys
import time
from pathlib import Path
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from .context import get_correlation_id

LIBRARY_LOGGERS = ('werkzeug', 'flask_cors')
SNAPSHOT_KEYS = ('url', 'params', 'query')

APP_LOG = 'app.log'
ERROR_LOG = 'error.log'
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 7

TIMESTAMP_FORMAT = '%Y-%m-%dT%H:%M:%SZ'


def request_snapshot(record: logging.LogRecord) -> Optional[Dict[str, Any]]:
    """The record's request snapshot in ``SNAPSHOT_KEYS`` order, if it has one."""
    snapshot = getattr(record, 'request', None)
    if not isinstance(snapshot, dict):
        return None
    return {key: snapshot.get(key) for key in SNAPSHOT_KEYS}


class CorrelationIdFilter(logging.Filter):
    """Stamps records with the current correlation id unless the caller gave one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, 'correlation_id', None):
            record.correlation_id = get_correlation_id() or 'none'
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    One JSON object per record.

    Adds ``timestamp`` (UTC), ``level``, ``component`` (logger name) and
    ``correlation_id`` to the message and extras; the request snapshot is
    emitted as a nested ``request`` object.
    """

    converter = time.gmtime

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record['timestamp'] = self.formatTime(record, self.datefmt)
        log_record['level'] = record.levelname
        log_record['component'] = record.name
        log_record['correlation_id'] = getattr(record, 'correlation_id', 'none')

        snapshot = request_snapshot(record)
        if snapshot is not None:
            log_record['request'] = snapshot


class RequestTextFormatter(logging.Formatter):
    """Single-line text records, with the request snapshot as ``key=value`` pairs."""

    converter = time.gmtime

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        snapshot = request_snapshot(record)
        if snapshot is None:
            return line
        pairs = ' '.join(f"{key}={value}" for key, value in snapshot.items())
        return f"{line} [{pairs}]"


def _formatter(log_format: str) -> logging.Formatter:
    if log_format == 'json':
        return CustomJsonFormatter('%(message)s', datefmt=TIMESTAMP_FORMAT)
    return RequestTextFormatter(
        '%(asctime)s [%(correlation_id)s] %(levelname)-8s [%(name)s] %(message)s',
        datefmt=TIMESTAMP_FORMAT
    )


def _rotating_file(log_dir: str, file_name: str) -> logging.Handler:
    return logging.handlers.RotatingFileHandler(
        os.path.join(log_dir, file_name),
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUPS
    )


def setup_logging(
    log_level: str = 'INFO',
    log_format: str = 'json',
    log_dir: Optional[str] = None,
    library_log_level: str = 'WARNING'
) -> None:
    """
    Configure the root logger for the API process.

    Args:
        log_level: Level for application records (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format ('json' or 'text')
        log_dir: Directory for ``app.log`` and ``error.log``; None logs to the console only
        library_log_level: Level for the werkzeug and flask-cors loggers

    Example:
        setup_logging(log_level='DEBUG', log_format='text', log_dir='data/logs')
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    handlers = [(logging.StreamHandler(sys.stdout), level)]
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        handlers.append((_rotating_file(log_dir, APP_LOG), level))
        handlers.append((_rotating_file(log_dir, ERROR_LOG), logging.ERROR))

    formatter = _formatter(log_format)
    correlation_filter = CorrelationIdFilter()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    for handler, handler_level in handlers:
        handler.setLevel(handler_level)
        handler.setFormatter(formatter)
        handler.addFilter(correlation_filter)
        root_logger.addHandler(handler)

    library_level = getattr(logging, library_log_level.upper(), logging.WARNING)
    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            'log_level': log_level,
            'log_format': log_format,
            'log_dir': log_dir,
            'library_log_level': library_log_level
        }
    )


def get_logger(name: str) -> logging.Logger:
    """Logger for a component, usually ``get_logger(__name__)``."""
    return logging.getLogger(name)
