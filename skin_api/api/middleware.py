"""
Flask middleware for request processing.

Provides:
- Error-reporting entry hook
- Origin allow-list enforcement and pre-flight responses
- Eager JSON body parsing
- Multipart upload parsing with a per-file size limit
"""

import os

from flask import g, request
from flask_cors import CORS

from skin_api.observability import get_logger
from .cors import OriginGate
from .errors import ErrorReporter, UploadTooLargeError

logger = get_logger(__name__)


def error_reporting_middleware(app, reporter: ErrorReporter):
    """
    Run the error reporter's entry hook before anything else sees the request.

    Args:
        app: Flask application instance
        reporter: Error-reporting collaborator
    """

    @app.before_request
    def instrument_request():
        reporter.on_request()


def origin_middleware(app, gate: OriginGate):
    """
    Enforce the origin allow-list and answer pre-flight requests.

    Requests whose Origin is not allowed raise ``OriginNotAllowedError``,
    which stops the remaining stages and reaches the error boundary.
    ``OPTIONS`` requests on any path, routed or not, get an empty 204 once
    their origin passes; flask-cors adds the ``Access-Control-*`` headers
    for origins matching the same rules.

    Args:
        app: Flask application instance
        gate: Configured origin gate
    """

    @app.before_request
    def check_origin():
        gate.check(request.headers.get('Origin'))
        if request.method == 'OPTIONS':
            return '', 204

    CORS(app, origins=gate.cors_origins())


def body_parser_middleware(app):
    """
    Parse JSON request bodies into ``g.body`` before routing.

    Malformed JSON raises ``BadRequest`` and is rendered by the error
    boundary. Requests without a JSON body get an empty dict.

    Args:
        app: Flask application instance
    """

    @app.before_request
    def parse_json_body():
        g.body = {}
        if request.is_json and request.get_data(cache=True):
            g.body = request.get_json()


def _stream_size(file_storage) -> int:
    stream = file_storage.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def upload_middleware(app, max_file_size: int):
    """
    Parse multipart uploads into ``g.files`` and enforce the size limit.

    The limit applies to each file separately. Form fields of a multipart
    request are exposed as ``g.body``.

    Args:
        app: Flask application instance
        max_file_size: Maximum size of one uploaded file in bytes
    """

    @app.before_request
    def parse_uploads():
        g.files = {}
        if request.mimetype != 'multipart/form-data':
            return None

        for field, file_storage in request.files.items(multi=True):
            size = _stream_size(file_storage)
            if size > max_file_size:
                logger.warning(
                    "Rejected oversized upload",
                    extra={'field': field, 'upload_filename': file_storage.filename, 'size': size}
                )
                raise UploadTooLargeError(file_storage.filename or field, size, max_file_size)

        g.files = request.files.to_dict(flat=False)
        g.body = request.form.to_dict()
        return None


def json_output_middleware(app):
    """
    Pretty-print every JSON response.

    Flask's JSON provider indents with 2 spaces when not compact; key order
    is kept as built so error bodies read ``errorId`` then ``message``.
    """
    app.json.compact = False
    app.json.sort_keys = False
