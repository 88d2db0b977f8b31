"""
Skin database API front door.

Builds the Flask application that serves the skin museum API: per-request
context, domain event notification, origin allow-list, sitemap and the
JSON error boundary.
"""

from .api.app import create_app, AppBuilder, PIPELINE_ORDER
from .events import ReviewRequested, SkinUploaded, ErrorProcessingUpload, EventNotifier

__version__ = "1.0.0"

__all__ = [
    'create_app',
    'AppBuilder',
    'PIPELINE_ORDER',
    'ReviewRequested',
    'SkinUploaded',
    'ErrorProcessingUpload',
    'EventNotifier',
]
