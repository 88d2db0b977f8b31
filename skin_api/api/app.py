"""
Flask application assembly.

``create_app`` composes the request pipeline in a fixed order:

     1. error reporting entry hook (optional)
     2. request context
     3. event notifier
     4. request logger
     5. origin allow-list and pre-flight responder
     6. JSON output formatting
     7. JSON body parsing
     8. file uploads with a per-file size limit
     9. sitemap
    10. application routes
    11. error reporting exit hook (optional)
    12. error boundary

Stages 1-8 are before-request hooks and run in registration order.
Stage 11 runs inside the error boundary, immediately before rendering.
"""

from typing import Optional, Sequence

from flask import Blueprint, Flask

from skin_api.config import Settings, settings as default_settings
from skin_api.events import EventNotifier, EventSubscriber, make_dispatcher
from skin_api.observability import get_logger
from skin_api.sitemap import InMemorySkinSource, SitemapProvider, SkinSource, sitemap_blueprint
from .context import ContextFactory, RequestContextProvider, UserContext
from .cors import OriginGate
from .errors import ErrorBoundary, ErrorReporter, LoggingErrorReporter, PipelineOrderError
from .middleware import (
    body_parser_middleware,
    error_reporting_middleware,
    json_output_middleware,
    origin_middleware,
    upload_middleware
)
from .request_log import RequestLogger

logger = get_logger(__name__)

NOTIFIER_EXTENSION = 'skin_api.notifier'

PIPELINE_ORDER = (
    'error_reporting_entry',
    'request_context',
    'event_notifier',
    'request_logger',
    'origin_gate',
    'json_output',
    'body_parser',
    'file_upload',
    'sitemap',
    'routes',
    'error_reporting_exit',
    'error_boundary',
)


def validate_order(order: Sequence[str]) -> None:
    """
    Check that a stage order keeps the pipeline contracts.

    The request context must exist before the notifier and logger bind to
    it, and the error boundary must come last.

    Raises:
        PipelineOrderError: If the order breaks a contract
    """
    missing = set(PIPELINE_ORDER) - set(order)
    if missing:
        raise PipelineOrderError(f"Pipeline is missing stages: {sorted(missing)}")

    position = {stage: i for i, stage in enumerate(order)}
    for dependent in ('event_notifier', 'request_logger'):
        if position['request_context'] > position[dependent]:
            raise PipelineOrderError(f"request_context must run before {dependent}")
    if order[-1] != 'error_boundary':
        raise PipelineOrderError("error_boundary must be the last stage")


class AppBuilder:
    """
    Builds the Flask application for the skin API.

    Args:
        settings: Application settings
        skins: Skin data source for the sitemap
        router: Blueprint with the application routes
        reporter: Error reporter; None leaves error reporting off
        context_factory: Builds the per-request context
    """

    def __init__(
        self,
        settings: Settings,
        skins: SkinSource,
        router: Optional[Blueprint] = None,
        reporter: Optional[ErrorReporter] = None,
        context_factory: ContextFactory = UserContext
    ):
        self.settings = settings
        self.skins = skins
        self.router = router
        self.reporter = reporter
        self.context_factory = context_factory

    def build(self, subscriber: Optional[EventSubscriber] = None) -> Flask:
        validate_order(PIPELINE_ORDER)

        app = Flask('skin_api')
        stages = {
            'error_reporting_entry': self._error_reporting_entry,
            'request_context': self._request_context,
            'event_notifier': lambda app: self._event_notifier(app, subscriber),
            'request_logger': self._request_logger,
            'origin_gate': self._origin_gate,
            'json_output': json_output_middleware,
            'body_parser': body_parser_middleware,
            'file_upload': self._file_upload,
            'sitemap': self._sitemap,
            'routes': self._routes,
            # Runs from within the error boundary
            'error_reporting_exit': lambda app: None,
            'error_boundary': self._error_boundary,
        }
        for stage in PIPELINE_ORDER:
            stages[stage](app)

        logger.info(
            "Application built",
            extra={
                'stages': list(PIPELINE_ORDER),
                'event_subscriber': subscriber is not None,
                'error_reporting': self.reporter is not None
            }
        )
        return app

    def _error_reporting_entry(self, app: Flask) -> None:
        if self.reporter is not None:
            error_reporting_middleware(app, self.reporter)

    def _request_context(self, app: Flask) -> None:
        RequestContextProvider(self.context_factory).install(app)

    def _event_notifier(self, app: Flask, subscriber: Optional[EventSubscriber]) -> None:
        notifier = EventNotifier(subscriber, make_dispatcher(self.settings.events.dispatch))
        notifier.install(app)
        app.extensions[NOTIFIER_EXTENSION] = notifier

    def _request_logger(self, app: Flask) -> None:
        RequestLogger().install(app)

    def _origin_gate(self, app: Flask) -> None:
        origin_middleware(app, OriginGate.from_patterns(self.settings.cors.allow_list))

    def _file_upload(self, app: Flask) -> None:
        upload_middleware(app, self.settings.upload.max_file_size)

    def _sitemap(self, app: Flask) -> None:
        app.register_blueprint(sitemap_blueprint(
            SitemapProvider(self.skins),
            self.settings.sitemap.base_url,
            self.settings.sitemap.max_urls_per_file
        ))

    def _routes(self, app: Flask) -> None:
        if self.router is not None:
            app.register_blueprint(self.router)

    def _error_boundary(self, app: Flask) -> None:
        ErrorBoundary(self.reporter).install(app)


def resolve_reporter(settings: Settings, reporter: Optional[ErrorReporter]) -> Optional[ErrorReporter]:
    """Explicit reporter if given, else the logging reporter when enabled."""
    if reporter is not None:
        return reporter
    if settings.error_reporting.enabled:
        return LoggingErrorReporter()
    return None


def create_app(
    event_handler: Optional[EventSubscriber] = None,
    *,
    settings: Optional[Settings] = None,
    skins: Optional[SkinSource] = None,
    router: Optional[Blueprint] = None,
    reporter: Optional[ErrorReporter] = None,
    context_factory: ContextFactory = UserContext
) -> Flask:
    """
    Build the skin API application.

    Args:
        event_handler: Receives every domain event with its request context
        settings: Application settings (default: loaded from the environment)
        skins: Skin data source for the sitemap (default: empty)
        router: Blueprint with the application routes
        reporter: Error reporter overriding the configured default
        context_factory: Builds the per-request context

    Returns:
        Flask application ready to serve

    Example:
        app = create_app(on_event, skins=skin_source, router=router)
        app.run()
    """
    if settings is None:
        settings = default_settings
    if skins is None:
        skins = InMemorySkinSource()

    builder = AppBuilder(
        settings,
        skins,
        router=router,
        reporter=resolve_reporter(settings, reporter),
        context_factory=context_factory
    )
    return builder.build(event_handler)
