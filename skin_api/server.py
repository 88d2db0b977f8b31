"""
Stand-alone API server.

Runs the skin API with settings from the environment, the bundled routes
and a skin list loaded from ``SITEMAP_SKINS_FILE`` when configured.
"""

from skin_api.api.app import NOTIFIER_EXTENSION, create_app
from skin_api.api.context import UserContext
from skin_api.api.routes import router
from skin_api.config import settings
from skin_api.events import DomainEvent
from skin_api.observability import setup_logging, get_logger
from skin_api.sitemap import InMemorySkinSource

logger = get_logger(__name__)


def log_event(event: DomainEvent, ctx: UserContext) -> None:
    """Event subscriber for the stand-alone server: record every event."""
    logger.info(
        f"Domain event {event.type}",
        extra={'event': event.to_dict(), 'correlation_id': ctx.correlation_id}
    )


def print_startup_banner():
    """Print server startup information."""
    banner = f"""
{'='*70}
Skin Museum API
{'='*70}
✓ Server: http://{settings.server.host}:{settings.server.port}
✓ Health: http://localhost:{settings.server.port}/health
✓ Sitemap: http://localhost:{settings.server.port}/sitemap.xml

Configuration:
  Environment: {'Development' if settings.server.debug else 'Production'}
  Log Level: {settings.observability.log_level}
  Log Format: {settings.observability.log_format}
  Allowed Origins: {', '.join(settings.cors.allow_list)}
  Max Upload Size: {settings.upload.max_file_size} bytes
  Sitemap Base URL: {settings.sitemap.base_url}
  Error Reporting: {'Enabled' if settings.error_reporting.enabled else 'Disabled'}

{'='*70}
"""
    print(banner)


def main():
    setup_logging(
        log_level=settings.observability.log_level,
        log_format=settings.observability.log_format,
        log_dir=settings.observability.log_dir,
        library_log_level=settings.observability.library_log_level
    )

    if settings.sitemap.skins_file:
        skins = InMemorySkinSource.from_json_file(settings.sitemap.skins_file)
    else:
        skins = InMemorySkinSource()

    app = create_app(log_event, settings=settings, skins=skins, router=router)

    print_startup_banner()
    try:
        app.run(
            host=settings.server.host,
            port=settings.server.port,
            debug=settings.server.debug
        )
    finally:
        # Flush queued events and stop the delivery worker
        app.extensions[NOTIFIER_EXTENSION].shutdown()


if __name__ == '__main__':
    main()
