"""
Pytest configuration and shared fixtures.
"""

import logging

import pytest
from flask import Blueprint, g, jsonify

from skin_api.api.app import create_app
from skin_api.config import (
    Settings,
    EventSettings,
    ErrorReportingSettings,
    UploadSettings,
    SitemapSettings,
)
from skin_api.events import SkinUploaded
from skin_api.sitemap import ClassicSkin, InMemorySkinSource


@pytest.fixture
def test_settings():
    """Settings with deterministic event delivery and no error reporter."""
    return Settings(
        events=EventSettings(dispatch='inline'),
        error_reporting=ErrorReportingSettings(enabled=False),
        upload=UploadSettings(max_file_size=1024),
        sitemap=SitemapSettings(base_url='https://skins.webamp.org'),
    )


@pytest.fixture
def classic_skins():
    """Sample skins as returned by the data layer."""
    return [
        ClassicSkin("abc", "foo.wal"),
        ClassicSkin("def", "Bar Skin.wsz"),
    ]


@pytest.fixture
def skin_source(classic_skins):
    return InMemorySkinSource(classic_skins)


@pytest.fixture
def seen():
    """Values captured by the test routes."""
    return {'contexts': []}


@pytest.fixture
def router(seen):
    """Application routes standing in for the real API."""
    bp = Blueprint('test_routes', __name__)

    @bp.route('/ctx', methods=['GET'])
    def ctx_route():
        seen['contexts'].append(g.ctx)
        return jsonify({"correlation_id": g.ctx.correlation_id})

    @bp.route('/skins/<md5>/uploaded', methods=['POST'])
    def uploaded(md5):
        seen['contexts'].append(g.ctx)
        g.notify(SkinUploaded(md5))
        return jsonify({"md5": md5})

    @bp.route('/boom', methods=['GET'])
    def boom():
        raise RuntimeError("boom")

    @bp.route('/items/<item_id>', methods=['GET'])
    def item(item_id):
        g.log(f"fetching {item_id}")
        g.log_error(f"missing {item_id}")
        return jsonify({"id": item_id})

    @bp.route('/echo', methods=['POST'])
    def echo():
        return jsonify(g.body)

    @bp.route('/upload', methods=['POST'])
    def upload():
        return jsonify({
            "files": {field: [f.filename for f in files] for field, files in g.files.items()},
            "body": g.body
        })

    return bp


@pytest.fixture
def events():
    """Events received by the subscriber."""
    return []


@pytest.fixture
def subscriber(events):
    def on_event(event, ctx):
        events.append((event, ctx))
    return on_event


@pytest.fixture
def app(test_settings, skin_source, router, subscriber):
    return create_app(subscriber, settings=test_settings, skins=skin_source, router=router)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def restore_root_logging():
    """Put back root logger handlers replaced by setup_logging."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    library_levels = {name: logging.getLogger(name).level for name in ('werkzeug', 'flask_cors')}
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    for name, library_level in library_levels.items():
        logging.getLogger(name).setLevel(library_level)
