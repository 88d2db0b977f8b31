"""
Sitemap of crawlable pages.

The URL list is the fixed site pages followed by one page per classic skin,
fetched from the skin data source on every request. It is served as
sitemaps.org XML at ``/sitemap.xml``; lists longer than one file allows are
split into ``/sitemap-<n>.xml`` pages behind a sitemap index.
"""

import inspect
from abc import ABC, abstractmethod
from datetime import date
from typing import Awaitable, Dict, Iterable, List, NamedTuple, Optional, Union
from urllib.parse import urljoin
from xml.etree.ElementTree import Element, SubElement, tostring

import orjson
from flask import Blueprint, Response
from werkzeug.exceptions import NotFound

from skin_api.observability import get_logger

logger = get_logger(__name__)

STATIC_PATHS = ("/about", "/", "/upload")

SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
MAX_SITEMAP_LENGTH = 50000


class ClassicSkin(NamedTuple):
    md5: str
    file_name: str


class SkinSource(ABC):
    """Data layer collaborator listing classic skins."""

    @abstractmethod
    def get_all_classic_skins(self) -> Union[Iterable[ClassicSkin], Awaitable[Iterable[ClassicSkin]]]:
        """Return every classic skin, optionally as an awaitable."""


class InMemorySkinSource(SkinSource):
    """Skin source backed by a list, for local runs and tests."""

    def __init__(self, skins: Optional[Iterable[ClassicSkin]] = None):
        self.skins = list(skins or [])

    @classmethod
    def from_json_file(cls, path: str) -> 'InMemorySkinSource':
        """
        Load skins from a JSON array of ``{"md5": ..., "fileName": ...}`` objects.

        Args:
            path: Path to the JSON file

        Returns:
            InMemorySkinSource
        """
        with open(path, 'rb') as f:
            records = orjson.loads(f.read())
        skins = [ClassicSkin(record['md5'], record['fileName']) for record in records]
        logger.info(f"Loaded {len(skins)} classic skins", extra={'path': path})
        return cls(skins)

    def get_all_classic_skins(self) -> List[ClassicSkin]:
        return list(self.skins)


class SitemapProvider:
    """
    Produces the ordered list of sitemap paths.

    Args:
        source: Skin data source; its order is preserved
    """

    def __init__(self, source: SkinSource):
        self.source = source

    async def get_urls(self) -> List[str]:
        """
        Static pages first, then ``skin/{md5}/{file_name}`` per classic skin.

        Failures of the data source propagate to the caller.
        """
        skins = self.source.get_all_classic_skins()
        if inspect.isawaitable(skins):
            skins = await skins
        skin_urls = [f"skin/{md5}/{file_name}" for md5, file_name in skins]
        return [*STATIC_PATHS, *skin_urls]


def to_absolute(path: str, base: str) -> str:
    return urljoin(base.rstrip('/') + '/', path)


def _xml(root: Element) -> str:
    return XML_DECLARATION + tostring(root, encoding='unicode')


def render_urlset(urls: Iterable[str], base: str, lastmod: str) -> str:
    urlset = Element('urlset', xmlns=SITEMAP_NS)
    for url in urls:
        entry = SubElement(urlset, 'url')
        SubElement(entry, 'loc').text = to_absolute(url, base)
        SubElement(entry, 'lastmod').text = lastmod
    return _xml(urlset)


def render_index(paths: Iterable[str], base: str, lastmod: str) -> str:
    index = Element('sitemapindex', xmlns=SITEMAP_NS)
    for path in paths:
        entry = SubElement(index, 'sitemap')
        SubElement(entry, 'loc').text = to_absolute(path, base)
        SubElement(entry, 'lastmod').text = lastmod
    return _xml(index)


def build_sitemaps(
    urls: List[str],
    base: str,
    max_urls_per_file: int = MAX_SITEMAP_LENGTH,
    lastmod: Optional[str] = None
) -> Dict[str, str]:
    """
    Render sitemap documents keyed by the path they are served at.

    Args:
        urls: Paths in sitemap order
        base: Absolute site URL the paths are resolved against
        max_urls_per_file: Largest number of URLs in one sitemap file
        lastmod: ``YYYY-MM-DD`` stamp (default: today)

    Returns:
        ``{"/sitemap.xml": xml}``, plus ``/sitemap-<n>.xml`` pages when the
        list does not fit in one file
    """
    lastmod = lastmod or date.today().isoformat()
    if len(urls) <= max_urls_per_file:
        return {'/sitemap.xml': render_urlset(urls, base, lastmod)}

    sitemaps = {}
    for start in range(0, len(urls), max_urls_per_file):
        path = f'/sitemap-{start // max_urls_per_file}.xml'
        sitemaps[path] = render_urlset(urls[start:start + max_urls_per_file], base, lastmod)
    sitemaps['/sitemap.xml'] = render_index(list(sitemaps), base, lastmod)
    return sitemaps


def sitemap_blueprint(
    provider: SitemapProvider,
    base_url: str,
    max_urls_per_file: int = MAX_SITEMAP_LENGTH
) -> Blueprint:
    """
    Blueprint serving the sitemap documents.

    Args:
        provider: Source of sitemap paths
        base_url: Absolute site URL used for ``<loc>`` entries
        max_urls_per_file: Largest number of URLs in one sitemap file

    Returns:
        Flask blueprint with ``/sitemap.xml`` and ``/sitemap-<n>.xml``
    """
    bp = Blueprint('sitemap', __name__)

    async def load() -> Dict[str, str]:
        urls = await provider.get_urls()
        return build_sitemaps(urls, base_url, max_urls_per_file)

    @bp.route('/sitemap.xml', methods=['GET'])
    async def sitemap_xml():
        sitemaps = await load()
        return Response(sitemaps['/sitemap.xml'], mimetype='text/xml')

    @bp.route('/sitemap-<int:index>.xml', methods=['GET'])
    async def sitemap_page(index: int):
        sitemaps = await load()
        document = sitemaps.get(f'/sitemap-{index}.xml')
        if document is None:
            return NotFound()
        return Response(document, mimetype='text/xml')

    return bp
