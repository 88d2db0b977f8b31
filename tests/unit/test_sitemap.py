"""
Unit tests for sitemap generation.
"""

import asyncio
import json
from xml.etree import ElementTree

import pytest

from skin_api.sitemap import (
    ClassicSkin,
    InMemorySkinSource,
    SitemapProvider,
    SkinSource,
    STATIC_PATHS,
    build_sitemaps,
    render_urlset,
    to_absolute,
)

NS = {'sm': 'http://www.sitemaps.org/schemas/sitemap/0.9'}


class AsyncSkinSource(SkinSource):
    def __init__(self, skins):
        self.skins = skins

    async def get_all_classic_skins(self):
        await asyncio.sleep(0)
        return self.skins


class FailingSkinSource(SkinSource):
    async def get_all_classic_skins(self):
        raise RuntimeError("database unavailable")


def locations(xml):
    root = ElementTree.fromstring(xml)
    return [loc.text for loc in root.iter(f"{{{NS['sm']}}}loc")]


class TestSitemapProvider:
    """Test the ordered URL list."""

    def test_static_then_dynamic_entries(self):
        provider = SitemapProvider(InMemorySkinSource([ClassicSkin("abc", "foo.wal")]))

        urls = asyncio.run(provider.get_urls())

        assert urls == ["/about", "/", "/upload", "skin/abc/foo.wal"]

    def test_source_order_is_preserved(self, classic_skins):
        provider = SitemapProvider(InMemorySkinSource(reversed(classic_skins)))

        urls = asyncio.run(provider.get_urls())

        assert urls[len(STATIC_PATHS):] == ["skin/def/Bar Skin.wsz", "skin/abc/foo.wal"]

    def test_empty_source_gives_static_paths(self):
        urls = asyncio.run(SitemapProvider(InMemorySkinSource()).get_urls())
        assert urls == list(STATIC_PATHS)

    def test_awaitable_source(self):
        provider = SitemapProvider(AsyncSkinSource([ClassicSkin("abc", "foo.wal")]))
        urls = asyncio.run(provider.get_urls())
        assert urls[-1] == "skin/abc/foo.wal"

    def test_fetch_failure_propagates(self):
        provider = SitemapProvider(FailingSkinSource())
        with pytest.raises(RuntimeError, match="database unavailable"):
            asyncio.run(provider.get_urls())


class TestRendering:
    """Test XML output."""

    def test_to_absolute(self):
        base = 'https://skins.webamp.org'
        assert to_absolute('/about', base) == 'https://skins.webamp.org/about'
        assert to_absolute('/', base) == 'https://skins.webamp.org/'
        assert to_absolute('skin/abc/foo.wal', base) == 'https://skins.webamp.org/skin/abc/foo.wal'

    def test_urlset(self):
        xml = render_urlset(['/about', 'skin/abc/foo.wal'], 'https://skins.webamp.org', '2024-01-02')

        assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        assert locations(xml) == [
            'https://skins.webamp.org/about',
            'https://skins.webamp.org/skin/abc/foo.wal',
        ]
        assert '<lastmod>2024-01-02</lastmod>' in xml

    def test_special_characters_are_escaped(self):
        xml = render_urlset(['skin/abc/R&B.wsz'], 'https://skins.webamp.org', '2024-01-02')
        assert 'R&amp;B.wsz' in xml
        assert locations(xml) == ['https://skins.webamp.org/skin/abc/R&B.wsz']

    def test_single_file_when_under_limit(self):
        sitemaps = build_sitemaps(['/about', '/'], 'https://skins.webamp.org', 10, '2024-01-02')
        assert list(sitemaps) == ['/sitemap.xml']

    def test_split_into_index_over_limit(self):
        urls = ['/about', '/', '/upload', 'skin/abc/foo.wal', 'skin/def/bar.wsz']

        sitemaps = build_sitemaps(urls, 'https://skins.webamp.org', 2, '2024-01-02')

        assert set(sitemaps) == {'/sitemap.xml', '/sitemap-0.xml', '/sitemap-1.xml', '/sitemap-2.xml'}
        assert ElementTree.fromstring(sitemaps['/sitemap.xml']).tag == f"{{{NS['sm']}}}sitemapindex"
        assert locations(sitemaps['/sitemap.xml']) == [
            'https://skins.webamp.org/sitemap-0.xml',
            'https://skins.webamp.org/sitemap-1.xml',
            'https://skins.webamp.org/sitemap-2.xml',
        ]
        assert locations(sitemaps['/sitemap-2.xml']) == ['https://skins.webamp.org/skin/def/bar.wsz']


class TestInMemorySkinSource:
    def test_from_json_file(self, tmp_path):
        path = tmp_path / "skins.json"
        path.write_text(json.dumps([{"md5": "abc", "fileName": "foo.wal"}]))

        source = InMemorySkinSource.from_json_file(str(path))

        assert source.get_all_classic_skins() == [ClassicSkin("abc", "foo.wal")]
