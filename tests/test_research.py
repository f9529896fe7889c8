"""
Tests for research helpers and best-effort gathering
"""

import unittest
from unittest.mock import AsyncMock

import httpx
import pytest

from copydesk.services.research_service import (
    ResearchContext, ResearchService, SearchResult, extract_urls, html_to_text,
    split_research_query, truncate_bytes,
)


class TestHelpers(unittest.TestCase):

    def test_split_research_query(self):
        query, rest = split_research_query("RESEARCH: dental marketing trends\nWrite a blog intro")
        self.assertEqual(query, "dental marketing trends")
        self.assertEqual(rest, "Write a blog intro")

    def test_research_line_alone_keeps_message(self):
        message = "research: cold brew market"
        query, rest = split_research_query(message)
        self.assertEqual(query, "cold brew market")
        self.assertEqual(rest, message)

    def test_no_research_line(self):
        self.assertEqual(split_research_query("Write a bio"), (None, "Write a bio"))

    def test_extract_urls(self):
        urls = extract_urls("See https://example.com/a, and (https://example.com/b). Again https://example.com/a")
        self.assertEqual(urls, ["https://example.com/a", "https://example.com/b"])

    def test_html_to_text_drops_chrome(self):
        html = (
            "<html><head><style>p{}</style></head><body>"
            "<nav>Menu</nav><main><h1>About</h1><p>We fix teeth.</p></main>"
            "<script>track()</script><footer>Copyright</footer></body></html>"
        )
        text = html_to_text(html)
        self.assertIn("About", text)
        self.assertIn("We fix teeth.", text)
        for noise in ("Menu", "track()", "Copyright"):
            self.assertNotIn(noise, text)

    def test_truncate_bytes_respects_characters(self):
        self.assertEqual(truncate_bytes("héllo", 2), "h")
        self.assertEqual(truncate_bytes("short", 100), "short")

    def test_render(self):
        context = ResearchContext(
            message="m",
            query="q",
            search_results=[SearchResult(title="T", url="https://t.example", snippet="S")],
            sources=[("https://s.example", "body")],
        )
        rendered = context.render()
        self.assertTrue(rendered.startswith("SEARCH: q\n1) T - https://t.example\nS"))
        self.assertIn("SOURCE: https://s.example\nbody", rendered)
        self.assertEqual(len(context.render(max_chars=10)), 10)


# ============ Gathering ============

@pytest.mark.asyncio
async def test_search_without_key_returns_nothing():
    service = ResearchService(brave_api_key="", fetch_enabled=False)

    assert await service.web_search("anything") == []


@pytest.mark.asyncio
async def test_gather_collects_search_and_sources():
    service = ResearchService(brave_api_key="key", fetch_enabled=True)
    service.web_search = AsyncMock(return_value=[SearchResult("T", "https://t.example", "S")])
    service.fetch_page_text = AsyncMock(return_value="page text")

    context = await service.gather("RESEARCH: dentists\nRewrite https://example.com/about please")

    assert context.message == "Rewrite https://example.com/about please"
    assert context.query == "dentists"
    assert len(context.search_results) == 1
    assert context.sources == [("https://example.com/about", "page text")]
    service.web_search.assert_awaited_once_with("dentists")


@pytest.mark.asyncio
async def test_gather_swallows_failures():
    service = ResearchService(brave_api_key="key", fetch_enabled=True)
    service.web_search = AsyncMock(side_effect=httpx.ConnectError("down"))
    service.fetch_page_text = AsyncMock(side_effect=httpx.ReadTimeout("slow"))

    context = await service.gather("RESEARCH: dentists\nRewrite https://example.com/about")

    assert context.search_results == []
    assert context.sources == []
    assert context.render() == ""


@pytest.mark.asyncio
async def test_gather_skips_fetch_when_disabled():
    service = ResearchService(brave_api_key="", fetch_enabled=False)
    service.fetch_page_text = AsyncMock(return_value="page text")

    context = await service.gather("Rewrite https://example.com/about")

    assert context.sources == []
    service.fetch_page_text.assert_not_awaited()
