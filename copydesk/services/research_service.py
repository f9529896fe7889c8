"""
Research service - best-effort web material for the prompt.

- URL tokens in a message are fetched and stripped to plain text
- A leading "RESEARCH: <query>" line runs a web search (Brave)

Failures are logged and yield empty results; research never blocks a reply.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

import httpx
from bs4 import BeautifulSoup

from copydesk.config import settings

logger = logging.getLogger(__name__)

URL_PATTERN = re.compile(r"https?://\S+")
RESEARCH_LINE = re.compile(r"^RESEARCH:\s*(.+)$", re.IGNORECASE)

USER_AGENT = "Mozilla/5.0 (Copydesk Research)"
BRAVE_SEARCH_URL = "https://api.search.brave.com/res/v1/web/search"


@dataclass
class SearchResult:
    title: str
    url: str
    snippet: str


@dataclass
class ResearchContext:
    """Research material extracted for one message"""
    message: str  # Message with any RESEARCH: line removed
    query: Optional[str] = None
    search_results: List[SearchResult] = field(default_factory=list)
    sources: List[tuple] = field(default_factory=list)  # (url, text)

    def render(self, max_chars: Optional[int] = None) -> str:
        parts = []
        if self.query and self.search_results:
            parts.append(f"SEARCH: {self.query}\n{format_search_results(self.search_results)}")
        for url, text in self.sources:
            parts.append(f"SOURCE: {url}\n{text}")
        rendered = "\n\n".join(parts)
        if max_chars and len(rendered) > max_chars:
            rendered = rendered[:max_chars]
        return rendered


def extract_urls(message: str) -> List[str]:
    seen = []
    for url in URL_PATTERN.findall(message or ""):
        url = url.rstrip(").,;!?'\"")
        if url not in seen:
            seen.append(url)
    return seen


def split_research_query(message: str) -> tuple:
    """
    Split a leading RESEARCH: line off the message.

    Returns (query or None, remaining message). If nothing follows the
    RESEARCH line the original message is kept.
    """
    lines = re.split(r"\r?\n", message or "")
    match = RESEARCH_LINE.match(lines[0].strip()) if lines else None
    if not match:
        return None, message
    query = match.group(1).strip()
    remainder = "\n".join(lines[1:]).strip()
    return query, remainder or message


def format_search_results(results: List[SearchResult]) -> str:
    return "\n\n".join(
        f"{i}) {r.title or 'Result'} - {r.url}\n{r.snippet}"
        for i, r in enumerate(results, 1)
    )


def truncate_bytes(text: str, max_bytes: int) -> str:
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    return encoded[:max_bytes].decode("utf-8", errors="ignore")


def html_to_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")

    # Remove scripts, styles, nav, footer
    for tag in soup(["script", "style", "nav", "footer", "header", "aside", "noscript"]):
        tag.decompose()

    # Try article/main content first
    main = soup.find("article") or soup.find("main") or soup.find("body") or soup
    text = main.get_text(separator="\n", strip=True)

    # Collapse multiple blank lines
    return re.sub(r"\n{3,}", "\n\n", text)


class ResearchService:
    """Fetch and search collaborators, both optional."""

    def __init__(
        self,
        brave_api_key: Optional[str] = None,
        fetch_enabled: Optional[bool] = None,
        timeout_seconds: Optional[float] = None,
        max_bytes: Optional[int] = None,
    ):
        self.brave_api_key = brave_api_key if brave_api_key is not None else settings.brave_api_key
        self.fetch_enabled = settings.research_fetch_enabled if fetch_enabled is None else fetch_enabled
        self.timeout_seconds = timeout_seconds or settings.research_timeout_seconds
        self.max_bytes = max_bytes or settings.research_fetch_max_bytes

    async def fetch_page_text(self, url: str) -> str:
        """Fetch a page and return tag-stripped text, byte-bounded. Raises on failure."""
        async with httpx.AsyncClient(timeout=self.timeout_seconds, follow_redirects=True) as client:
            resp = await client.get(url, headers={"User-Agent": USER_AGENT})
            resp.raise_for_status()

        content_type = resp.headers.get("content-type", "")
        if "text/plain" in content_type or "application/json" in content_type:
            text = resp.text
        else:
            text = html_to_text(resp.text)
        return truncate_bytes(text.strip(), self.max_bytes)

    async def web_search(self, query: str, count: Optional[int] = None) -> List[SearchResult]:
        """Brave web search. No key configured -> no results."""
        if not self.brave_api_key or not query:
            return []
        count = count or settings.research_search_count

        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            resp = await client.get(
                BRAVE_SEARCH_URL,
                params={"q": query, "count": count},
                headers={
                    "Accept": "application/json",
                    "Accept-Encoding": "gzip",
                    "X-Subscription-Token": self.brave_api_key,
                },
            )
            resp.raise_for_status()
            data = resp.json()

        results = data.get("web", {}).get("results", [])
        return [
            SearchResult(
                title=r.get("title", ""),
                url=r.get("url", ""),
                snippet=r.get("description", ""),
            )
            for r in results[:count]
        ]

    async def _safe_fetch(self, url: str) -> Optional[tuple]:
        try:
            text = await asyncio.wait_for(self.fetch_page_text(url), timeout=self.timeout_seconds)
        except Exception as e:
            logger.warning(f"fetch_page_text failed for {url}: {e}")
            return None
        if not text:
            return None
        return url, text

    async def gather(self, message: str) -> ResearchContext:
        """Collect research for a message. Never raises."""
        query, stripped = split_research_query(message)
        context = ResearchContext(message=stripped, query=query)

        if query:
            try:
                context.search_results = await asyncio.wait_for(
                    self.web_search(query), timeout=self.timeout_seconds
                )
            except Exception as e:
                logger.warning(f"web_search failed for {query!r}: {e}")

        if self.fetch_enabled:
            urls = extract_urls(message)
            if urls:
                fetched = await asyncio.gather(*(self._safe_fetch(u) for u in urls))
                context.sources = [item for item in fetched if item]

        return context


# Singleton instance
_research_service: Optional[ResearchService] = None


def get_research_service() -> ResearchService:
    global _research_service
    if _research_service is None:
        _research_service = ResearchService()
    return _research_service
