"""
Content Fetcher - Extract readable article content from URLs.

Handles:
- URL validation before any request is made
- HTTP fetching with browser-like headers and a hard timeout, validating
  every redirect hop
- HTML content extraction using trafilatura (reader-mode)
- Fallback to BeautifulSoup heuristics for pages trafilatura misses
- Sanitizing the extracted HTML so it is safe to render
"""

import asyncio
import logging
import re
from urllib.parse import urljoin

import aiohttp
import trafilatura
from bs4 import BeautifulSoup
from trafilatura.settings import use_config

from .exceptions import ExtractionError
from .url_validator import validate_url

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

HTML_CONTENT_TYPES = {"text/html", "application/xhtml+xml"}

REDIRECT_STATUSES = {301, 302, 303, 307, 308}
MAX_REDIRECTS = 10

# Elements dropped from extracted content entirely
UNSAFE_TAGS = [
    "script", "style", "iframe", "frame", "frameset", "object", "embed",
    "form", "input", "button", "textarea", "select", "noscript", "link", "meta", "base",
]

_TITLE_SUFFIX = re.compile(r"\s*[|\-–—]\s*[^|\-–—]+$")


class Fetcher:
    """Fetches pages and extracts a title and sanitized HTML body."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str | None = None,
        min_content_length: int = 200,
        resolve_dns: bool = True,
    ):
        self.timeout = timeout
        self.min_content_length = min_content_length
        self.resolve_dns = resolve_dns
        self.user_agent = user_agent or (
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/120.0.0.0 Safari/537.36"
        )
        self.headers = {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
            "Upgrade-Insecure-Requests": "1",
        }

    async def extract(self, url: str, timeout: float | None = None) -> tuple[str, str]:
        """
        Fetch a URL and extract its article.

        Args:
            url: The URL to fetch
            timeout: Seconds allowed for fetch and parse together

        Returns:
            (title, content) where content is sanitized HTML

        Raises:
            ExtractionError: On invalid or blocked URL, network failure,
                timeout, non-HTML response, or no readable content
        """
        timeout = timeout or self.timeout
        try:
            return await asyncio.wait_for(self._extract(url, timeout), timeout=timeout)
        except asyncio.TimeoutError:
            raise ExtractionError(f"Timed out after {timeout:g}s fetching {url}", url=url)

    async def _extract(self, url: str, timeout: float) -> tuple[str, str]:
        await asyncio.to_thread(validate_url, url, self.resolve_dns)

        html, final_url = await self._download(url, timeout)

        # Parsing is CPU-bound; keep it off the event loop
        title, content = await asyncio.to_thread(self.parse, final_url, html)
        if not content.strip():
            raise ExtractionError(f"No readable content found at {url}", url=url)
        return title, content

    async def _download(self, url: str, timeout: float) -> tuple[str, str]:
        """
        GET a page and return (html, final_url).

        Redirects are followed one hop at a time so every target is
        validated before it is requested.
        """
        current = url
        try:
            async with aiohttp.ClientSession(headers=self.headers) as session:
                for _ in range(MAX_REDIRECTS + 1):
                    async with session.get(
                        current,
                        timeout=aiohttp.ClientTimeout(total=timeout),
                        allow_redirects=False,
                    ) as resp:
                        if resp.status in REDIRECT_STATUSES:
                            location = resp.headers.get("Location")
                            if not location:
                                raise ExtractionError(
                                    f"HTTP {resp.status} without Location fetching {current}", url=url
                                )
                            current = urljoin(current, location)
                            await asyncio.to_thread(validate_url, current, self.resolve_dns)
                            continue
                        if resp.status >= 400:
                            raise ExtractionError(f"HTTP {resp.status} fetching {current}", url=url)
                        if resp.content_type not in HTML_CONTENT_TYPES:
                            raise ExtractionError(
                                f"Unsupported content type '{resp.content_type}' at {current}", url=url
                            )
                        html = await resp.text(errors="replace")
                        return html, current
        except aiohttp.ClientError as e:
            raise ExtractionError(f"Failed to fetch {url}: {e}", url=url) from e

        raise ExtractionError(f"Too many redirects fetching {url}", url=url)

    def parse(self, url: str, html: str) -> tuple[str, str]:
        """Extract (title, sanitized content) from a downloaded page."""
        soup = BeautifulSoup(html, "html.parser")

        content = self._extract_with_trafilatura(url, html)
        if not content or len(content) < self.min_content_length:
            fallback = self._extract_with_beautifulsoup(html)
            if len(fallback) > len(content or ""):
                logger.debug(f"Using BeautifulSoup extraction for {url}")
                content = fallback

        title = self._extract_title(url, html, soup)
        return title, sanitize_html(content or "")

    def _extract_with_trafilatura(self, url: str, html: str) -> str | None:
        """Extract main content as HTML with trafilatura."""
        config = use_config()
        # Signal-based timeouts only work on the main thread
        config.set("DEFAULT", "EXTRACTION_TIMEOUT", "0")

        try:
            return trafilatura.extract(
                html,
                url=url,
                output_format="html",
                include_links=True,
                include_images=False,
                include_tables=True,
                favor_recall=True,
                config=config,
            )
        except Exception as e:
            # trafilatura raises a wide range of lxml errors on malformed markup
            logger.debug(f"trafilatura failed on {url}: {e}")
            return None

    def _extract_with_beautifulsoup(self, html: str) -> str:
        """Fallback extraction using BeautifulSoup heuristics."""
        soup = BeautifulSoup(html, "html.parser")

        for tag in soup.find_all([
            "script", "style", "nav", "header", "footer", "aside",
            "noscript", "iframe", "form", "button", "input"
        ]):
            tag.decompose()

        article = (
            soup.find("article") or
            soup.find(class_=re.compile(r"^(article|post|post-content|entry-content|story)$", re.I)) or
            soup.find(attrs={"role": "main"}) or
            soup.find("main") or
            soup.body or
            soup
        )

        parts = [
            str(elem)
            for elem in article.find_all(["p", "h1", "h2", "h3", "h4", "h5", "h6", "ul", "ol", "blockquote", "pre"])
            if elem.get_text(strip=True) and not elem.find_parent(["ul", "ol", "blockquote"])
        ]
        content = "\n".join(parts)

        if not content and article.get_text(strip=True):
            content = str(article)

        return re.sub(r"\n{3,}", "\n\n", content)

    def _extract_title(self, url: str, html: str, soup: BeautifulSoup) -> str:
        """Title from page metadata, falling back to <title>, <h1>, og:title."""
        title = ""
        try:
            metadata = trafilatura.extract_metadata(html, default_url=url)
        except Exception as e:
            logger.debug(f"trafilatura metadata failed on {url}: {e}")
            metadata = None
        if metadata and metadata.title:
            return metadata.title.strip()

        if title_tag := soup.find("title"):
            title = _TITLE_SUFFIX.sub("", title_tag.get_text(strip=True))
        if not title:
            if h1 := soup.find("h1"):
                title = h1.get_text(strip=True)
        if not title:
            if og_title := soup.find("meta", property="og:title"):
                title = og_title.get("content", "")
        return title.strip()


def sanitize_html(content: str) -> str:
    """Remove scripts, embedded frames, event handlers and javascript: links."""
    if not content:
        return ""

    soup = BeautifulSoup(content, "html.parser")
    for tag in soup.find_all(UNSAFE_TAGS):
        tag.decompose()

    for tag in soup.find_all(True):
        for attr in list(tag.attrs):
            value = tag.attrs[attr]
            if attr.lower().startswith("on"):
                del tag.attrs[attr]
            elif attr.lower() in ("href", "src", "action", "formaction") and isinstance(value, str):
                if value.strip().lower().startswith(("javascript:", "vbscript:", "data:text/html")):
                    del tag.attrs[attr]

    return str(soup).strip()

