# =============================================================================
# Brand Collaborator — Web Page Fetch + HTML-to-Text
# =============================================================================
#
# Fetches a brand's public page and reduces it to readable text for the
# chunker. httpx does the request, BeautifulSoup strips the markup.
#
# Non-content elements (scripts, styles, navigation, footers, forms) are
# removed before extraction. Block-level elements become paragraph breaks
# so the chunker can split on them.
# =============================================================================

from __future__ import annotations

import logging
import re
from typing import Protocol

import httpx
from bs4 import BeautifulSoup

from brandscope.config import settings
from brandscope.errors import FetchFailureError

logger = logging.getLogger(__name__)

_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

_STRIP_TAGS = [
    "script", "style", "noscript", "nav", "footer", "header",
    "form", "svg", "iframe", "button",
]

_BLANK_LINES_RE = re.compile(r"\n\s*\n+")
_SPACES_RE = re.compile(r"[ \t\r\f\v]+")
_SINGLE_NEWLINE_RE = re.compile(r"(?<!\n)\n(?!\n)")


class BrandSource(Protocol):
    async def fetch_brand_document(self, url: str) -> str: ...


class WebBrandSource:
    """Fetches brand pages over HTTP."""

    def __init__(
        self,
        timeout: float | None = None,
        max_chars: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout or settings.http_timeout_seconds
        self._max_chars = max_chars or settings.brand_max_chars
        self._transport = transport

    async def fetch_brand_document(self, url: str) -> str:
        """
        Fetch `url` and return its visible text.

        Raises:
            FetchFailureError: On network errors, HTTP errors, or a page
                with no extractable text.
        """
        try:
            async with httpx.AsyncClient(
                headers=_HEADERS,
                follow_redirects=True,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise FetchFailureError(f"Could not fetch brand page {url}: {e}") from e

        text = html_to_text(response.text)
        if not text:
            raise FetchFailureError(f"Brand page {url} has no readable text")

        if len(text) > self._max_chars:
            logger.info(
                "Brand page %s truncated from %d to %d chars",
                url, len(text), self._max_chars,
            )
            text = text[: self._max_chars]

        logger.info("Fetched brand page %s (%d chars)", url, len(text))
        return text


def html_to_text(html: str) -> str:
    """Reduce an HTML document to paragraphs of visible text."""
    soup = BeautifulSoup(html, "html.parser")

    for tag in soup(_STRIP_TAGS):
        tag.decompose()

    title = soup.title.get_text(" ", strip=True) if soup.title else ""
    body = soup.body or soup
    raw = body.get_text("\n")

    lines = [_SPACES_RE.sub(" ", line).strip() for line in raw.splitlines()]
    text = "\n".join(lines)
    text = _BLANK_LINES_RE.sub("\n\n", text).strip()
    # Consecutive text lines from separate elements become paragraphs
    text = _SINGLE_NEWLINE_RE.sub("\n\n", text)

    if title and not text.startswith(title):
        text = f"{title}\n\n{text}" if text else title
    return text
