"""Article extraction: fetch a page and pull out its title and main text.

Processing flow:
    1. GET the URL with a browser-like User-Agent (30 s timeout, redirects followed).
    2. Extract the main text with `trafilatura`; fall back to paragraph text.
    3. Resolve the title from page metadata, the first <h1>, or <title>.
    4. Reject pages with under 100 characters of text; cap text at 50,000.

Error handling strategy:
    Every failure is raised as `ArticleExtractionError` carrying a short,
    user-facing reason. The orchestrator treats it as fatal.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

import httpx
import trafilatura
from bs4 import BeautifulSoup

from models.pipeline_models import ExtractedArticle

LOGGER = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)
FETCH_TIMEOUT = 30.0
MIN_TEXT_LENGTH = 100
MAX_TEXT_LENGTH = 50_000
MAX_TITLE_LENGTH = 200
UNTITLED = "Untitled Article"

_STATUS_REASONS = {
    403: "Access forbidden (403). The website is blocking access to this content.",
    404: "Page not found (404). Please check the URL and try again.",
    500: "Website server error (500). Please try again later.",
}


class ArticleExtractionError(RuntimeError):
    """Raised when an article cannot be fetched or yields too little text."""


def _normalize_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def _tag_text(tag) -> Optional[str]:
    if tag is None:
        return None
    return _normalize_whitespace(tag.get_text(" ")) or None


def paragraph_text(raw_html: str, min_length: int = 20) -> str:
    """Join the text of every <p> element longer than `min_length` characters."""
    soup = BeautifulSoup(raw_html, "html.parser")
    paragraphs = (_normalize_whitespace(p.get_text(" ")) for p in soup.find_all("p"))
    return " ".join(p for p in paragraphs if len(p) > min_length)


def extract_title(raw_html: str) -> str:
    """Return the best available title for the page."""
    metadata = trafilatura.extract_metadata(raw_html)
    title = getattr(metadata, "title", None) if metadata is not None else None
    soup = BeautifulSoup(raw_html, "html.parser")
    title = (
        _normalize_whitespace(title or "")
        or _tag_text(soup.find("h1"))
        or _tag_text(soup.title)
        or UNTITLED
    )
    return title[:MAX_TITLE_LENGTH]


def extract_text(raw_html: str) -> str:
    """Return the main article text, or an empty string when none is found."""
    extracted = trafilatura.extract(
        raw_html,
        include_comments=False,
        include_tables=False,
        include_images=False,
        include_links=False,
        output_format="txt",
    ) or ""
    text = _normalize_whitespace(extracted)
    if len(text) >= MIN_TEXT_LENGTH:
        return text

    fallback = paragraph_text(raw_html)
    return fallback if len(fallback) > len(text) else text


class ArticleExtractor:
    """Fetch article pages and extract title plus main text."""

    def __init__(self, http_client: httpx.AsyncClient, timeout: float = FETCH_TIMEOUT) -> None:
        if http_client is None:
            raise ValueError("An httpx.AsyncClient is required.")
        self.http_client = http_client
        self.timeout = timeout

    async def fetch(self, url: str) -> str:
        """Return the page body, translating transport errors into readable reasons."""
        try:
            response = await self.http_client.get(
                url,
                headers={"User-Agent": USER_AGENT},
                timeout=self.timeout,
                follow_redirects=True,
            )
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise ArticleExtractionError(
                "Request timeout: the website is taking too long to respond."
            ) from exc
        except httpx.ConnectError as exc:
            raise ArticleExtractionError(
                "Connection failed. The website may be down or blocking requests."
            ) from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            reason = _STATUS_REASONS.get(
                status, f"Website returned error {status}. Please try a different URL."
            )
            raise ArticleExtractionError(reason) from exc
        except httpx.HTTPError as exc:
            raise ArticleExtractionError(
                "Failed to fetch the webpage. Please check the URL and try again."
            ) from exc
        return response.text

    async def extract(self, url: str) -> ExtractedArticle:
        """Fetch `url` and return its title and text.

        Raises:
            ArticleExtractionError: On fetch failure or insufficient content.
        """
        LOGGER.info("Scraping article from: %s", url)
        raw_html = await self.fetch(url)

        text = extract_text(raw_html)
        if len(text) < MIN_TEXT_LENGTH:
            raise ArticleExtractionError("Could not extract meaningful content from the article")

        title = extract_title(raw_html)
        LOGGER.info("Scraped article %r (%d characters)", title, len(text))
        return ExtractedArticle(title=title, text=text[:MAX_TEXT_LENGTH])
