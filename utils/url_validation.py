"""Validation helpers for submitted article URLs."""

from urllib.parse import urlparse

from services.generation.errors import ClientInputError

ALLOWED_SCHEMES = {"http", "https"}


def validate_article_url(url: object) -> str:
    """Return the stripped URL, or raise ClientInputError.

    A missing or blank value and anything that is not an absolute http(s) URL
    with a host are rejected.
    """
    if not isinstance(url, str) or not url.strip():
        raise ClientInputError("Article URL is required")

    cleaned = url.strip()
    parsed = urlparse(cleaned)
    if parsed.scheme.lower() not in ALLOWED_SCHEMES or not parsed.netloc:
        raise ClientInputError("Invalid URL format. Please provide a valid HTTP/HTTPS URL.")
    return cleaned
