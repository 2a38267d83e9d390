"""Ordered multi-provider image generation with a local placeholder fallback."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, TypeVar

import httpx

from models.pipeline_models import ImageAttemptResult
from services.images.image_inspection import detect_image_mime, to_data_url
from services.images.placeholder import placeholder_data_url
from services.images.providers import ProviderDescriptor, default_providers

LOGGER = logging.getLogger(__name__)

MIN_IMAGE_BYTES = 1000
GENERIC_PROMPT = "Article illustration"

T = TypeVar("T")


def clean_prompt(prompt: Optional[str]) -> str:
    """Strip markup-sensitive quote and angle characters and surrounding whitespace."""
    return re.sub(r"[<>\"']", "", prompt or "").strip()


async def try_in_order(
    candidates: Iterable[T],
    attempt: Callable[[T], Awaitable[ImageAttemptResult]],
) -> Optional[ImageAttemptResult]:
    """Run `attempt` on each candidate in turn and return the first success.

    Failed attempts are logged and skipped. Returns None when every
    candidate failed.
    """
    for candidate in candidates:
        result = await attempt(candidate)
        if result.ok:
            return result
        LOGGER.warning("Image provider %s failed: %s", result.provider, result.reason)
    return None


class ImageProviderChain:
    """Generate one image per prompt, trying providers in a fixed priority order.

    `generate_image` always returns a usable data URL: when every remote
    provider fails the caller receives a deterministic SVG placeholder.

    Args:
        http_client: Shared async HTTP client used by every provider.
        providers: Ordered provider descriptors; defaults to `default_providers()`.
        min_bytes: Payloads smaller than this are treated as corrupt.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        providers: Optional[Sequence[ProviderDescriptor]] = None,
        min_bytes: int = MIN_IMAGE_BYTES,
    ) -> None:
        if http_client is None:
            raise ValueError("An httpx.AsyncClient is required.")
        self.http_client = http_client
        self.providers: List[ProviderDescriptor] = list(
            providers if providers is not None else default_providers()
        )
        self.min_bytes = min_bytes

    @property
    def total_timeout(self) -> float:
        return sum(p.timeout for p in self.providers)

    async def attempt(self, provider: ProviderDescriptor, prompt: str) -> ImageAttemptResult:
        """Call one provider and classify the outcome."""
        try:
            payload = await asyncio.wait_for(provider.invoke(self.http_client, prompt), provider.timeout)
        except asyncio.TimeoutError:
            return ImageAttemptResult(provider.name, reason=f"timed out after {provider.timeout:g}s")
        except httpx.HTTPStatusError as exc:
            return ImageAttemptResult(provider.name, reason=f"HTTP {exc.response.status_code}")
        except Exception as exc:  # pylint: disable=broad-exception-caught
            return ImageAttemptResult(provider.name, reason=str(exc) or type(exc).__name__)

        size = len(payload or b"")
        if size < self.min_bytes:
            return ImageAttemptResult(provider.name, reason=f"response too small ({size} bytes)")
        try:
            mime_type = detect_image_mime(payload)
        except ValueError as exc:
            return ImageAttemptResult(provider.name, reason=str(exc))
        return ImageAttemptResult(provider.name, image_bytes=payload, mime_type=mime_type)

    async def generate_image(self, prompt: str) -> str:
        """Return a data URL for `prompt`, falling back to the placeholder."""
        cleaned = clean_prompt(prompt)
        if not cleaned:
            LOGGER.info("Empty image prompt, using placeholder")
            return placeholder_data_url(GENERIC_PROMPT)

        LOGGER.info("Generating image for prompt: %s", cleaned[:100])
        result = await try_in_order(self.providers, lambda p: self.attempt(p, cleaned))
        if result is None:
            LOGGER.warning("All image providers failed, using SVG placeholder")
            return placeholder_data_url(cleaned)

        LOGGER.info("Image generated with %s (%d bytes)", result.provider, len(result.image_bytes))
        return to_data_url(result.image_bytes, result.mime_type)
