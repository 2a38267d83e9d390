"""Remote text-to-image providers, described as data.

Each provider is a `ProviderDescriptor` holding its name, its total time
budget, and an async invoker returning raw image bytes. Requests carry no
httpx timeout of their own, so the descriptor budget is the only limit.
Invokers raise on any failure; the chain decides what a failure means.
Adding, removing or reordering providers only changes `default_providers`.
"""

from __future__ import annotations

import os
import random
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional
from urllib.parse import quote

import httpx

POLLINATIONS_URL = "https://image.pollinations.ai/prompt/"
HUGGINGFACE_URL = (
    "https://api-inference.huggingface.co/models/stabilityai/stable-diffusion-xl-base-1.0"
)
USER_AGENT = "AI-Article-Audiobook/1.0"

Invoker = Callable[[httpx.AsyncClient, str], Awaitable[bytes]]


@dataclass(frozen=True)
class ProviderDescriptor:
    """One entry of the image provider chain."""

    name: str
    timeout: float
    invoke: Invoker


def _random_seed() -> int:
    return random.randint(0, 999_999) + int(time.time() * 1000)


def pollinations_invoker(model: str, width: int = 800, height: int = 600) -> Invoker:
    """Return an invoker for a Pollinations.ai model (`flux`, `turbo`, ...)."""

    async def invoke(client: httpx.AsyncClient, prompt: str) -> bytes:
        params = {
            "width": width,
            "height": height,
            "nologo": "true",
            "enhance": "true",
            "model": model,
            "seed": _random_seed(),
        }
        response = await client.get(
            POLLINATIONS_URL + quote(prompt, safe=""),
            params=params,
            headers={"User-Agent": USER_AGENT},
            timeout=None,
        )
        response.raise_for_status()
        return response.content

    return invoke


def huggingface_invoker(api_key: Optional[str]) -> Invoker:
    """Return an invoker for Stable Diffusion XL on the Hugging Face inference API."""

    async def invoke(client: httpx.AsyncClient, prompt: str) -> bytes:
        if not api_key:
            raise RuntimeError("HUGGINGFACE_API_KEY not configured")
        response = await client.post(
            HUGGINGFACE_URL,
            json={"inputs": prompt},
            headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
            timeout=None,
        )
        response.raise_for_status()
        return response.content

    return invoke


def default_providers(huggingface_api_key: Optional[str] = None) -> List[ProviderDescriptor]:
    """Return the production provider order: flux, turbo, then Hugging Face."""
    api_key = huggingface_api_key if huggingface_api_key is not None else os.getenv("HUGGINGFACE_API_KEY")
    return [
        ProviderDescriptor("pollinations-flux", 25.0, pollinations_invoker("flux")),
        ProviderDescriptor("pollinations-turbo", 25.0, pollinations_invoker("turbo")),
        ProviderDescriptor("huggingface-sdxl", 30.0, huggingface_invoker(api_key)),
    ]
