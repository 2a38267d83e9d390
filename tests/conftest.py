from __future__ import annotations

import io
import random
from typing import Callable, List, Optional, Tuple

import pytest
from PIL import Image

from models.pipeline_models import ArticleAnalysis, ExtractedArticle
from services.progress.progress_tracker import ProgressTracker

ARTICLE_TEXT = (
    "Solar panels are being installed on rooftops across the city this year. "
    "Engineers say the new panels convert more sunlight into electricity than older designs. "
    "The council expects energy bills for public buildings to fall over the next decade."
)


class FakeScheduler:
    """Collects scheduled callbacks so tests decide when timers fire."""

    def __init__(self) -> None:
        self.calls: List[Tuple[float, Callable[[], None]]] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> None:
        self.calls.append((delay, callback))

    def fire_all(self) -> None:
        calls, self.calls = self.calls, []
        for _, callback in calls:
            callback()


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class RecordingTracker(ProgressTracker):
    """ProgressTracker that keeps every snapshot it stores."""

    def __init__(self, **kwargs) -> None:
        kwargs.setdefault("scheduler", FakeScheduler())
        super().__init__(**kwargs)
        self.history: List[Tuple[int, str, bool]] = []

    def update(self, session_id, progress, message, error=False, stage=None) -> None:
        super().update(session_id, progress, message, error=error, stage=stage)
        state = self.get(session_id)
        if state is not None:
            self.history.append((state.progress, state.message, state.error))


class FakeExtractor:
    def __init__(self, article: Optional[ExtractedArticle] = None, error: Optional[Exception] = None) -> None:
        self.article = article or ExtractedArticle(title="A", text=ARTICLE_TEXT)
        self.error = error
        self.calls: List[str] = []

    async def extract(self, url: str) -> ExtractedArticle:
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return self.article


class FakeAnalyzer:
    def __init__(self, analysis: Optional[ArticleAnalysis] = None, error: Optional[Exception] = None) -> None:
        self.analysis = analysis or ArticleAnalysis(
            summary="City rooftops get efficient solar panels.",
            key_points=["Panels are more efficient", "Bills will fall"],
            image_prompts=["Rooftop solar array", "Engineer with panel", "Town hall at dusk"],
        )
        self.error = error
        self.calls = 0

    async def analyze(self, title: str, text: str) -> ArticleAnalysis:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.analysis


class FakeImageChain:
    def __init__(self) -> None:
        self.prompts: List[str] = []

    async def generate_image(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return f"data:image/png;base64,{len(self.prompts)}"


class FakeStorage:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error
        self.saved = []

    async def save_article(self, owner_id, artifact) -> int:
        if self.error is not None:
            raise self.error
        self.saved.append((owner_id, artifact))
        return len(self.saved)


def make_png(size: Tuple[int, int] = (64, 64), seed: int = 7) -> bytes:
    """Return PNG bytes with noisy pixels so the encoded size stays well above 1000 bytes."""
    rng = random.Random(seed)
    pixels = bytes(rng.getrandbits(8) for _ in range(size[0] * size[1] * 3))
    image = Image.frombytes("RGB", size, pixels)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
