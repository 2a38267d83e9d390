from __future__ import annotations

import asyncio
import gc
from typing import List

import httpx
import pytest

from conftest import (
    ARTICLE_TEXT,
    FakeAnalyzer,
    FakeExtractor,
    FakeImageChain,
    FakeStorage,
    RecordingTracker,
)
from models.pipeline_models import ArticleAnalysis, ExtractedArticle
from models.session_models import GenerationStage
from services.generation.errors import ClientInputError, FatalStageError, SessionConflictError
from services.generation.orchestrator import ArticleGenerator
from services.images.image_chain import ImageProviderChain
from services.images.providers import ProviderDescriptor
from services.scraping.article_extractor import ArticleExtractionError

SUCCESS_TRAJECTORY = [10, 20, 30, 50, 60, 65, 70, 75, 80, 90, 100]


def make_generator(tracker=None, extractor=None, analyzer=None, image_chain=None, storage=None) -> ArticleGenerator:
    return ArticleGenerator(
        tracker=tracker if tracker is not None else RecordingTracker(),
        extractor=extractor or FakeExtractor(),
        analyzer=analyzer or FakeAnalyzer(),
        image_chain=image_chain or FakeImageChain(),
        storage=storage or FakeStorage(),
    )


@pytest.mark.asyncio
async def test_successful_run_with_third_provider(png_bytes: bytes) -> None:
    attempts: List[str] = []

    def provider(name: str, payload: bytes = b"", error: Exception = None) -> ProviderDescriptor:
        async def invoke(client: httpx.AsyncClient, prompt: str) -> bytes:
            attempts.append(name)
            if error is not None:
                raise error
            return payload

        return ProviderDescriptor(name, 1.0, invoke)

    chain = ImageProviderChain(
        httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500))),
        providers=[
            provider("flux", error=RuntimeError("flux down")),
            provider("turbo", error=RuntimeError("turbo down")),
            provider("sdxl", payload=png_bytes),
        ],
    )
    tracker = RecordingTracker()
    storage = FakeStorage()
    generator = make_generator(
        tracker=tracker,
        extractor=FakeExtractor(ExtractedArticle(title="A", text=ARTICLE_TEXT)),
        image_chain=chain,
        storage=storage,
    )

    result = await generator.generate("https://example.com/a", "alice", "session-1")

    response = result.to_response()
    assert response["success"] is True
    assert response["sessionId"] == "session-1"
    assert response["title"] == "A"
    assert len(response["imageUrls"]) == 3
    assert all(url.startswith("data:image/png;base64,") for url in response["imageUrls"])
    assert attempts == ["flux", "turbo", "sdxl"] * 3

    assert [progress for progress, _, _ in tracker.history] == SUCCESS_TRAJECTORY
    assert not any(error for _, _, error in tracker.history)
    final = tracker.get("session-1")
    assert final.progress == 100
    assert final.message == "Article generation completed!"
    assert final.stage is GenerationStage.COMPLETED

    owner, artifact = storage.saved[0]
    assert owner == "alice"
    assert artifact.url == "https://example.com/a"
    assert artifact.full_text == ARTICLE_TEXT


@pytest.mark.asyncio
async def test_trajectory_messages() -> None:
    tracker = RecordingTracker()
    await make_generator(tracker=tracker).generate("https://example.com/a", "alice", "s")

    messages = [message for _, message, _ in tracker.history]
    assert messages == [
        "Fetching article content...",
        "Article content extracted successfully",
        "Analyzing article content...",
        "Article analysis completed",
        "Generating article images...",
        "Generated image 1 of 3",
        "Generated image 2 of 3",
        "Generated image 3 of 3",
        "Saving article to database...",
        "Article saved",
        "Article generation completed!",
    ]


@pytest.mark.asyncio
async def test_extraction_failure_short_circuits() -> None:
    tracker = RecordingTracker()
    chain = FakeImageChain()
    storage = FakeStorage()
    analyzer = FakeAnalyzer()
    generator = make_generator(
        tracker=tracker,
        extractor=FakeExtractor(error=ArticleExtractionError("Request timeout: the website is taking too long to respond.")),
        analyzer=analyzer,
        image_chain=chain,
        storage=storage,
    )

    with pytest.raises(FatalStageError) as excinfo:
        await generator.generate("https://example.com/slow", "alice", "s")

    assert excinfo.value.stage is GenerationStage.SCRAPING
    assert "timeout" in excinfo.value.reason.lower()
    assert analyzer.calls == 0
    assert chain.prompts == []
    assert storage.saved == []

    state = tracker.get("s")
    assert state.error is True
    assert state.progress == 10
    assert state.message.startswith("Error: Request timeout")
    assert not any(progress == 100 for progress, _, _ in tracker.history)


@pytest.mark.asyncio
async def test_analysis_failure_uses_fallback() -> None:
    tracker = RecordingTracker()
    chain = FakeImageChain()
    generator = make_generator(
        tracker=tracker,
        analyzer=FakeAnalyzer(error=RuntimeError("model unavailable")),
        image_chain=chain,
    )

    result = await generator.generate("https://example.com/a", "alice", "s")

    assert result.used_fallback_analysis is True
    assert result.artifact.summary
    assert len(result.artifact.key_points) >= 1
    assert len(chain.prompts) == 3
    assert tracker.get("s").progress == 100
    assert (40, "AI service unavailable, generating fallback content...", False) in tracker.history
    progresses = [progress for progress, _, _ in tracker.history]
    assert progresses == sorted(progresses)


@pytest.mark.asyncio
async def test_invalid_analysis_output_uses_fallback() -> None:
    chain = FakeImageChain()
    generator = make_generator(
        analyzer=FakeAnalyzer(error=ValueError("Analysis output has no image prompts.")),
        image_chain=chain,
    )

    result = await generator.generate("https://example.com/a", "alice")

    assert result.used_fallback_analysis is True
    assert chain.prompts


@pytest.mark.asyncio
async def test_images_are_capped_and_failures_compacted() -> None:
    class FlakyChain(FakeImageChain):
        async def generate_image(self, prompt: str) -> str:
            if prompt == "broken":
                self.prompts.append(prompt)
                raise RuntimeError("unexpected")
            return await super().generate_image(prompt)

    chain = FlakyChain()
    analysis = ArticleAnalysis(summary="s", key_points=["k"], image_prompts=["one", "broken", "three", "four"])
    generator = make_generator(analyzer=FakeAnalyzer(analysis), image_chain=chain)

    result = await generator.generate("https://example.com/a", "alice")

    assert chain.prompts == ["one", "broken", "three"]
    assert len(result.artifact.image_urls) == 2


@pytest.mark.asyncio
async def test_storage_failure_is_fatal() -> None:
    tracker = RecordingTracker()
    generator = make_generator(tracker=tracker, storage=FakeStorage(error=RuntimeError("disk full")))

    with pytest.raises(FatalStageError) as excinfo:
        await generator.generate("https://example.com/a", "alice", "s")

    assert excinfo.value.stage is GenerationStage.SAVING
    assert excinfo.value.reason == "disk full"
    state = tracker.get("s")
    assert state.error is True
    assert state.progress == 80
    assert state.message == "Error: disk full"


@pytest.mark.asyncio
@pytest.mark.parametrize("url", [None, "", "   ", "not a url", "ftp://example.com/file", "https://"])
async def test_invalid_url_creates_no_session(url) -> None:
    tracker = RecordingTracker()
    extractor = FakeExtractor()
    generator = make_generator(tracker=tracker, extractor=extractor)

    with pytest.raises(ClientInputError):
        await generator.generate(url, "alice", "s")

    assert len(tracker) == 0
    assert extractor.calls == []


@pytest.mark.asyncio
async def test_in_flight_session_id_is_rejected() -> None:
    tracker = RecordingTracker()
    tracker.create("busy", "bob")
    generator = make_generator(tracker=tracker)

    with pytest.raises(SessionConflictError):
        await generator.generate("https://example.com/a", "alice", "busy")

    assert tracker.get("busy").owner_id == "bob"


@pytest.mark.asyncio
async def test_generated_session_id_when_none_given() -> None:
    result = await make_generator().generate("https://example.com/a", "alice")
    assert result.session_id.startswith("session_")


@pytest.mark.asyncio
async def test_cancelling_caller_does_not_cancel_generation() -> None:
    gate = asyncio.Event()

    class SlowExtractor(FakeExtractor):
        async def extract(self, url: str) -> ExtractedArticle:
            await gate.wait()
            return await super().extract(url)

    tracker = RecordingTracker()
    storage = FakeStorage()
    generator = make_generator(tracker=tracker, extractor=SlowExtractor(), storage=storage)

    caller = asyncio.create_task(generator.generate("https://example.com/a", "alice", "s"))
    await asyncio.sleep(0.01)
    caller.cancel()
    with pytest.raises(asyncio.CancelledError):
        await caller

    gate.set()
    for _ in range(100):
        if generator.active_generations == 0:
            break
        await asyncio.sleep(0.01)

    assert tracker.get("s").progress == 100
    assert len(storage.saved) == 1


@pytest.mark.asyncio
async def test_failure_after_caller_left_is_not_reported_as_unretrieved() -> None:
    gate = asyncio.Event()

    class FailingExtractor(FakeExtractor):
        async def extract(self, url: str) -> ExtractedArticle:
            await gate.wait()
            raise ArticleExtractionError("Connection failed. The website may be down or blocking requests.")

    loop = asyncio.get_running_loop()
    reported = []
    loop.set_exception_handler(lambda _loop, context: reported.append(context))
    try:
        tracker = RecordingTracker()
        generator = make_generator(tracker=tracker, extractor=FailingExtractor())

        caller = asyncio.create_task(generator.generate("https://example.com/a", "alice", "s"))
        await asyncio.sleep(0.01)
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller
        del caller

        gate.set()
        for _ in range(100):
            if generator.active_generations == 0:
                break
            await asyncio.sleep(0.01)
        gc.collect()
        await asyncio.sleep(0)
    finally:
        loop.set_exception_handler(None)

    assert tracker.get("s").error is True
    assert not [c for c in reported if "never retrieved" in c.get("message", "")]
