"""Article generation pipeline.

`ArticleGenerator` turns an article URL into a stored, narratable artifact
and reports every stage boundary to the shared `ProgressTracker`:

    INITIALIZING -> SCRAPING -> ANALYZING -> GENERATING_IMAGES -> SAVING -> COMPLETED

with ERROR reachable from any non-terminal stage.

Failure policy:
    - Extraction and storage failures are fatal: the session is marked as
      failed and `FatalStageError` is raised to the caller.
    - Analysis failures are absorbed by the local fallback analysis.
    - Image generation cannot fail per prompt; an unexpected error only
      drops that image from the result.

Each run executes in its own task shielded from the caller, so a caller
going away never cancels a generation in progress.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Protocol, Set
from uuid import uuid4

from models.article_record import GeneratedArtifact
from models.pipeline_models import ArticleAnalysis, ExtractedArticle
from models.session_models import GenerationStage
from services.fallback_analysis import build_fallback_analysis
from services.generation.errors import FatalStageError
from services.progress.progress_tracker import ProgressTracker
from utils.url_validation import validate_article_url

LOGGER = logging.getLogger(__name__)

MAX_IMAGES = 3
IMAGE_PROGRESS_STEP = 5


class Extractor(Protocol):
    async def extract(self, url: str) -> ExtractedArticle:
        ...


class Analyzer(Protocol):
    async def analyze(self, title: str, text: str) -> ArticleAnalysis:
        ...


class ImageGenerator(Protocol):
    async def generate_image(self, prompt: str) -> str:
        ...


class ArticleStorage(Protocol):
    async def save_article(self, owner_id: str, artifact: GeneratedArtifact) -> int:
        ...


@dataclass
class GenerationResult:
    """What a successful run hands back to the HTTP layer."""

    session_id: str
    article_id: int
    artifact: GeneratedArtifact
    used_fallback_analysis: bool = False

    def to_response(self) -> dict:
        return {
            "success": True,
            "id": self.article_id,
            "title": self.artifact.title,
            "summary": self.artifact.summary,
            "keyPoints": self.artifact.key_points,
            "imageUrls": self.artifact.image_urls,
            "sessionId": self.session_id,
        }


def _retrieve_outcome(task: asyncio.Task) -> None:
    """Mark a finished run's exception as retrieved when its caller went away."""
    if not task.cancelled():
        task.exception()


def new_session_id() -> str:
    return f"session_{uuid4().hex}"


class ArticleGenerator:
    """Coordinate extraction, analysis, image generation and storage for one URL.

    Args:
        tracker: Shared progress tracker; this generator is the only writer
            for the sessions it creates.
        extractor: Fetches title and text for a URL.
        analyzer: Produces summary, key points and image prompts. May be None,
            in which case the fallback analysis is always used.
        image_chain: Turns a prompt into an image reference; never fails.
        storage: Persists the final artifact.
        max_images: Upper bound on image prompts sent to the chain.
        fallback: Builds a substitute analysis when the analyzer fails.
    """

    def __init__(
        self,
        tracker: ProgressTracker,
        extractor: Extractor,
        analyzer: Optional[Analyzer],
        image_chain: ImageGenerator,
        storage: ArticleStorage,
        max_images: int = MAX_IMAGES,
        fallback: Callable[[str, str], ArticleAnalysis] = build_fallback_analysis,
    ) -> None:
        self.tracker = tracker
        self.extractor = extractor
        self.analyzer = analyzer
        self.image_chain = image_chain
        self.storage = storage
        self.max_images = max_images
        self.fallback = fallback
        self._tasks: Set[asyncio.Task] = set()

    def start(self, url: object, owner_id: str, session_id: Optional[str] = None) -> "asyncio.Task[GenerationResult]":
        """Validate the request, create its session and launch the pipeline task.

        Raises:
            ClientInputError: If the URL is missing or malformed. No session is created.
            SessionConflictError: If `session_id` belongs to a generation still in flight.
        """
        article_url = validate_article_url(url)
        session_id = (session_id or "").strip() or new_session_id()
        self.tracker.create(session_id, owner_id)
        LOGGER.info("Starting article generation for owner %s, session %s", owner_id, session_id)

        task = asyncio.create_task(self._run(session_id, article_url, owner_id), name=f"generate:{session_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(_retrieve_outcome)
        return task

    async def generate(self, url: object, owner_id: str, session_id: Optional[str] = None) -> GenerationResult:
        """Run the full pipeline and return its result.

        The pipeline task is shielded: cancelling this coroutine leaves the
        generation running to completion.

        Raises:
            ClientInputError: Invalid URL, raised before a session exists.
            SessionConflictError: Session id already in flight.
            FatalStageError: Extraction or storage failed; the session is marked as failed.
        """
        task = self.start(url, owner_id, session_id)
        return await asyncio.shield(task)

    @property
    def active_generations(self) -> int:
        return len(self._tasks)

    async def _run(self, session_id: str, url: str, owner_id: str) -> GenerationResult:
        stage = GenerationStage.SCRAPING
        try:
            self._progress(session_id, 10, "Fetching article content...", stage)
            article = await self._guarded(session_id, stage, self.extractor.extract(url))
            self._progress(session_id, 20, "Article content extracted successfully", stage)

            stage = GenerationStage.ANALYZING
            self._progress(session_id, 30, "Analyzing article content...", stage)
            analysis = await self._analyze(session_id, article)
            self._progress(session_id, 50, "Article analysis completed", stage)

            stage = GenerationStage.GENERATING_IMAGES
            image_urls = await self._generate_images(session_id, analysis.image_prompts)

            artifact = GeneratedArtifact(
                title=article.title,
                url=url,
                full_text=article.text,
                summary=analysis.summary,
                key_points=list(analysis.key_points),
                image_urls=image_urls,
            )

            stage = GenerationStage.SAVING
            self._progress(session_id, 80, "Saving article to database...", stage)
            article_id = await self._guarded(session_id, stage, self.storage.save_article(owner_id, artifact))
            self._progress(session_id, 90, "Article saved", stage)

            self._progress(session_id, 100, "Article generation completed!", GenerationStage.COMPLETED)
            LOGGER.info("Article generation completed for session %s, article id %s", session_id, article_id)
            return GenerationResult(session_id, article_id, artifact, used_fallback_analysis=analysis.fallback)
        except FatalStageError:
            raise
        except Exception as exc:
            raise self._fail(session_id, stage, exc) from exc

    async def _guarded(self, session_id: str, stage: GenerationStage, call: Awaitable):
        """Await a fatal-on-failure collaborator call."""
        try:
            return await call
        except Exception as exc:
            raise self._fail(session_id, stage, exc) from exc

    async def _analyze(self, session_id: str, article: ExtractedArticle) -> ArticleAnalysis:
        if self.analyzer is not None:
            try:
                return await self.analyzer.analyze(article.title, article.text)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                LOGGER.warning("Analysis failed for session %s, using fallback content: %s", session_id, exc)
                self._progress(session_id, 40, "AI service unavailable, generating fallback content...")
        return self.fallback(article.title, article.text)

    async def _generate_images(self, session_id: str, prompts: List[str]) -> List[str]:
        selected = list(prompts)[: self.max_images]
        self._progress(session_id, 60, "Generating article images...", GenerationStage.GENERATING_IMAGES)

        image_urls: List[str] = []
        for index, prompt in enumerate(selected, start=1):
            try:
                image_url = await self.image_chain.generate_image(prompt)
            except Exception:  # pylint: disable=broad-exception-caught
                LOGGER.exception("Image %d of %d failed for session %s", index, len(selected), session_id)
                image_url = None
            if image_url:
                image_urls.append(image_url)
            self._progress(
                session_id,
                60 + index * IMAGE_PROGRESS_STEP,
                f"Generated image {index} of {len(selected)}",
            )
        return image_urls

    def _progress(
        self,
        session_id: str,
        progress: int,
        message: str,
        stage: Optional[GenerationStage] = None,
    ) -> None:
        self.tracker.update(session_id, progress, message, stage=stage)

    def _fail(self, session_id: str, stage: GenerationStage, exc: BaseException) -> FatalStageError:
        reason = str(exc) or type(exc).__name__
        LOGGER.error("Article generation failed for session %s during %s: %s", session_id, stage.value, reason)
        state = self.tracker.get(session_id)
        current = state.progress if state is not None else 0
        self.tracker.update(session_id, current, f"Error: {reason}", error=True, stage=GenerationStage.ERROR)
        return FatalStageError(stage, reason, session_id=session_id)
