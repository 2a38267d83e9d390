import asyncio
import contextlib
import inspect
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from openai import AsyncOpenAI

from dal.article_dal import ArticleDAL
from routes.article_route import router as article_router
from services.generation.orchestrator import ArticleGenerator
from services.images.image_chain import ImageProviderChain
from services.images.providers import default_providers
from services.openai.article_analyzer import ArticleAnalyzer
from services.progress.progress_tracker import ProgressTracker
from services.progress.session_sweeper import SessionSweeper
from services.scraping.article_extractor import ArticleExtractor
from utils.database_init import AsyncDatabaseInitializer

BASE_DIR = Path(__file__).resolve().parent
PUBLIC_DIR = BASE_DIR / "public"

SWEEP_INTERVAL = float(os.getenv("SESSION_SWEEP_INTERVAL", "300"))

from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file if present

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
LOGGER = logging.getLogger(__name__)


async def _close_client(client) -> None:
    """Close a client exposing `aclose` or `close`, sync or async."""
    if client is None:
        return
    aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
    if aclose is None:
        return
    try:
        if inspect.iscoroutinefunction(aclose):
            await aclose()
        else:
            result = aclose()
            if inspect.isawaitable(result):
                await result
    except Exception:
        LOGGER.warning("Error while closing %s", type(client).__name__, exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the SQLite database (at DATABASE_DIR/app.db, kept across restarts)
      - the OpenAI async client and a shared httpx client
      - the progress tracker, the generation pipeline and its session sweeper
    and attach them to `app.state`.
    """
    db_initializer = AsyncDatabaseInitializer()
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer

    openai_api_key = os.getenv("OPENAI_API_KEY")
    if not openai_api_key:
        raise RuntimeError("OPENAI_API_KEY environment variable is not set")

    try:
        openai_client = AsyncOpenAI()
    except Exception as exc:
        raise RuntimeError("Failed to initialize OpenAI Async client") from exc
    app.state.openai_client = openai_client

    # Callers set their own limits: per-request for extraction, per-provider for images.
    http_client = httpx.AsyncClient(timeout=None)
    app.state.http_client = http_client

    tracker = ProgressTracker()
    app.state.progress_tracker = tracker
    app.state.article_generator = ArticleGenerator(
        tracker=tracker,
        extractor=ArticleExtractor(http_client),
        analyzer=ArticleAnalyzer(openai_client),
        image_chain=ImageProviderChain(http_client, default_providers(os.getenv("HUGGINGFACE_API_KEY"))),
        storage=ArticleDAL(db_initializer),
    )

    sweeper = SessionSweeper(tracker)
    sweep_task = asyncio.create_task(sweeper.run_periodic_cleanup(SWEEP_INTERVAL))
    LOGGER.info("Application started (database at %s)", db_initializer.db_path)

    try:
        yield
    finally:
        sweep_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweep_task
        await _close_client(getattr(app.state, "http_client", None))
        await _close_client(getattr(app.state, "openai_client", None))


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    app = FastAPI(lifespan=lifespan)

    # Serve static assets from the public directory, if it exists.
    if PUBLIC_DIR.exists():
        app.mount("/public", StaticFiles(directory=PUBLIC_DIR), name="public")

    @app.get("/", include_in_schema=False)
    async def serve_index():
        """
        Serve the frontend index page from the public directory.
        """
        index_path = PUBLIC_DIR / "index.html"
        if not index_path.exists():
            raise HTTPException(status_code=404, detail="Frontend not found")
        return FileResponse(index_path)

    @app.get("/health")
    async def health(request: Request):
        """
        Health check reporting DB, OpenAI client and active progress sessions.
        """
        state = request.app.state
        has_db = hasattr(state, "db_initializer")
        has_openai = getattr(state, "openai_client", None) is not None
        tracker = getattr(state, "progress_tracker", None)
        return {
            "ok": True,
            "db_initialized": has_db,
            "openai_available": has_openai,
            "active_sessions": len(tracker) if tracker is not None else 0,
        }

    app.include_router(article_router)

    return app


app = create_app()
