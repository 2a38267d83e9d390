"""Controllers for article generation, progress streaming and stored articles."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse

from dal.article_dal import ArticleDAL
from services.generation.errors import ClientInputError, FatalStageError, SessionConflictError
from services.generation.orchestrator import ArticleGenerator
from services.progress.progress_stream import (
	PROGRESS_CLOSE_DELAY,
	PROGRESS_POLL_INTERVAL,
	SSE_HEADERS,
	progress_events,
)

LOGGER = logging.getLogger(__name__)


def _is_production() -> bool:
	return os.getenv("APP_ENV", "development").lower() == "production"


def _failure_body(exc: FatalStageError) -> Dict[str, Any]:
	body: Dict[str, Any] = {"error": "Failed to generate article", "details": exc.reason}
	if not _is_production():
		body["stage"] = exc.stage.value
		cause = exc.__cause__
		body["exception"] = type(cause).__name__ if cause is not None else type(exc).__name__
	return body


async def generate_article(
	request: Request,
	url: Optional[str],
	owner_id: str,
	session_id: Optional[str] = None,
) -> Any:
	"""Run the generation pipeline and map its outcome to an HTTP response."""
	generator: ArticleGenerator = request.app.state.article_generator
	try:
		result = await generator.generate(url, owner_id, session_id)
	except ClientInputError as exc:
		return JSONResponse(status_code=400, content={"error": str(exc)})
	except SessionConflictError as exc:
		message = exc.args[0] if exc.args else "Session already in progress"
		return JSONResponse(status_code=409, content={"error": message, "sessionId": session_id})
	except FatalStageError as exc:
		return JSONResponse(status_code=500, content=_failure_body(exc))
	return result.to_response()


async def stream_progress(request: Request, session_id: str) -> StreamingResponse:
	"""Open a Server-Sent-Events stream for one generation session."""
	state = request.app.state
	events = progress_events(
		state.progress_tracker,
		session_id,
		request.is_disconnected,
		interval=getattr(state, "progress_poll_interval", PROGRESS_POLL_INTERVAL),
		close_delay=getattr(state, "progress_close_delay", PROGRESS_CLOSE_DELAY),
	)
	return StreamingResponse(events, media_type="text/event-stream", headers=SSE_HEADERS)


async def list_articles(request: Request, owner_id: str, limit: int = 100, offset: int = 0) -> Dict[str, Any]:
	"""Return the owner's stored articles without their full text."""
	dal = ArticleDAL(request.app.state.db_initializer)
	records = await dal.list_articles(owner_id, limit=limit, offset=offset)
	return {"articles": [record.to_summary_dict() for record in records]}


async def get_latest_article(request: Request, owner_id: str) -> Dict[str, Any]:
	"""Return the owner's newest article for auto-playback."""
	dal = ArticleDAL(request.app.state.db_initializer)
	record = await dal.latest_article(owner_id)
	if record is None:
		raise HTTPException(status_code=404, detail="No articles found")
	return {"article": record.to_dict()}


async def get_article(request: Request, owner_id: str, article_id: int) -> Dict[str, Any]:
	"""Return one stored article including its full text."""
	dal = ArticleDAL(request.app.state.db_initializer)
	record = await dal.get_article(article_id, owner_id)
	if record is None:
		raise HTTPException(status_code=404, detail="Article not found")
	return record.to_dict()


async def delete_article(request: Request, owner_id: str, article_id: int) -> Dict[str, Any]:
	"""Delete one stored article."""
	dal = ArticleDAL(request.app.state.db_initializer)
	deleted = await dal.delete_article(article_id, owner_id)
	if not deleted:
		raise HTTPException(status_code=404, detail="Article not found")
	LOGGER.info("Deleted article %s for owner %s", article_id, owner_id)
	return {"success": True, "id": article_id}
