from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from controllers.article_controller import (
	delete_article,
	generate_article,
	get_article,
	get_latest_article,
	list_articles,
	stream_progress,
)

router = APIRouter(prefix="/api")

ANONYMOUS_OWNER = "anonymous"


class GenerateRequest(BaseModel):
	url: Optional[str] = None


def _owner_id(request: Request) -> str:
	return (request.headers.get("X-User-Id") or "").strip() or ANONYMOUS_OWNER


@router.post("/generate")
async def generate(request: Request, payload: Optional[GenerateRequest] = None):
	"""Generate a narratable article from a URL."""
	url = payload.url if payload is not None else None
	session_id = request.headers.get("X-Session-Id")
	try:
		return await generate_article(request, url, _owner_id(request), session_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/generate-progress/{session_id}")
async def generate_progress(request: Request, session_id: str):
	"""Stream generation progress for a session as Server-Sent Events."""
	return await stream_progress(request, session_id)


@router.get("/user/articles")
async def user_articles(
	request: Request,
	limit: int = Query(100, ge=1, le=500),
	offset: int = Query(0, ge=0),
):
	"""List the caller's stored articles."""
	try:
		return await list_articles(request, _owner_id(request), limit=limit, offset=offset)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/user/articles/latest")
async def latest_user_article(request: Request):
	"""Return the caller's most recent article."""
	try:
		return await get_latest_article(request, _owner_id(request))
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/user/articles/{article_id}")
async def user_article(request: Request, article_id: int):
	"""Return one of the caller's stored articles."""
	try:
		return await get_article(request, _owner_id(request), article_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.delete("/user/articles/{article_id}")
async def remove_user_article(request: Request, article_id: int):
	"""Delete one of the caller's stored articles."""
	try:
		return await delete_article(request, _owner_id(request), article_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
