"""Transient values passed between generation pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class ExtractedArticle:
    """Title and main text pulled from an article page."""

    title: str
    text: str


@dataclass
class ArticleAnalysis:
    """Summary, key points and image prompts produced for an article.

    Attributes:
        summary: Short prose summary of the article.
        key_points: Ordered bullet points.
        image_prompts: Prompts for the image provider chain.
        fallback: True when produced by the local heuristic instead of the model.
    """

    summary: str
    key_points: List[str] = field(default_factory=list)
    image_prompts: List[str] = field(default_factory=list)
    fallback: bool = False


@dataclass
class ImageAttemptResult:
    """Outcome of one provider attempt for one prompt."""

    provider: str
    image_bytes: Optional[bytes] = None
    mime_type: Optional[str] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.image_bytes is not None
