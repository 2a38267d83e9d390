from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class GeneratedArtifact:
    """Terminal output of a successful generation, before it is stored.

    Attributes:
        title: Article title.
        url: Source URL the article was fetched from.
        full_text: Full extracted article text.
        summary: Summary text (model or fallback).
        key_points: Ordered key points.
        image_urls: Image references in generation order (data URLs).
    """

    title: str
    url: str
    full_text: str
    summary: str
    key_points: List[str] = field(default_factory=list)
    image_urls: List[str] = field(default_factory=list)


@dataclass
class ArticleRecord:
    """In-memory representation of a row in the user_articles table.

    Attributes:
        id: Primary key (None for new records).
        owner_id: Identifier of the user who generated the article.
        created_at: Unix timestamp (seconds) when the row was inserted.
    """

    id: Optional[int]
    owner_id: str
    title: str
    url: str
    full_text: str
    summary: Optional[str] = None
    key_points: List[str] = field(default_factory=list)
    image_urls: List[str] = field(default_factory=list)
    created_at: Optional[int] = None

    @classmethod
    def from_artifact(cls, owner_id: str, artifact: GeneratedArtifact) -> "ArticleRecord":
        return cls(
            id=None,
            owner_id=owner_id,
            title=artifact.title,
            url=artifact.url,
            full_text=artifact.full_text,
            summary=artifact.summary,
            key_points=list(artifact.key_points),
            image_urls=list(artifact.image_urls),
        )

    def to_summary_dict(self) -> dict:
        """Return the listing view (no full text)."""
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "summary": self.summary,
            "key_points": self.key_points,
            "image_urls": self.image_urls,
            "created_at": self.created_at,
        }

    def to_dict(self) -> dict:
        return {**self.to_summary_dict(), "full_text": self.full_text or ""}
