"""Session domain models for article generation progress."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class GenerationStage(str, Enum):
	"""Pipeline stages, in the order a successful run visits them."""

	INITIALIZING = "initializing"
	SCRAPING = "scraping"
	ANALYZING = "analyzing"
	GENERATING_IMAGES = "generating_images"
	SAVING = "saving"
	COMPLETED = "completed"
	ERROR = "error"


@dataclass(frozen=True)
class GenerationSession:
	"""Snapshot of one generation's progress.

	Records are immutable; the tracker swaps in a new instance on every
	update so readers never see a half-written record.
	"""

	session_id: str
	owner_id: str
	start_time: float
	progress: int = 0
	message: str = "Starting article processing..."
	error: bool = False
	stage: GenerationStage = GenerationStage.INITIALIZING
	generation: int = 0

	@property
	def terminal(self) -> bool:
		return self.error or self.progress >= 100

	def to_event(self) -> dict:
		"""Return the payload pushed to progress stream clients."""
		return {"progress": self.progress, "message": self.message, "error": self.error}
