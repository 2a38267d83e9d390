"""Errors raised by the article generation pipeline."""

from __future__ import annotations

from typing import Optional

from models.session_models import GenerationStage
from services.progress.progress_tracker import SessionConflictError

__all__ = ["ClientInputError", "FatalStageError", "SessionConflictError"]


class ClientInputError(ValueError):
    """The request is unusable; rejected before any session exists."""


class FatalStageError(RuntimeError):
    """A stage failed in a way that aborts the pipeline.

    Attributes:
        stage: Stage that failed.
        reason: Short human-readable failure reason.
        session_id: Session that was marked as failed.
    """

    def __init__(self, stage: GenerationStage, reason: str, session_id: Optional[str] = None) -> None:
        super().__init__(f"{stage.value} failed: {reason}")
        self.stage = stage
        self.reason = reason
        self.session_id = session_id
