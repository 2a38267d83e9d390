"""In-memory progress records for article generation sessions."""

from __future__ import annotations

import asyncio
import itertools
import logging
import os
import time
from dataclasses import replace
from typing import Callable, Dict, Optional

from models.session_models import GenerationSession, GenerationStage

LOGGER = logging.getLogger(__name__)

SESSION_CLEANUP_DELAY = float(os.getenv("SESSION_CLEANUP_DELAY", "30"))

Clock = Callable[[], float]
Scheduler = Callable[[float, Callable[[], None]], object]


class SessionConflictError(KeyError):
	"""Raised when a session id is already used by an in-flight generation."""


def _loop_scheduler(delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
	return asyncio.get_running_loop().call_later(delay, callback)


class ProgressTracker:
	"""Own the session_id -> GenerationSession map shared by writers and stream readers.

	Every method runs synchronously on the event loop, so each call is atomic
	with respect to other tasks. Records are frozen and replaced wholesale.

	Args:
		clock: Returns the current time in seconds; stamps `start_time`.
		scheduler: Runs a callback after a delay; used for terminal cleanup.
		cleanup_delay: Seconds a terminal record stays readable.
	"""

	def __init__(
		self,
		clock: Clock = time.time,
		scheduler: Scheduler = _loop_scheduler,
		cleanup_delay: float = SESSION_CLEANUP_DELAY,
	) -> None:
		self._sessions: Dict[str, GenerationSession] = {}
		self._clock = clock
		self._scheduler = scheduler
		self.cleanup_delay = cleanup_delay
		self._generations = itertools.count(1)

	def __len__(self) -> int:
		return len(self._sessions)

	def create(self, session_id: str, owner_id: str) -> GenerationSession:
		"""Insert a fresh record at progress 0.

		A terminal record still waiting for cleanup is replaced.

		Raises:
			SessionConflictError: If a non-terminal record exists for the id.
		"""
		existing = self._sessions.get(session_id)
		if existing is not None and not existing.terminal:
			raise SessionConflictError(f"Session {session_id} is already in progress")
		state = GenerationSession(
			session_id=session_id,
			owner_id=owner_id,
			start_time=self._clock(),
			generation=next(self._generations),
		)
		self._sessions[session_id] = state
		return state

	def get(self, session_id: str) -> Optional[GenerationSession]:
		"""Return the current snapshot, or None when unknown or cleaned up."""
		return self._sessions.get(session_id)

	def update(
		self,
		session_id: str,
		progress: int,
		message: str,
		error: bool = False,
		stage: Optional[GenerationStage] = None,
	) -> None:
		"""Replace the mutable fields of a session.

		Missing sessions and terminal sessions are left untouched. Progress is
		clamped to 0-100 and never moves backwards.
		"""
		state = self._sessions.get(session_id)
		if state is None:
			LOGGER.debug("Progress update for unknown session %s ignored", session_id)
			return
		if state.terminal:
			LOGGER.debug("Progress update for finished session %s ignored", session_id)
			return

		progress = max(state.progress, min(100, max(0, int(progress))))
		if stage is None:
			stage = GenerationStage.ERROR if error else state.stage
		updated = replace(state, progress=progress, message=message, error=bool(error), stage=stage)
		self._sessions[session_id] = updated

		if updated.terminal:
			self.schedule_cleanup(session_id, self.cleanup_delay)

	def schedule_cleanup(self, session_id: str, delay: float) -> None:
		"""Remove the session after `delay` seconds.

		The removal is tied to the current record, so a record that replaced
		it in the meantime survives.
		"""
		state = self._sessions.get(session_id)
		if state is None:
			return
		generation = state.generation
		self._scheduler(delay, lambda: self._expire(session_id, generation))

	def prune_stale(self, max_age: float) -> int:
		"""Drop terminal records whose start_time is older than `max_age` seconds.

		In-flight records are kept whatever their age, so `create` keeps
		rejecting the id of a generation that is still running.
		"""
		cutoff = self._clock() - max_age
		stale = [
			sid for sid, state in self._sessions.items()
			if state.terminal and state.start_time < cutoff
		]
		for session_id in stale:
			del self._sessions[session_id]
		return len(stale)

	def _expire(self, session_id: str, generation: int) -> None:
		state = self._sessions.get(session_id)
		if state is not None and state.generation == generation:
			del self._sessions[session_id]
			LOGGER.debug("Session %s cleaned up", session_id)
