from __future__ import annotations

import json
from typing import List

import pytest

from conftest import FakeScheduler
from services.progress.progress_stream import DEFAULT_EVENT, format_event, progress_events
from services.progress.progress_tracker import ProgressTracker
from services.progress.session_sweeper import SessionSweeper


def decode(frame: str) -> dict:
    assert frame.startswith("data: ")
    assert frame.endswith("\n\n")
    return json.loads(frame[len("data: "):])


class Connection:
    """Reports a disconnect after `checks` calls (never when None)."""

    def __init__(self, checks: int | None = None) -> None:
        self.remaining = checks

    async def is_disconnected(self) -> bool:
        if self.remaining is None:
            return False
        if self.remaining <= 0:
            return True
        self.remaining -= 1
        return False


async def collect(agen) -> List[dict]:
    return [decode(frame) async for frame in agen]


def test_format_event() -> None:
    frame = format_event({"progress": 5, "message": "x", "error": False})
    assert frame == 'data: {"progress": 5, "message": "x", "error": false}\n\n'


@pytest.mark.asyncio
async def test_stream_follows_progress_until_completion() -> None:
    tracker = ProgressTracker(scheduler=FakeScheduler())
    tracker.create("s1", "alice")
    script = iter([(50, "Article analysis completed"), (100, "Article generation completed!")])
    sleeps: List[float] = []

    async def sleep(delay: float) -> None:
        sleeps.append(delay)
        step = next(script, None)
        if step is not None:
            tracker.update("s1", *step)

    events = await collect(
        progress_events(tracker, "s1", Connection().is_disconnected, interval=1.0, close_delay=2.0, sleep=sleep)
    )

    assert [e["progress"] for e in events] == [0, 50, 100]
    assert events[-1] == {"progress": 100, "message": "Article generation completed!", "error": False}
    # two poll intervals, then the two-second linger after the terminal event
    assert sleeps == [1.0, 1.0, 1.0, 1.0]


@pytest.mark.asyncio
async def test_stream_emits_error_event_and_closes() -> None:
    tracker = ProgressTracker(scheduler=FakeScheduler())
    tracker.create("s1", "alice")
    tracker.update("s1", 10, "Error: Request timeout", error=True)

    async def sleep(delay: float) -> None:
        return None

    events = await collect(progress_events(tracker, "s1", Connection().is_disconnected, sleep=sleep))

    assert events == [{"progress": 10, "message": "Error: Request timeout", "error": True}]


@pytest.mark.asyncio
async def test_unknown_session_yields_default_until_disconnect() -> None:
    tracker = ProgressTracker(scheduler=FakeScheduler())

    async def sleep(delay: float) -> None:
        return None

    events = await collect(progress_events(tracker, "nope", Connection(checks=3).is_disconnected, sleep=sleep))

    assert events == [DEFAULT_EVENT] * 3


@pytest.mark.asyncio
async def test_disconnected_client_gets_nothing() -> None:
    tracker = ProgressTracker(scheduler=FakeScheduler())
    tracker.create("s1", "alice")

    async def sleep(delay: float) -> None:
        raise AssertionError("should not sleep")

    events = await collect(progress_events(tracker, "s1", Connection(checks=0).is_disconnected, sleep=sleep))
    assert events == []


@pytest.mark.asyncio
async def test_cleaned_up_session_reads_as_initializing() -> None:
    scheduler = FakeScheduler()
    tracker = ProgressTracker(scheduler=scheduler)
    tracker.create("s1", "alice")
    tracker.update("s1", 100, "Article generation completed!")
    scheduler.fire_all()

    async def sleep(delay: float) -> None:
        return None

    events = await collect(progress_events(tracker, "s1", Connection(checks=1).is_disconnected, sleep=sleep))
    assert events == [{"progress": 0, "message": "Initializing...", "error": False}]


def test_sweeper_prunes_old_sessions() -> None:
    now = [0.0]
    tracker = ProgressTracker(clock=lambda: now[0], scheduler=FakeScheduler())
    tracker.create("old", "alice")
    tracker.update("old", 100, "Article generation completed!")
    tracker.create("running", "alice")
    now[0] = 7_200.0

    sweeper = SessionSweeper(tracker, max_age_seconds=3_600)
    assert sweeper.prune_stale_sessions() == 1
    assert tracker.get("old") is None
    assert tracker.get("running") is not None
