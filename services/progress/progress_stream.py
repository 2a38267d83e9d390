"""Server-Sent-Events frames for generation progress.

The stream polls the shared `ProgressTracker` at a fixed interval and
pushes the current record to one client:

1. One event immediately, then one per poll interval.
2. Unknown (or already cleaned up) sessions yield a default
   "Initializing..." payload instead of an error.
3. After a terminal record (progress 100 or error) is sent, the stream
   lingers for `close_delay` seconds and then ends.
4. A disconnected peer ends the stream at the next check. Generation itself
   is never affected.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import AsyncIterator, Awaitable, Callable

from services.progress.progress_tracker import ProgressTracker

LOGGER = logging.getLogger(__name__)

PROGRESS_POLL_INTERVAL = float(os.getenv("PROGRESS_POLL_INTERVAL", "1.0"))
PROGRESS_CLOSE_DELAY = float(os.getenv("PROGRESS_CLOSE_DELAY", "2.0"))

DEFAULT_EVENT = {"progress": 0, "message": "Initializing...", "error": False}

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_event(payload: dict) -> str:
    """Frame a payload as one SSE `data:` event."""
    return f"data: {json.dumps(payload)}\n\n"


async def _linger(
    delay: float,
    step: float,
    is_disconnected: Callable[[], Awaitable[bool]],
    sleep: Callable[[float], Awaitable[None]],
) -> None:
    remaining = delay
    while remaining > 0:
        if await is_disconnected():
            return
        chunk = min(step, remaining) if step > 0 else remaining
        await sleep(chunk)
        remaining -= chunk


async def progress_events(
    tracker: ProgressTracker,
    session_id: str,
    is_disconnected: Callable[[], Awaitable[bool]],
    *,
    interval: float = PROGRESS_POLL_INTERVAL,
    close_delay: float = PROGRESS_CLOSE_DELAY,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> AsyncIterator[str]:
    """Yield SSE frames for `session_id` until terminal state or disconnect.

    Args:
        tracker: Shared progress tracker (read only here).
        session_id: Session to observe.
        is_disconnected: Awaitable check for peer disconnect.
        interval: Seconds between polls.
        close_delay: Seconds to keep the stream open after the terminal event.
        sleep: Sleep function, injectable for tests.
    """
    sent = 0
    try:
        while True:
            if await is_disconnected():
                LOGGER.debug("Progress stream for %s: client disconnected", session_id)
                return

            state = tracker.get(session_id)
            if state is None:
                yield format_event(DEFAULT_EVENT)
                sent += 1
            else:
                yield format_event(state.to_event())
                sent += 1
                if state.terminal:
                    await _linger(close_delay, interval, is_disconnected, sleep)
                    return

            await sleep(interval)
    finally:
        LOGGER.debug("Progress stream for %s closed after %d event(s)", session_id, sent)
