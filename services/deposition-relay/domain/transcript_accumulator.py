"""Merging of final transcript segments and the analysis trigger."""

import asyncio
from collections.abc import Awaitable, Callable

from legal_common.logging import setup_logging

logger = setup_logging()

TRANSCRIPT_SEPARATOR = " "


def merge_transcript(existing: str, segment: str) -> str:
    """
    Appends a final segment to a transcript.

    Finals are never overwritten: the result is the concatenation of every
    non-empty segment in arrival order, separated by a single space.
    """
    segment = segment.strip()
    if not segment:
        return existing
    if not existing:
        return segment
    return f"{existing}{TRANSCRIPT_SEPARATOR}{segment}"


class AnalysisTrigger:
    """
    Runs an async analysis callback over the latest transcript, coalescing requests.

    At most one run is in flight. Requests made while a run is in flight
    collapse into a single follow-up run with the newest transcript.
    Failures of the callback are logged and swallowed.
    """

    def __init__(self, run: Callable[[str], Awaitable[None]]):
        self._run = run
        self._pending: str | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def request(self, transcript: str) -> None:
        self._pending = transcript
        if not self.running:
            self._task = asyncio.create_task(self._drain())

    async def _drain(self) -> None:
        while self._pending is not None:
            transcript, self._pending = self._pending, None
            try:
                await self._run(transcript)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(
                    "Transcript analysis failed",
                    extra={"transcript_length": len(transcript)},
                )

    async def aclose(self, timeout: float) -> None:
        """Waits for the in-flight and pending runs up to `timeout`, then cancels."""
        task = self._task
        if task is None or task.done():
            return
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout)
        except asyncio.TimeoutError:
            self._pending = None
            task.cancel()
            logger.warning("Transcript analysis cancelled at session close")


class TranscriptAccumulator:
    """Keeps the running transcript of one session and triggers analysis on finals."""

    def __init__(self, initial: str = "", trigger: AnalysisTrigger | None = None):
        self._transcript = initial
        self._trigger = trigger

    @property
    def transcript(self) -> str:
        return self._transcript

    def add_final(self, segment: str) -> str:
        updated = merge_transcript(self._transcript, segment)
        if updated != self._transcript:
            self._transcript = updated
            if self._trigger is not None:
                self._trigger.request(updated)
        return self._transcript

    async def aclose(self, timeout: float) -> None:
        if self._trigger is not None:
            await self._trigger.aclose(timeout)
