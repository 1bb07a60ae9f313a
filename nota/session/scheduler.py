from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Protocol

from nota.core.config import (
    INSIGHT_INTERVAL,
    INSIGHT_MIN_CHARS,
    INSIGHT_MIN_GROWTH,
    INSIGHT_TAIL_CHARS,
    RPC_TIMEOUT,
    TRANSCRIPT_INTERVAL,
)
from nota.transcript.state import TranscriptState

logger = logging.getLogger("nota.session.scheduler")


class Analyzer(Protocol):
    async def generate_insight(self, transcript: str) -> str:
        ...

    async def final_analysis(self, transcript: str) -> str:
        ...


class SummaryScheduler:
    """
    Two independent ticks while recording:
    - transcript tick publishes the displayed text when it changed
    - insight tick asks for a live insight once enough new text arrived
    Live insights are best-effort; failures keep the previous insight.
    """

    def __init__(
        self,
        transcript: TranscriptState,
        publish: Callable[[], Awaitable[None]],
        analyzer: Analyzer | None = None,
        transcript_interval: float = TRANSCRIPT_INTERVAL,
        insight_interval: float = INSIGHT_INTERVAL,
        min_chars: int = INSIGHT_MIN_CHARS,
        min_growth: int = INSIGHT_MIN_GROWTH,
        tail_chars: int = INSIGHT_TAIL_CHARS,
        timeout_sec: float = RPC_TIMEOUT,
    ):
        self.transcript = transcript
        self._publish = publish
        self.analyzer = analyzer
        self.transcript_interval = transcript_interval
        self.insight_interval = insight_interval
        self.min_chars = min_chars
        self.min_growth = min_growth
        self.tail_chars = tail_chars
        self.timeout_sec = timeout_sec

        self.live_insight = ""
        self.insight_requests = 0
        self._last_published: str | None = None
        self._last_insight_length = 0
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        if self.running:
            return
        self._last_published = None
        self._last_insight_length = 0
        self.live_insight = ""
        self._tasks = [
            asyncio.create_task(self._every(self.transcript_interval, self.transcript_tick)),
            asyncio.create_task(self._every(self.insight_interval, self.insight_tick)),
        ]

    def resume(self, insight: str, baseline_length: int) -> None:
        """
        Carry over a previous recording's insight; growth is counted
        from `baseline_length` so old text does not trigger a new insight.
        """
        self.live_insight = str(insight or "")
        self._last_insight_length = max(0, int(baseline_length))

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _every(self, interval: float, tick) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await tick()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("Scheduler tick failed: %s", exc)

    # -------------------------
    # TICKS
    # -------------------------

    async def transcript_tick(self) -> bool:
        displayed = self.transcript.displayed().strip()
        if not displayed or displayed == self._last_published:
            return False
        self._last_published = displayed
        await self._publish()
        return True

    async def insight_tick(self) -> bool:
        if self.analyzer is None:
            return False

        committed = self.transcript.committed.strip()
        if len(committed) < self.min_chars:
            logger.debug("Skipping insights: transcript too short (%s chars)", len(committed))
            return False

        growth = len(committed) - self._last_insight_length
        if growth < self.min_growth:
            logger.debug("Skipping insights: not enough new content (%s chars)", growth)
            return False

        window = committed[-self.tail_chars:]
        self.insight_requests += 1
        try:
            insight = await asyncio.wait_for(self.analyzer.generate_insight(window), timeout=self.timeout_sec)
        except asyncio.TimeoutError:
            logger.warning("Insights generation timed out after %.0fs", self.timeout_sec)
            return False
        except Exception as exc:
            logger.warning("Insights generation failed: %s", exc)
            return False

        insight = str(insight or "").strip()
        if not insight:
            return False
        self.live_insight = insight
        self._last_insight_length = len(committed)
        await self._publish()
        return True

    # -------------------------
    # FINAL
    # -------------------------

    async def final_analysis(self, transcript: str) -> str:
        """
        One analysis over the full transcript. Falls back to the last live
        insight when unavailable.
        """
        text = str(transcript or "").strip()
        if self.analyzer is None or not text:
            return self.live_insight
        try:
            analysis = await asyncio.wait_for(self.analyzer.final_analysis(text), timeout=self.timeout_sec)
        except asyncio.TimeoutError:
            logger.warning("Final analysis timed out after %.0fs", self.timeout_sec)
            return self.live_insight
        except Exception as exc:
            logger.warning("Final analysis failed: %s", exc)
            return self.live_insight
        return str(analysis or "").strip() or self.live_insight
