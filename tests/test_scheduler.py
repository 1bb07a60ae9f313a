import asyncio

import pytest

from nota.session.scheduler import SummaryScheduler
from nota.transcript.state import TranscriptState

LONG_TEXT = "We agreed to ship the beta next week and review onboarding metrics afterwards with the whole team present."


class FakeAnalyzer:
    def __init__(self, insight="insight", analysis="analysis", error=None, delay=0.0):
        self.insight = insight
        self.analysis = analysis
        self.error = error
        self.delay = delay
        self.windows = []

    async def generate_insight(self, transcript: str) -> str:
        self.windows.append(transcript)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.insight

    async def final_analysis(self, transcript: str) -> str:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.analysis


def _scheduler(state, analyzer=None, **kwargs):
    published = []

    async def _publish():
        published.append(state.displayed())

    scheduler = SummaryScheduler(state, _publish, analyzer, min_chars=60, min_growth=20, **kwargs)
    return scheduler, published


@pytest.mark.asyncio
async def test_transcript_tick_publishes_only_on_change():
    state = TranscriptState()
    scheduler, published = _scheduler(state)

    assert await scheduler.transcript_tick() is False
    state.apply_partial("Hello")
    assert await scheduler.transcript_tick() is True
    assert await scheduler.transcript_tick() is False
    state.commit("Hello world")
    assert await scheduler.transcript_tick() is True

    assert published == ["Hello", "Hello world"]


@pytest.mark.asyncio
async def test_insight_waits_for_minimum_length_and_growth():
    state = TranscriptState()
    analyzer = FakeAnalyzer(insight="Beta next week")
    scheduler, published = _scheduler(state, analyzer)

    state.commit("Too short.")
    assert await scheduler.insight_tick() is False

    state.commit(LONG_TEXT)
    assert await scheduler.insight_tick() is True
    assert scheduler.live_insight == "Beta next week"

    state.commit("Ok.")
    assert await scheduler.insight_tick() is False
    assert len(analyzer.windows) == 1
    assert len(published) == 1


@pytest.mark.asyncio
async def test_insight_uses_tail_window():
    state = TranscriptState()
    analyzer = FakeAnalyzer()
    scheduler, _ = _scheduler(state, analyzer, tail_chars=40)

    state.commit(LONG_TEXT)
    await scheduler.insight_tick()

    assert analyzer.windows == [LONG_TEXT[-40:]]


@pytest.mark.asyncio
async def test_insight_failure_keeps_previous_value():
    state = TranscriptState()
    analyzer = FakeAnalyzer(insight="first")
    scheduler, _ = _scheduler(state, analyzer)

    state.commit(LONG_TEXT)
    await scheduler.insight_tick()
    analyzer.error = RuntimeError("boom")
    state.commit(LONG_TEXT)

    assert await scheduler.insight_tick() is False
    assert scheduler.live_insight == "first"
    assert scheduler.insight_requests == 2


@pytest.mark.asyncio
async def test_insight_timeout_is_treated_as_failure():
    state = TranscriptState()
    scheduler, _ = _scheduler(state, FakeAnalyzer(delay=1.0), timeout_sec=0.01)

    state.commit(LONG_TEXT)

    assert await scheduler.insight_tick() is False
    assert scheduler.live_insight == ""


@pytest.mark.asyncio
async def test_final_analysis_falls_back_to_live_insight():
    state = TranscriptState()
    analyzer = FakeAnalyzer(insight="live view")
    scheduler, _ = _scheduler(state, analyzer)
    state.commit(LONG_TEXT)
    await scheduler.insight_tick()

    assert await scheduler.final_analysis(LONG_TEXT) == "analysis"

    analyzer.error = RuntimeError("down")
    assert await scheduler.final_analysis(LONG_TEXT) == "live view"


@pytest.mark.asyncio
async def test_final_analysis_without_analyzer_or_text():
    state = TranscriptState()
    scheduler, _ = _scheduler(state, None)

    assert await scheduler.final_analysis(LONG_TEXT) == ""
    assert await scheduler.insight_tick() is False


@pytest.mark.asyncio
async def test_start_and_stop_leave_no_running_ticks():
    state = TranscriptState()
    scheduler, published = _scheduler(state, FakeAnalyzer(), transcript_interval=0.01, insight_interval=0.01)

    scheduler.start()
    state.commit("Hello world")
    await asyncio.sleep(0.05)
    await scheduler.stop()
    count = len(published)
    state.commit("more text after stop")
    await asyncio.sleep(0.03)

    assert scheduler.running is False
    assert published[0] == "Hello world"
    assert len(published) == count


@pytest.mark.asyncio
async def test_resumed_transcript_does_not_count_as_growth():
    state = TranscriptState()
    state.seed(LONG_TEXT)
    analyzer = FakeAnalyzer(insight="fresh")
    scheduler, _ = _scheduler(state, analyzer)

    scheduler.resume("carried over", len(state.committed))

    assert await scheduler.insight_tick() is False
    assert scheduler.live_insight == "carried over"
    assert analyzer.windows == []

    state.commit("Then we moved on to the hiring plan for the quarter.")
    assert await scheduler.insight_tick() is True
    assert scheduler.live_insight == "fresh"
