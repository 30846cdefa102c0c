"""
tests/test_precomputed_scorer.py
Precomputed-lookup scorer: hits, misses, single-flight loading, failure
fallback and statistics.
"""

import asyncio

import pytest

from mission.models.record import Alert, AlertLevel, Coordinates, PrecomputedResult, Priority
from mission.scorer import PrecomputedScorer, build_scorer
from mission.scorer.precomputed_scorer import DEFAULT_MODEL_REASONS, NORMAL_MODEL_REASON


RESULTS = [
    PrecomputedResult("evt-1", 0.91, "HIGH", ("Night-time thermal contact",)),
    PrecomputedResult("evt-2", 0.64, "MEDIUM"),
    PrecomputedResult("evt-3", 0.99, "LOW"),
]


def _make_alert(alert_id: str, level: AlertLevel = AlertLevel.WARNING) -> Alert:
    return Alert(
        id=alert_id,
        level=level,
        title="Motion Sensor Triggered",
        timestamp="2024-07-31 10:00:00 UTC",
        location="Sector 3, Grid G",
        coordinates=Coordinates(31.7, -106.4),
    )


class CountingLoader:
    def __init__(self, rows=RESULTS, delay: float = 0.0, error: Exception = None):
        self.rows  = rows
        self.delay = delay
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return list(self.rows)


class TestPrecomputedScoring:
    def test_hit_with_reasons(self):
        scorer = PrecomputedScorer(CountingLoader())
        result = asyncio.run(scorer.score(_make_alert("evt-1")))
        assert result.is_anomaly is True
        assert result.confidence == 0.91
        assert result.priority == Priority.HIGH
        assert result.explanation == ["Night-time thermal contact"]

    def test_hit_without_reasons_uses_default(self):
        scorer = PrecomputedScorer(CountingLoader())
        result = asyncio.run(scorer.score(_make_alert("evt-2")))
        assert result.explanation == DEFAULT_MODEL_REASONS
        assert result.priority == Priority.MEDIUM

    def test_hit_values_taken_verbatim(self):
        scorer = PrecomputedScorer(CountingLoader())
        result = asyncio.run(scorer.score(_make_alert("evt-3")))
        assert result.confidence == 0.99
        assert result.priority == Priority.LOW

    def test_miss_info_level(self):
        scorer = PrecomputedScorer(CountingLoader())
        result = asyncio.run(scorer.score(_make_alert("evt-404", AlertLevel.INFO)))
        assert result.is_anomaly is False
        assert result.confidence == 0.25
        assert result.priority == Priority.LOW
        assert result.explanation == [NORMAL_MODEL_REASON]

    def test_miss_other_levels(self):
        scorer = PrecomputedScorer(CountingLoader())
        for level in (AlertLevel.WARNING, AlertLevel.CRITICAL):
            result = asyncio.run(scorer.score(_make_alert("evt-404", level)))
            assert result.confidence == 0.30


class TestPrecomputedLoading:
    def test_concurrent_first_callers_load_once(self):
        loader = CountingLoader(delay=0.01)
        scorer = PrecomputedScorer(loader)

        async def scenario():
            return await asyncio.gather(*(scorer.score(_make_alert(f"evt-{i}")) for i in range(10)))

        results = asyncio.run(scenario())
        assert loader.calls == 1
        assert len(results) == 10
        assert scorer.initialized is True

    def test_initialize_is_memoized(self):
        loader = CountingLoader()
        scorer = PrecomputedScorer(loader)
        asyncio.run(scorer.initialize())
        asyncio.run(scorer.initialize())
        asyncio.run(scorer.score(_make_alert("evt-1")))
        assert loader.calls == 1

    def test_load_failure_treats_everything_as_normal(self):
        loader = CountingLoader(error=ConnectionError("unreachable"))
        scorer = PrecomputedScorer(loader)
        result = asyncio.run(scorer.score(_make_alert("evt-1")))
        assert result.is_anomaly is False
        assert result.explanation == [NORMAL_MODEL_REASON]
        assert scorer.initialized is True
        asyncio.run(scorer.score(_make_alert("evt-2")))
        assert loader.calls == 1

    def test_build_scorer_precomputed(self):
        scorer = build_scorer("precomputed", loader=CountingLoader())
        assert isinstance(scorer, PrecomputedScorer)


class TestPrecomputedStats:
    def test_stats(self):
        stats = asyncio.run(PrecomputedScorer(CountingLoader()).stats())
        assert stats["total"] == 3
        assert stats["high"] == 1
        assert stats["medium"] == 1
        assert stats["low"] == 1
        assert stats["avg_confidence"] == pytest.approx((0.91 + 0.64 + 0.99) / 3)

    def test_stats_empty(self):
        stats = asyncio.run(PrecomputedScorer(CountingLoader(rows=[])).stats())
        assert stats["total"] == 0
        assert stats["avg_confidence"] == 0.0

    def test_all_results(self):
        results = asyncio.run(PrecomputedScorer(CountingLoader()).all_results())
        assert {r.event_id for r in results} == {"evt-1", "evt-2", "evt-3"}
