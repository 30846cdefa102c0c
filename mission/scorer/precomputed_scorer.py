"""
mission/scorer/precomputed_scorer.py
Lookup scoring over externally computed model results.

The result mapping is loaded lazily on first use through a single-flight
guard: concurrent first callers share one load. A failing load leaves an
empty mapping, so every alert is then scored as normal.
"""

import logging
from typing import Awaitable, Callable, Dict, List, Sequence

from mission.models.record import (
    Alert,
    AlertLevel,
    AnomalyDetection,
    PrecomputedResult,
    Priority,
)
from mission.scorer.base import AnomalyScorer
from mission.singleflight import SingleFlight

logger = logging.getLogger(__name__)

DEFAULT_MODEL_REASONS = ['Detected by ML model', 'Statistical outlier pattern identified']
NORMAL_MODEL_REASON   = 'Normal activity pattern detected by ML'

# Fixed confidences for events the model did not flag
NORMAL_CONFIDENCE_INFO  = 0.25
NORMAL_CONFIDENCE_OTHER = 0.30

PrecomputedLoader = Callable[[], Awaitable[Sequence[PrecomputedResult]]]


def _coerce_priority(raw) -> Priority:
    try:
        return Priority(str(raw).strip().upper())
    except ValueError:
        logger.warning(f"Unknown model priority {raw!r} — using LOW")
        return Priority.LOW


class PrecomputedScorer(AnomalyScorer):

    name = 'precomputed'

    def __init__(self, loader: PrecomputedLoader):
        self._loader  = loader
        self._results: Dict[str, PrecomputedResult] = {}
        self._init    = SingleFlight(self._load, name='precomputed results')

    @property
    def initialized(self) -> bool:
        return self._init.done

    async def initialize(self) -> None:
        """Idempotent. N concurrent callers trigger one load."""
        await self._init()

    async def _load(self) -> int:
        try:
            rows = await self._loader()
            self._results = {r.event_id: r for r in rows}
            logger.info(f"Precomputed scorer ready: {len(self._results)} model results")
        except Exception as e:
            logger.error(f"Precomputed results load failed: {e}")
            self._results = {}
        return len(self._results)

    # ── SCORING ──────────────────────────────────────────────
    async def score(self, alert: Alert) -> AnomalyDetection:
        await self.initialize()

        hit = self._results.get(alert.id)
        if hit is not None:
            return AnomalyDetection(
                event_id    = alert.id,
                is_anomaly  = True,
                confidence  = hit.anomaly_score,
                priority    = _coerce_priority(hit.priority),
                explanation = list(hit.reasons) if hit.reasons else list(DEFAULT_MODEL_REASONS),
            )

        return AnomalyDetection(
            event_id    = alert.id,
            is_anomaly  = False,
            confidence  = NORMAL_CONFIDENCE_INFO if alert.level == AlertLevel.INFO else NORMAL_CONFIDENCE_OTHER,
            priority    = Priority.LOW,
            explanation = [NORMAL_MODEL_REASON],
        )

    # ── STATISTICS ───────────────────────────────────────────
    async def all_results(self) -> List[PrecomputedResult]:
        await self.initialize()
        return list(self._results.values())

    async def stats(self) -> Dict[str, float]:
        """Counts per priority and mean anomaly score over loaded results."""
        results = await self.all_results()
        priorities = [_coerce_priority(r.priority) for r in results]
        total = len(results)
        return {
            'total':          total,
            'high':           priorities.count(Priority.HIGH),
            'medium':         priorities.count(Priority.MEDIUM),
            'low':            priorities.count(Priority.LOW),
            'avg_confidence': (sum(r.anomaly_score for r in results) / total) if total else 0.0,
        }
