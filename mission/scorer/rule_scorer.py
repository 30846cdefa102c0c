"""
mission/scorer/rule_scorer.py
Deterministic, stateless rule-based risk scoring.

Four independent rules add to a risk score; all of them are evaluated for
every alert (no short-circuit), and each one that fires contributes one
explanation line in table order.
"""

import logging
import math
from typing import Iterable, List, Optional, Sequence, Tuple

from mission.models.record import Alert, AlertLevel, AnomalyDetection
from mission.scorer.base import AnomalyScorer, priority_for

logger = logging.getLogger(__name__)

# ── RULE WEIGHTS ─────────────────────────────────────────────
NIGHT_WEIGHT    = 0.30
ZONE_WEIGHT     = 0.40
CRITICAL_WEIGHT = 0.20
KEYWORD_WEIGHT  = 0.15

ANOMALY_THRESHOLD = 0.5
CONFIDENCE_CAP    = 0.95
CONFIDENCE_OFFSET = 0.1

NIGHT_REASON    = 'Activity during high-risk night hours (22:00-06:00)'
ZONE_REASON     = 'Located in known smuggling route (90% risk zone)'
CRITICAL_REASON = 'Critical severity level detected'
KEYWORD_REASON  = 'High-priority threat type detected'
NORMAL_REASON   = 'Normal activity pattern detected'

# (lat, lng, radius) in degrees
Zone = Tuple[float, float, float]

DEFAULT_ZONES: List[Zone] = [
    (31.776, -106.511, 0.01),
    (31.774, -106.505, 0.01),
]

DEFAULT_KEYWORDS: List[str] = ['vehicle', 'thermal']


def hour_of_day(timestamp: str) -> Optional[int]:
    """
    Hour from a 'YYYY-MM-DD HH:MM:SS UTC' timestamp.
    Returns None when the time part is missing or not numeric.
    """
    parts = (timestamp or '').split(' ')
    if len(parts) < 2:
        return None
    try:
        hour = int(parts[1].split(':')[0])
    except ValueError:
        return None
    return hour if 0 <= hour <= 23 else None


class RuleBasedScorer(AnomalyScorer):

    name = 'rules'

    def __init__(
        self,
        zones:            Optional[Sequence[Zone]] = None,
        night_start_hour: int                      = 22,
        night_end_hour:   int                      = 6,
        keywords:         Optional[Iterable[str]]  = None,
    ):
        self.zones            = list(DEFAULT_ZONES if zones is None else zones)
        self.night_start_hour = night_start_hour
        self.night_end_hour   = night_end_hour
        self.keywords         = [k.lower() for k in (DEFAULT_KEYWORDS if keywords is None else keywords)]

    # ── RULES ────────────────────────────────────────────────
    def is_night(self, timestamp: str) -> bool:
        hour = hour_of_day(timestamp)
        if hour is None:
            logger.debug("Unparseable timestamp — night rule skipped")
            return False
        return hour >= self.night_start_hour or hour <= self.night_end_hour

    def in_high_risk_zone(self, lat: float, lng: float) -> bool:
        # Flat degree-space distance; no great-circle correction.
        for zone_lat, zone_lng, radius in self.zones:
            if math.sqrt((lat - zone_lat) ** 2 + (lng - zone_lng) ** 2) < radius:
                return True
        return False

    def has_threat_keyword(self, title: str) -> bool:
        lowered = (title or '').lower()
        return any(k in lowered for k in self.keywords)

    # ── SCORING ──────────────────────────────────────────────
    def assess(self, alert: Alert) -> AnomalyDetection:
        """Synchronous scoring. score() is the async face of this."""
        risk    = 0.0
        reasons: List[str] = []

        if self.is_night(alert.timestamp):
            risk += NIGHT_WEIGHT
            reasons.append(NIGHT_REASON)

        if self.in_high_risk_zone(alert.coordinates.lat, alert.coordinates.lng):
            risk += ZONE_WEIGHT
            reasons.append(ZONE_REASON)

        if alert.level == AlertLevel.CRITICAL:
            risk += CRITICAL_WEIGHT
            reasons.append(CRITICAL_REASON)

        if self.has_threat_keyword(alert.title):
            risk += KEYWORD_WEIGHT
            reasons.append(KEYWORD_REASON)

        if not reasons:
            reasons.append(NORMAL_REASON)

        confidence = min(CONFIDENCE_CAP, risk + CONFIDENCE_OFFSET)
        return AnomalyDetection(
            event_id    = alert.id,
            is_anomaly  = risk > ANOMALY_THRESHOLD,
            confidence  = confidence,
            priority    = priority_for(confidence),
            explanation = reasons,
        )

    async def score(self, alert: Alert) -> AnomalyDetection:
        return self.assess(alert)
