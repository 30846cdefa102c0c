"""
mission/scorer/base.py
Abstract base class for anomaly scorers.
To add a new strategy: subclass AnomalyScorer and implement score().
The caller picks the strategy explicitly; it never inspects an object's
shape to decide which one it holds.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List

from mission.models.record import Alert, AnomalyDetection, Priority


def priority_for(confidence: float) -> Priority:
    """
    Priority tier from confidence. Strict thresholds: exactly 0.75 is
    MEDIUM and exactly 0.5 is LOW.
    """
    if confidence > 0.75:
        return Priority.HIGH
    if confidence > 0.5:
        return Priority.MEDIUM
    return Priority.LOW


class AnomalyScorer(ABC):
    """
    All scoring strategies implement this interface.
    Scorers only read the Alert snapshot they are given and never hold a
    reference back into the store.
    """

    name: str = "scorer"

    @abstractmethod
    async def score(self, alert: Alert) -> AnomalyDetection:
        """Score one alert. Must not raise for a well-formed Alert."""
        ...

    async def score_all(self, alerts: Iterable[Alert]) -> List[AnomalyDetection]:
        return [await self.score(a) for a in alerts]
