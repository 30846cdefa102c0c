"""
mission/report.py
Mission status report: distributions over the current alert snapshot and
its anomaly scores, plus the tamper-evident event log.

Input: List[Alert] (store snapshot), List[AnomalyDetection] (scorer output).
Output: MissionReport, convertible to a JSON-serializable dict.
No dispatch-log text or evidence file names appear in the report.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Sequence

from mission.fingerprint import verify_alert_hash
from mission.models.record import Alert, AlertLevel, AlertStatus, AnomalyDetection, Priority


@dataclass
class LevelDistribution:
    critical_count: int = 0
    warning_count: int = 0
    info_count: int = 0


@dataclass
class StatusDistribution:
    pending_count: int = 0
    acknowledged_count: int = 0
    resolved_count: int = 0


@dataclass
class PriorityDistribution:
    high_count: int = 0
    medium_count: int = 0
    low_count: int = 0


@dataclass
class TamperLogEntry:
    alert_id: str
    timestamp: str
    title: str
    hash: str
    verified: bool     # origin fingerprint still matches id/timestamp/location


@dataclass
class MissionReport:
    alert_count: int
    anomaly_count: int
    average_confidence: float
    levels: LevelDistribution
    statuses: StatusDistribution
    priorities: PriorityDistribution
    tamper_log: List[TamperLogEntry] = field(default_factory=list)
    generated_at: str = ""


def tamper_log(alerts: Sequence[Alert]) -> List[TamperLogEntry]:
    return [
        TamperLogEntry(
            alert_id=a.id,
            timestamp=a.timestamp,
            title=a.title,
            hash=a.hash,
            verified=verify_alert_hash(a),
        )
        for a in alerts
    ]


def build_report(alerts: Sequence[Alert], detections: Sequence[AnomalyDetection]) -> MissionReport:
    """
    Detections are matched to alerts by event_id; detections for alerts not
    in the snapshot are ignored.
    """
    ids = {a.id for a in alerts}
    scored = [d for d in detections if d.event_id in ids]

    levels = LevelDistribution(
        critical_count=sum(1 for a in alerts if a.level == AlertLevel.CRITICAL),
        warning_count=sum(1 for a in alerts if a.level == AlertLevel.WARNING),
        info_count=sum(1 for a in alerts if a.level == AlertLevel.INFO),
    )
    statuses = StatusDistribution(
        pending_count=sum(1 for a in alerts if a.status == AlertStatus.PENDING),
        acknowledged_count=sum(1 for a in alerts if a.status == AlertStatus.ACKNOWLEDGED),
        resolved_count=sum(1 for a in alerts if a.status == AlertStatus.RESOLVED),
    )
    priorities = PriorityDistribution(
        high_count=sum(1 for d in scored if d.priority == Priority.HIGH),
        medium_count=sum(1 for d in scored if d.priority == Priority.MEDIUM),
        low_count=sum(1 for d in scored if d.priority == Priority.LOW),
    )
    average = sum(d.confidence for d in scored) / len(scored) if scored else 0.0

    return MissionReport(
        alert_count=len(alerts),
        anomaly_count=sum(1 for d in scored if d.is_anomaly),
        average_confidence=round(average, 4),
        levels=levels,
        statuses=statuses,
        priorities=priorities,
        tamper_log=tamper_log(alerts),
        generated_at=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
    )


def report_to_dict(report: MissionReport) -> Dict:
    """Convert MissionReport to a JSON-serializable dict."""
    def _dataclass_to_dict(obj):
        if hasattr(obj, "__dataclass_fields__"):
            return {k: _dataclass_to_dict(getattr(obj, k)) for k in obj.__dataclass_fields__}
        if isinstance(obj, list):
            return [_dataclass_to_dict(x) for x in obj]
        return obj

    return _dataclass_to_dict(report)
