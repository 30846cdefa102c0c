"""
mission/models/record.py
Shared dataclass schema. The store, scorers, API and report all use these
types. Do not add behaviour here — data and plain conversions only.

Records are frozen: the store replaces an Alert wholesale on every mutation
(copy-on-write), so a snapshot handed to a reader can never change under it.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

# Fixed timestamp format used by sensor events and by the store's clock.
TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S UTC'


class AlertLevel(str, Enum):
    CRITICAL = 'Critical'
    WARNING  = 'Warning'
    INFO     = 'Info'


class AlertStatus(str, Enum):
    PENDING      = 'Pending'
    ACKNOWLEDGED = 'Acknowledged'
    RESOLVED     = 'Resolved'


class Sender(str, Enum):
    COMMAND = 'Command'
    AGENT   = 'Agent'


class Priority(str, Enum):
    HIGH   = 'HIGH'
    MEDIUM = 'MEDIUM'
    LOW    = 'LOW'


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(frozen=True)
class ChatMessage:
    """One dispatch-log entry. Append-only on its Alert."""
    id:        str
    sender:    Sender
    text:      str
    timestamp: str


@dataclass(frozen=True)
class Evidence:
    """One uploaded evidence file. hash = fingerprint of name-size-mtime."""
    id:        str
    file_name: str
    hash:      str
    timestamp: str


@dataclass(frozen=True)
class Alert:
    """One sensor-originated incident, as owned by MissionStore."""
    id:           str
    level:        AlertLevel
    title:        str
    timestamp:    str                    # YYYY-MM-DD HH:MM:SS UTC
    location:     str
    coordinates:  Coordinates
    status:       AlertStatus               = AlertStatus.PENDING
    hash:         str                       = ''     # origin fingerprint, stamped by the store
    dispatch_log: Tuple[ChatMessage, ...]   = ()
    evidence:     Tuple[Evidence, ...]      = ()


@dataclass(frozen=True)
class RawEvent:
    """Sensor event as delivered by the event source, before mapping."""
    id:         str
    timestamp:  str
    lat:        float
    lng:        float
    event_type: str
    priority:   str                     # HIGH / MEDIUM / LOW


@dataclass(frozen=True)
class PrecomputedResult:
    """Externally computed model result for one event."""
    event_id:      str
    anomaly_score: float
    priority:      str
    reasons:       Optional[Tuple[str, ...]] = None


@dataclass
class AnomalyDetection:
    """Derived scoring output. Recomputed per query, never stored on an Alert."""
    event_id:    str
    is_anomaly:  bool
    confidence:  float
    priority:    Priority
    explanation: List[str] = field(default_factory=list)


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def alert_to_dict(alert: Alert) -> Dict[str, Any]:
    """JSON-serializable view of an Alert."""
    return _plain(asdict(alert))


def detection_to_dict(detection: AnomalyDetection) -> Dict[str, Any]:
    return _plain(asdict(detection))
