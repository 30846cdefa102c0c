from mission.models.record import (
    TIMESTAMP_FORMAT,
    Alert,
    AlertLevel,
    AlertStatus,
    AnomalyDetection,
    ChatMessage,
    Coordinates,
    Evidence,
    PrecomputedResult,
    Priority,
    RawEvent,
    Sender,
    alert_to_dict,
    detection_to_dict,
)

__all__ = [
    "TIMESTAMP_FORMAT",
    "Alert",
    "AlertLevel",
    "AlertStatus",
    "AnomalyDetection",
    "ChatMessage",
    "Coordinates",
    "Evidence",
    "PrecomputedResult",
    "Priority",
    "RawEvent",
    "Sender",
    "alert_to_dict",
    "detection_to_dict",
]
