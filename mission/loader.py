"""
mission/loader.py
JSON event source. Reads the sensor export and the model-results export
produced by the detection pipeline.

Never raises to the caller: a missing file, unreadable JSON or a non-list
root is a LoadFailure, logged and replaced by an empty result. Malformed
rows are skipped one by one so a single bad record cannot hide the rest.

Expected shapes (JSON arrays):
  events:    {event_id, timestamp, latitude, longitude, event_type, priority}
  anomalies: {event_id, anomaly_score, priority, reasons?}
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, List, Optional

from mission.errors import LoadFailure
from mission.models.record import PrecomputedResult, RawEvent

logger = logging.getLogger(__name__)


def _read_json_array(path: Path) -> List[Any]:
    try:
        data = json.loads(path.read_text(encoding='utf-8'))
    except FileNotFoundError as e:
        raise LoadFailure(f"File not found: {path}") from e
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
        raise LoadFailure(f"Could not read {path.name}: {e}") from e
    if not isinstance(data, list):
        raise LoadFailure(f"{path.name}: expected a JSON array, got {type(data).__name__}")
    return data


def parse_event(row: Any) -> RawEvent:
    """One JSON row → RawEvent. Raises KeyError / TypeError / ValueError on bad rows."""
    return RawEvent(
        id         = str(row['event_id']),
        timestamp  = str(row['timestamp']),
        lat        = float(row['latitude']),
        lng        = float(row['longitude']),
        event_type = str(row.get('event_type', '')),
        priority   = str(row.get('priority', 'LOW')).upper(),
    )


def parse_precomputed(row: Any) -> PrecomputedResult:
    reasons = row.get('reasons')
    if reasons is not None:
        if not isinstance(reasons, list):
            raise TypeError('reasons must be a list')
        reasons = tuple(str(r) for r in reasons)
    return PrecomputedResult(
        event_id      = str(row['event_id']),
        anomaly_score = float(row['anomaly_score']),
        priority      = str(row.get('priority', 'LOW')).upper(),
        reasons       = reasons or None,
    )


def _parse_rows(rows: List[Any], parse, label: str) -> list:
    parsed = []
    skipped = 0
    for row in rows:
        try:
            parsed.append(parse(row))
        except (KeyError, TypeError, ValueError, AttributeError):
            skipped += 1
    if skipped:
        logger.warning(f"{label}: skipped {skipped} malformed row(s)")
    return parsed


class JsonEventSource:
    """
    Event source and model-results source backed by two JSON files.
    Either path may be None, in which case that load yields an empty list.
    """

    def __init__(
        self,
        events_path:    Optional[Path] = None,
        anomalies_path: Optional[Path] = None,
    ):
        self.events_path    = Path(events_path) if events_path else None
        self.anomalies_path = Path(anomalies_path) if anomalies_path else None

    async def _load(self, path: Optional[Path], parse, label: str) -> list:
        if path is None:
            return []
        try:
            rows = await asyncio.to_thread(_read_json_array, path)
        except LoadFailure as e:
            logger.warning(f"{label} load failed: {e}")
            return []
        parsed = _parse_rows(rows, parse, label)
        logger.info(f"Loaded {len(parsed)} {label} from {path.name}")
        return parsed

    async def load_events(self) -> List[RawEvent]:
        return await self._load(self.events_path, parse_event, 'events')

    async def load_precomputed(self) -> List[PrecomputedResult]:
        return await self._load(self.anomalies_path, parse_precomputed, 'model results')
