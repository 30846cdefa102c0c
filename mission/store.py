"""
mission/store.py
Authoritative in-memory alert collection with change notification.

MissionStore is the only writer of alerts. Every mutation swaps the whole
collection for a new tuple (copy-on-write) and then calls each registered
listener once, synchronously, before returning. A listener that reads the
store back therefore always sees the post-mutation state, and snapshots
handed out earlier are never affected.

Initial population comes from an injected async loader and is lazy: the
first subscribe() / get_alerts() starts it, and concurrent triggers share a
single in-flight load. A failed or empty load leaves an empty, working store.

Unknown alert ids: every mutator raises AlertNotFoundError and leaves the
collection and listeners untouched.
"""

import logging
import math
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from mission.errors import AlertNotFoundError
from mission.fingerprint import alert_identity, fingerprint, fingerprint_file
from mission.models.record import (
    TIMESTAMP_FORMAT,
    Alert,
    AlertLevel,
    AlertStatus,
    ChatMessage,
    Coordinates,
    Evidence,
    RawEvent,
    Sender,
)
from mission.singleflight import SingleFlight

logger = logging.getLogger(__name__)

Listener    = Callable[[], None]
EventLoader = Callable[[], Awaitable[Sequence[RawEvent]]]
Clock       = Callable[[], datetime]

# ── RAW EVENT MAPPING ────────────────────────────────────────

EVENT_TITLES: Dict[str, str] = {
    'thermal_signature': 'Thermal Signature Detected',
    'drone_detection':   'Unidentified Drone Activity',
    'camera_alert':      'Camera Motion Alert',
    'motion_sensor':     'Motion Sensor Triggered',
    'seismic_activity':  'Seismic Activity Detected',
}
UNKNOWN_EVENT_TITLE = 'Unknown Event'

PRIORITY_LEVELS: Dict[str, AlertLevel] = {
    'HIGH':   AlertLevel.CRITICAL,
    'MEDIUM': AlertLevel.WARNING,
    'LOW':    AlertLevel.INFO,
}


def sector_label(lat: float, lng: float) -> str:
    """Display location for a raw coordinate, e.g. 'Sector 4, Grid H'."""
    sector = math.floor(lat * 10) % 9 + 1
    grid   = chr(65 + math.floor(lng * 10) % 8)
    return f"Sector {sector}, Grid {grid}"


def alert_from_event(event: RawEvent) -> Alert:
    """Map a loader RawEvent onto a fresh PENDING Alert (hash not yet stamped)."""
    return Alert(
        id          = event.id,
        level       = PRIORITY_LEVELS.get(event.priority.upper(), AlertLevel.INFO),
        title       = EVENT_TITLES.get(event.event_type, UNKNOWN_EVENT_TITLE),
        timestamp   = event.timestamp,
        location    = sector_label(event.lat, event.lng),
        coordinates = Coordinates(lat=event.lat, lng=event.lng),
        status      = AlertStatus.PENDING,
    )


def stamp_alert(alert: Alert) -> Alert:
    """Set the origin fingerprint. Called once, when an alert enters the store."""
    return replace(alert, hash=fingerprint(alert_identity(alert.id, alert.timestamp, alert.location)))


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MissionStore:
    """
    Usage:
        store = MissionStore(loader=source.load_events)
        unsubscribe = store.subscribe(lambda: render(store.get_alerts()))
        await store.load()
        store.acknowledge_alert("evt-001")
        unsubscribe()
    """

    def __init__(
        self,
        loader:           Optional[EventLoader] = None,
        alerts:           Optional[Iterable[Alert]] = None,
        clock:            Optional[Clock] = None,
        evidence_latency: float = 0.0,
    ):
        self._loader = loader
        self._clock  = clock or _utc_now
        self.evidence_latency = evidence_latency

        self._alerts:    Tuple[Alert, ...] = ()
        self._listeners: Dict[int, Listener] = {}
        self._next_token = 0
        self._init = SingleFlight(self._populate, name='mission store')

        # Seeded stores and loader-less stores have nothing left to load.
        self._seeded = alerts is not None or loader is None
        if alerts is not None:
            self._alerts = tuple(stamp_alert(a) for a in alerts)

    # ── LIFECYCLE ────────────────────────────────────────────
    @property
    def initialized(self) -> bool:
        return self._seeded or self._init.done

    @property
    def loading(self) -> bool:
        return self._init.in_flight

    async def load(self) -> int:
        """Populate from the loader once. Returns the alert count."""
        if self._seeded:
            return len(self._alerts)
        return await self._init()

    def _ensure_loading(self) -> None:
        if not self._seeded:
            self._init.trigger()

    async def _populate(self) -> int:
        try:
            events = list(await self._loader())
        except Exception as e:
            logger.warning(f"Event load failed, serving empty alert list: {e}")
            events = []

        if not events:
            logger.warning("No events loaded from source.")
            self._alerts = ()
            return 0

        alerts = []
        skipped = 0
        for event in events:
            try:
                alerts.append(stamp_alert(alert_from_event(event)))
            except (AttributeError, TypeError, ValueError):
                skipped += 1
        if skipped:
            logger.warning(f"Skipped {skipped} malformed event(s) from event source")
        if not alerts:
            self._alerts = ()
            return 0

        self._alerts = tuple(alerts)
        logger.info(f"Loaded {len(self._alerts)} alerts from event source")
        self._notify()
        return len(self._alerts)

    # ── READ ─────────────────────────────────────────────────
    def get_alerts(self) -> List[Alert]:
        """Independent snapshot. Mutating the returned list never touches the store."""
        self._ensure_loading()
        return list(self._alerts)

    def get_alert(self, alert_id: str) -> Optional[Alert]:
        for alert in self._alerts:
            if alert.id == alert_id:
                return alert
        return None

    # ── SUBSCRIPTION ─────────────────────────────────────────
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a zero-argument callback. Returns an unsubscribe callable
        that removes exactly this registration; calling it again is a no-op.
        """
        token = self._next_token
        self._next_token += 1
        self._listeners[token] = listener
        self._ensure_loading()

        def unsubscribe() -> None:
            self._listeners.pop(token, None)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _notify(self) -> None:
        # Copy: listeners may (un)subscribe while being notified.
        for listener in list(self._listeners.values()):
            try:
                listener()
            except Exception:
                logger.exception("Store listener failed")

    # ── MUTATION ─────────────────────────────────────────────
    def _now(self) -> str:
        return self._clock().strftime(TIMESTAMP_FORMAT)

    def _update(self, alert_id: str, change: Callable[[Alert], Alert]) -> Alert:
        for i, alert in enumerate(self._alerts):
            if alert.id == alert_id:
                updated = change(alert)
                self._alerts = self._alerts[:i] + (updated,) + self._alerts[i + 1:]
                self._notify()
                return updated
        logger.warning(f"Mutation for unknown alert id: {alert_id}")
        raise AlertNotFoundError(alert_id)

    def acknowledge_alert(self, alert_id: str) -> Alert:
        return self._update(alert_id, lambda a: replace(a, status=AlertStatus.ACKNOWLEDGED))

    def resolve_alert(self, alert_id: str) -> Alert:
        return self._update(alert_id, lambda a: replace(a, status=AlertStatus.RESOLVED))

    def add_message(self, alert_id: str, sender: Union[Sender, str], text: str) -> ChatMessage:
        message = ChatMessage(
            id        = f"msg-{uuid.uuid4().hex[:12]}",
            sender    = Sender(sender),
            text      = text,
            timestamp = self._now(),
        )
        self._update(alert_id, lambda a: replace(a, dispatch_log=a.dispatch_log + (message,)))
        return message

    def add_evidence(self, alert_id: str, file_name: str, hash: str) -> Evidence:
        evidence = Evidence(
            id        = f"ev-{uuid.uuid4().hex[:12]}",
            file_name = file_name,
            hash      = hash,
            timestamp = self._now(),
        )
        self._update(alert_id, lambda a: replace(a, evidence=a.evidence + (evidence,)))
        return evidence

    async def attach_file(
        self,
        alert_id:      str,
        name:          str,
        size:          int,
        last_modified: int,
    ) -> Evidence:
        """Fingerprint an evidence file, then append it to the alert."""
        file_hash = await fingerprint_file(name, size, last_modified, latency=self.evidence_latency)
        return self.add_evidence(alert_id, file_name=name, hash=file_hash)
