"""
mission/api.py
─────────────────────────────────────────────────────────────────────────────
Mission Sentinel — dual-mode API layer

TWO USAGE MODES:
  1. Importable facade (dashboards, tests, scripts):
         from mission.api import MissionAPI
         api = MissionAPI.from_config(load_config())
         await api.start()
         alerts = api.list_alerts(status="Pending")

  2. FastAPI HTTP server for the command dashboard and field-agent clients:
         python -m mission.api                    # default: port 8766
         uvicorn mission.api:app --port 8766

ENDPOINTS:
  GET  /health                     — liveness + store/queue state
  GET  /alerts                     — alert snapshot, optional status/level filter
  GET  /alerts/{id}                — single alert
  GET  /alerts/{id}/anomaly        — anomaly score for one alert
  GET  /anomalies                  — scores for every alert
  POST /alerts/{id}/acknowledge    — field action (queued while offline)
  POST /alerts/{id}/resolve        — command action (always immediate)
  POST /alerts/{id}/messages       — dispatch-log message (queued while offline)
  POST /alerts/{id}/evidence       — evidence upload (queued while offline)
  GET  /connectivity               — online flag + pending actions
  PUT  /connectivity               — toggle connectivity (online replays queue)
  GET  /tamper-log                 — timestamp / title / fingerprint per alert
  GET  /report                     — mission report
  POST /alerts/{id}/explain        — narrated explanation
  POST /alerts/{id}/summary        — narrated mission summary
  POST /assessment                 — narrated threat assessment for many alerts

Binds to 127.0.0.1 by default. No authentication (single-operator demo).
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from mission.config import load_config, scorer_settings
from mission.errors import AlertNotFoundError
from mission.fingerprint import fingerprint_file
from mission.loader import JsonEventSource
from mission.models.record import (
    Alert,
    AlertLevel,
    AlertStatus,
    Sender,
    alert_to_dict,
    detection_to_dict,
)
from mission.narration import MissionBriefing, Narration, OllamaNarrator
from mission.offline_queue import OfflineActionQueue
from mission.report import build_report, report_to_dict, tamper_log
from mission.scorer import AnomalyScorer, build_scorer
from mission.store import MissionStore

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


def _match_enum(enum_cls, raw: str):
    """Accept either the member name or its value, case-insensitive."""
    wanted = raw.strip().lower()
    for member in enum_cls:
        if wanted in (member.name.lower(), str(member.value).lower()):
            return member
    raise ValueError(f"Unknown {enum_cls.__name__}: {raw!r}")


def _narration_dict(narration: Narration) -> Dict[str, Any]:
    return {"ok": narration.ok, "text": narration.text}


# ═══════════════════════════════════════════════════════════════════════════
# IMPORTABLE FACADE
# ═══════════════════════════════════════════════════════════════════════════

class MissionAPI:
    """
    Pure-Python facade over store, scorer, offline queue and briefing.
    No HTTP layer required — import and call directly.

    Field-agent mutations (acknowledge, message, evidence) go through the
    offline queue; pass immediate=True for command-side calls that must
    bypass it.
    """

    def __init__(
        self,
        store:    MissionStore,
        scorer:   AnomalyScorer,
        queue:    Optional[OfflineActionQueue] = None,
        briefing: Optional[MissionBriefing] = None,
        evidence_latency: float = 0.0,
    ):
        self.store    = store
        self.scorer   = scorer
        self.queue    = queue or OfflineActionQueue()
        self.briefing = briefing or MissionBriefing()
        self.evidence_latency = evidence_latency

    @classmethod
    def from_config(cls, config: Dict[str, Any], project_root: Optional[Path] = None) -> "MissionAPI":
        root = project_root or Path.cwd()
        source = JsonEventSource(
            events_path    = root / config["events_path"] if config.get("events_path") else None,
            anomalies_path = root / config["anomalies_path"] if config.get("anomalies_path") else None,
        )
        latency = float(config.get("evidence_hash_latency_sec", 0.0))
        store = MissionStore(loader=source.load_events, evidence_latency=latency)
        kind = config.get("scorer", "rules")
        if kind == "rules":
            scorer = build_scorer(kind, **scorer_settings(config))
        else:
            scorer = build_scorer(kind, loader=source.load_precomputed)
        narrator = None
        if config.get("ollama_host") and config.get("narration_model"):
            narrator = OllamaNarrator(model=config["narration_model"], host=config["ollama_host"])
        return cls(
            store    = store,
            scorer   = scorer,
            queue    = OfflineActionQueue(online=bool(config.get("start_online", True))),
            briefing = MissionBriefing(narrator),
            evidence_latency = latency,
        )

    async def start(self) -> int:
        """Populate the store. Safe to call more than once."""
        count = await self.store.load()
        logger.info(f"Mission API ready: {count} alerts, scorer={self.scorer.name}")
        return count

    # ── INTERNAL ──────────────────────────────────────────────────────────

    def _require(self, alert_id: str) -> Alert:
        alert = self.store.get_alert(alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)
        return alert

    def _perform(self, action, immediate: bool) -> Dict[str, Any]:
        applied = self.queue.perform(action, immediate=immediate)
        return {
            "status":  "applied" if applied else "queued",
            "pending": self.queue.pending_count,
        }

    # ── QUERY: ALERTS ─────────────────────────────────────────────────────

    def list_alerts(
        self,
        status: Optional[str] = None,
        level:  Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Args:
            status: "Pending", "Acknowledged", "Resolved" (name or value)
            level:  "Critical", "Warning", "Info" (name or value)
        Raises ValueError on an unknown filter value.
        """
        alerts = self.store.get_alerts()
        if status:
            wanted_status = _match_enum(AlertStatus, status)
            alerts = [a for a in alerts if a.status == wanted_status]
        if level:
            wanted_level = _match_enum(AlertLevel, level)
            alerts = [a for a in alerts if a.level == wanted_level]
        return [alert_to_dict(a) for a in alerts]

    def get_alert(self, alert_id: str) -> Optional[Dict[str, Any]]:
        alert = self.store.get_alert(alert_id)
        return alert_to_dict(alert) if alert else None

    # ── QUERY: ANOMALIES ──────────────────────────────────────────────────

    async def get_anomaly(self, alert_id: str) -> Dict[str, Any]:
        detection = await self.scorer.score(self._require(alert_id))
        return detection_to_dict(detection)

    async def list_anomalies(self, only_anomalies: bool = False) -> List[Dict[str, Any]]:
        detections = await self.scorer.score_all(self.store.get_alerts())
        if only_anomalies:
            detections = [d for d in detections if d.is_anomaly]
        return [detection_to_dict(d) for d in detections]

    # ── MUTATIONS ─────────────────────────────────────────────────────────

    def acknowledge(self, alert_id: str, immediate: bool = False) -> Dict[str, Any]:
        self._require(alert_id)
        return self._perform(lambda: self.store.acknowledge_alert(alert_id), immediate)

    def resolve(self, alert_id: str) -> Dict[str, Any]:
        self._require(alert_id)
        return self._perform(lambda: self.store.resolve_alert(alert_id), immediate=True)

    def send_message(
        self,
        alert_id:  str,
        text:      str,
        sender:    str  = Sender.AGENT.value,
        immediate: bool = False,
    ) -> Dict[str, Any]:
        self._require(alert_id)
        who = _match_enum(Sender, sender)
        # Command messages are not field actions; they never wait for the queue.
        return self._perform(
            lambda: self.store.add_message(alert_id, sender=who, text=text),
            immediate or who == Sender.COMMAND,
        )

    async def upload_evidence(
        self,
        alert_id:      str,
        file_name:     str,
        size:          int,
        last_modified: int,
        immediate:     bool = False,
    ) -> Dict[str, Any]:
        """Fingerprint now; the append itself is queued while offline."""
        self._require(alert_id)
        file_hash = await fingerprint_file(file_name, size, last_modified, latency=self.evidence_latency)
        result = self._perform(
            lambda: self.store.add_evidence(alert_id, file_name=file_name, hash=file_hash),
            immediate,
        )
        result["hash"] = file_hash
        return result

    # ── CONNECTIVITY ──────────────────────────────────────────────────────

    def set_connectivity(self, online: bool) -> Dict[str, Any]:
        self.queue.set_connectivity(online)
        return self.queue_status()

    def queue_status(self) -> Dict[str, Any]:
        return {"online": self.queue.online, "pending": self.queue.pending_count}

    # ── REPORTING ─────────────────────────────────────────────────────────

    def tamper_log(self) -> List[Dict[str, Any]]:
        return [report_to_dict(e) for e in tamper_log(self.store.get_alerts())]

    async def report(self) -> Dict[str, Any]:
        alerts = self.store.get_alerts()
        detections = await self.scorer.score_all(alerts)
        return report_to_dict(build_report(alerts, detections))

    # ── NARRATION ─────────────────────────────────────────────────────────

    async def explain(self, alert_id: str) -> Dict[str, Any]:
        alert = self._require(alert_id)
        detection = await self.scorer.score(alert)
        # narrate() blocks on HTTP; keep it off the event loop
        narration = await asyncio.to_thread(self.briefing.explain_alert, alert, detection)
        return _narration_dict(narration)

    def summarize(self, alert_id: str) -> Dict[str, Any]:
        return _narration_dict(self.briefing.summarize_mission(self._require(alert_id)))

    def assess(self, alert_ids: Sequence[str]) -> Dict[str, Any]:
        alerts = [self._require(i) for i in alert_ids]
        return _narration_dict(self.briefing.threat_assessment(alerts))


# ═══════════════════════════════════════════════════════════════════════════
# FASTAPI HTTP APP
# ═══════════════════════════════════════════════════════════════════════════

class MessageRequest(BaseModel):
    text:      str  = Field(..., min_length=1, max_length=2000)
    sender:    str  = Sender.AGENT.value
    immediate: bool = False


class EvidenceRequest(BaseModel):
    file_name:     str  = Field(..., min_length=1)
    size:          int  = Field(..., ge=0)
    last_modified: int  = Field(..., ge=0)
    immediate:     bool = False


class ConnectivityRequest(BaseModel):
    online: bool


class AssessmentRequest(BaseModel):
    alert_ids: List[str] = Field(default_factory=list)


def _not_found(exc: AlertNotFoundError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(exc))


def build_app(api: MissionAPI) -> FastAPI:
    """Build the FastAPI application around an existing MissionAPI."""

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        await api.start()
        yield

    _app = FastAPI(
        title       = "Mission Sentinel API",
        description = "Mission state store & incident intelligence engine",
        version     = API_VERSION,
        docs_url    = "/docs",
        redoc_url   = None,
        lifespan    = lifespan,
    )

    # ── READ ────────────────────────────────────────────────────────────

    @_app.get("/health", summary="Health check")
    async def health():
        return {
            "status":      "ok",
            "initialized": api.store.initialized,
            "alerts":      len(api.store.get_alerts()),
            "scorer":      api.scorer.name,
            "narration":   api.briefing.configured,
            **api.queue_status(),
            "version":     API_VERSION,
        }

    @_app.get("/alerts", summary="List alerts")
    async def list_alerts(
        status: Optional[str] = Query(None, description="Pending, Acknowledged, Resolved"),
        level:  Optional[str] = Query(None, description="Critical, Warning, Info"),
    ):
        try:
            data = api.list_alerts(status=status, level=level)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        return {"count": len(data), "alerts": data}

    @_app.get("/alerts/{alert_id}", summary="Get single alert")
    async def get_alert(alert_id: str):
        data = api.get_alert(alert_id)
        if data is None:
            raise HTTPException(status_code=404, detail=f"Alert not found: {alert_id}")
        return data

    @_app.get("/alerts/{alert_id}/anomaly", summary="Anomaly score for one alert")
    async def get_anomaly(alert_id: str):
        try:
            return await api.get_anomaly(alert_id)
        except AlertNotFoundError as exc:
            raise _not_found(exc)

    @_app.get("/anomalies", summary="Anomaly scores for all alerts")
    async def list_anomalies(only_anomalies: bool = Query(False)):
        data = await api.list_anomalies(only_anomalies=only_anomalies)
        return {"count": len(data), "anomalies": data}

    # ── MUTATE ──────────────────────────────────────────────────────────

    @_app.post("/alerts/{alert_id}/acknowledge", summary="Acknowledge alert")
    async def acknowledge(alert_id: str, immediate: bool = Query(False)):
        try:
            return api.acknowledge(alert_id, immediate=immediate)
        except AlertNotFoundError as exc:
            raise _not_found(exc)

    @_app.post("/alerts/{alert_id}/resolve", summary="Resolve alert")
    async def resolve(alert_id: str):
        try:
            return api.resolve(alert_id)
        except AlertNotFoundError as exc:
            raise _not_found(exc)

    @_app.post("/alerts/{alert_id}/messages", summary="Append dispatch message")
    async def send_message(alert_id: str, req: MessageRequest):
        try:
            return api.send_message(alert_id, text=req.text, sender=req.sender, immediate=req.immediate)
        except AlertNotFoundError as exc:
            raise _not_found(exc)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))

    @_app.post("/alerts/{alert_id}/evidence", summary="Upload evidence metadata")
    async def upload_evidence(alert_id: str, req: EvidenceRequest):
        try:
            return await api.upload_evidence(
                alert_id,
                file_name     = req.file_name,
                size          = req.size,
                last_modified = req.last_modified,
                immediate     = req.immediate,
            )
        except AlertNotFoundError as exc:
            raise _not_found(exc)

    # ── CONNECTIVITY ────────────────────────────────────────────────────

    @_app.get("/connectivity", summary="Connectivity and pending actions")
    async def get_connectivity():
        return api.queue_status()

    @_app.put("/connectivity", summary="Set connectivity")
    async def put_connectivity(req: ConnectivityRequest):
        return api.set_connectivity(req.online)

    # ── REPORTING ───────────────────────────────────────────────────────

    @_app.get("/tamper-log", summary="Tamper-evident event log")
    async def get_tamper_log():
        entries = api.tamper_log()
        return {"count": len(entries), "entries": entries}

    @_app.get("/report", summary="Mission report")
    async def get_report():
        return await api.report()

    # ── NARRATION ───────────────────────────────────────────────────────

    @_app.post("/alerts/{alert_id}/explain", summary="Narrated alert explanation")
    async def explain(alert_id: str):
        try:
            return await api.explain(alert_id)
        except AlertNotFoundError as exc:
            raise _not_found(exc)

    # Plain def from here on: FastAPI runs these in its threadpool, narrate() blocks.
    @_app.post("/alerts/{alert_id}/summary", summary="Narrated mission summary")
    def summarize(alert_id: str):
        try:
            return api.summarize(alert_id)
        except AlertNotFoundError as exc:
            raise _not_found(exc)

    @_app.post("/assessment", summary="Narrated threat assessment")
    def assess(req: AssessmentRequest):
        try:
            return api.assess(req.alert_ids)
        except AlertNotFoundError as exc:
            raise _not_found(exc)

    return _app


def create_app(project_root: Optional[Path] = None) -> FastAPI:
    """App wired from mission_config.json (or defaults)."""
    root = project_root or Path.cwd()
    return build_app(MissionAPI.from_config(load_config(root), project_root=root))


# Module-level app instance, used by `uvicorn mission.api:app`
app = create_app()


# ═══════════════════════════════════════════════════════════════════════════
# CLI ENTRYPOINT: python -m mission.api
# ═══════════════════════════════════════════════════════════════════════════

if __name__ == "__main__":
    import argparse

    import uvicorn

    config = load_config()
    parser = argparse.ArgumentParser(
        prog        = "mission.api",
        description = "Mission Sentinel API Server",
    )
    parser.add_argument("--port", type=int, default=int(config["api_port"]),
                        help=f"Port to bind (default: {config['api_port']})")
    parser.add_argument("--host", type=str, default=config["api_host"],
                        help="Host to bind — keep 127.0.0.1 on shared networks")
    args = parser.parse_args()

    logging.basicConfig(
        level   = logging.INFO,
        format  = '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt = '%H:%M:%S',
    )
    uvicorn.run(app, host=args.host, port=args.port, log_level="info")
