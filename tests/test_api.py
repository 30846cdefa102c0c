"""
tests/test_api.py
─────────────────────────────────────────────────────────────────────────────
Tests for mission.api — MissionAPI facade and the FastAPI app.

Coverage:
  - list_alerts: filters by status / level, name or value, bad filter
  - mutations: applied online, queued offline, replayed on reconnect
  - command messages bypass the offline queue
  - evidence upload: hash computed up front, append queued offline
  - anomalies, tamper log and report
  - narration fallbacks without a configured backend
  - HTTP: status codes for unknown ids, bad filters and bad bodies

The facade tests use a seeded store; the HTTP tests run the app inside
TestClient so the lifespan populates the store first.
"""

import asyncio
import time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from mission.api import MissionAPI, build_app
from mission.config import DEFAULT_CONFIG
from mission.errors import AlertNotFoundError
from mission.fingerprint import fingerprint
from mission.models.record import Alert, AlertLevel, Coordinates
from mission.narration import MissionBriefing, Narrator
from mission.narration.briefing import EXPLANATION_FALLBACK
from mission.offline_queue import OfflineActionQueue
from mission.scorer import RuleBasedScorer
from mission.store import MissionStore

PROJECT_ROOT = Path(__file__).resolve().parent.parent


# ── HELPERS ──────────────────────────────────────────────────────────────────

def _make_alert(alert_id: str, level: AlertLevel, hour: int, lat: float = 31.70, lng: float = -106.40) -> Alert:
    return Alert(
        id=alert_id,
        level=level,
        title="Unidentified Vehicle Detected" if level == AlertLevel.CRITICAL else "Camera Motion Alert",
        timestamp=f"2024-07-31 {hour:02d}:15:03 UTC",
        location="Sector 3, Grid G",
        coordinates=Coordinates(lat, lng),
    )


def _make_api(online: bool = True) -> MissionAPI:
    store = MissionStore(alerts=[
        _make_alert("a1", AlertLevel.CRITICAL, 23, 31.776, -106.511),
        _make_alert("a2", AlertLevel.WARNING, 14),
        _make_alert("a3", AlertLevel.INFO, 10),
    ])
    return MissionAPI(store=store, scorer=RuleBasedScorer(), queue=OfflineActionQueue(online=online))


def _config(**overrides) -> dict:
    return dict(DEFAULT_CONFIG, evidence_hash_latency_sec=0.0, ollama_host="", **overrides)


class SlowNarrator(Narrator):
    def __init__(self, delay: float):
        self.delay = delay

    def is_available(self) -> bool:
        return True

    def narrate(self, prompt: str) -> str:
        time.sleep(self.delay)
        return "Briefing ready"


# ── FACADE: QUERIES ──────────────────────────────────────────────────────────

class TestListAlerts:
    def test_all(self):
        assert [a["id"] for a in _make_api().list_alerts()] == ["a1", "a2", "a3"]

    def test_json_shape(self):
        alert = _make_api().list_alerts()[0]
        assert alert["level"] == "Critical"
        assert alert["status"] == "Pending"
        assert alert["coordinates"] == {"lat": 31.776, "lng": -106.511}
        assert alert["dispatch_log"] == []
        assert alert["hash"].startswith("0x")

    def test_filter_by_level_value_or_name(self):
        api = _make_api()
        assert [a["id"] for a in api.list_alerts(level="Critical")] == ["a1"]
        assert [a["id"] for a in api.list_alerts(level="WARNING")] == ["a2"]

    def test_filter_by_status(self):
        api = _make_api()
        api.acknowledge("a2")
        assert [a["id"] for a in api.list_alerts(status="acknowledged")] == ["a2"]

    def test_bad_filter(self):
        with pytest.raises(ValueError):
            _make_api().list_alerts(status="Closed")

    def test_get_alert(self):
        api = _make_api()
        assert api.get_alert("a3")["id"] == "a3"
        assert api.get_alert("nope") is None


class TestAnomalies:
    def test_get_anomaly(self):
        result = asyncio.run(_make_api().get_anomaly("a1"))
        assert result["priority"] == "HIGH"
        assert result["is_anomaly"] is True
        assert result["confidence"] == 0.95

    def test_get_anomaly_unknown(self):
        with pytest.raises(AlertNotFoundError):
            asyncio.run(_make_api().get_anomaly("nope"))

    def test_only_anomalies(self):
        api = _make_api()
        assert len(asyncio.run(api.list_anomalies())) == 3
        assert [d["event_id"] for d in asyncio.run(api.list_anomalies(only_anomalies=True))] == ["a1"]


# ── FACADE: MUTATIONS ────────────────────────────────────────────────────────

class TestOfflineMutations:
    def test_acknowledge_online(self):
        api = _make_api()
        assert api.acknowledge("a1") == {"status": "applied", "pending": 0}
        assert api.get_alert("a1")["status"] == "Acknowledged"

    def test_acknowledge_offline_then_reconnect(self):
        api = _make_api(online=False)
        assert api.acknowledge("a1") == {"status": "queued", "pending": 1}
        assert api.get_alert("a1")["status"] == "Pending"
        assert api.set_connectivity(True) == {"online": True, "pending": 0}
        assert api.get_alert("a1")["status"] == "Acknowledged"

    def test_resolve_bypasses_queue(self):
        api = _make_api(online=False)
        assert api.resolve("a1")["status"] == "applied"
        assert api.get_alert("a1")["status"] == "Resolved"

    def test_command_message_bypasses_queue(self):
        api = _make_api(online=False)
        assert api.send_message("a1", "Hold position", sender="Command")["status"] == "applied"
        assert api.send_message("a1", "Copy", sender="Agent")["status"] == "queued"
        api.set_connectivity(True)
        log = api.get_alert("a1")["dispatch_log"]
        assert [(m["sender"], m["text"]) for m in log] == [("Command", "Hold position"), ("Agent", "Copy")]

    def test_unknown_id_rejected_before_queueing(self):
        api = _make_api(online=False)
        with pytest.raises(AlertNotFoundError):
            api.acknowledge("nope")
        assert api.queue_status()["pending"] == 0

    def test_bad_sender(self):
        with pytest.raises(ValueError):
            _make_api().send_message("a1", "x", sender="Director")

    def test_evidence_offline(self):
        api = _make_api(online=False)
        result = asyncio.run(api.upload_evidence("a2", "cam.mp4", 4096, 1722463200000))
        assert result["status"] == "queued"
        assert result["hash"] == fingerprint("cam.mp4-4096-1722463200000")
        assert api.get_alert("a2")["evidence"] == []
        api.set_connectivity(True)
        (evidence,) = api.get_alert("a2")["evidence"]
        assert evidence["hash"] == result["hash"]
        assert evidence["file_name"] == "cam.mp4"


class TestReporting:
    def test_tamper_log(self):
        entries = _make_api().tamper_log()
        assert [e["alert_id"] for e in entries] == ["a1", "a2", "a3"]
        assert all(e["verified"] for e in entries)

    def test_report(self):
        api = _make_api()
        api.resolve("a3")
        report = asyncio.run(api.report())
        assert report["alert_count"] == 3
        assert report["anomaly_count"] == 1
        assert report["statuses"]["resolved_count"] == 1
        assert report["priorities"]["high_count"] == 1


class TestNarration:
    def test_explain_without_backend(self):
        assert asyncio.run(_make_api().explain("a1")) == {"ok": False, "text": EXPLANATION_FALLBACK}

    def test_assess_unknown_id(self):
        with pytest.raises(AlertNotFoundError):
            _make_api().assess(["a1", "nope"])

    def test_explain_does_not_block_event_loop(self):
        api = _make_api()
        api.briefing = MissionBriefing(SlowNarrator(delay=0.3))

        async def scenario():
            loop = asyncio.get_running_loop()
            gaps = []
            finished = asyncio.Event()

            async def ticker():
                last = loop.time()
                while not finished.is_set():
                    await asyncio.sleep(0.05)
                    now = loop.time()
                    gaps.append(now - last)
                    last = now

            tick_task = asyncio.ensure_future(ticker())
            result = await api.explain("a1")
            finished.set()
            await tick_task
            return result, gaps

        result, gaps = asyncio.run(scenario())
        assert result == {"ok": True, "text": "Briefing ready"}
        assert len(gaps) >= 3
        assert max(gaps) < 0.2


# ── FROM CONFIG ──────────────────────────────────────────────────────────────

class TestFromConfig:
    def test_loads_sample_data(self):
        api = MissionAPI.from_config(_config(), project_root=PROJECT_ROOT)
        assert asyncio.run(api.start()) == 5
        assert api.briefing.configured is False
        assert api.scorer.name == "rules"

    def test_precomputed_scorer(self):
        api = MissionAPI.from_config(_config(scorer="precomputed"), project_root=PROJECT_ROOT)

        async def scenario():
            await api.start()
            return await api.get_anomaly("EVT-0001")

        result = asyncio.run(scenario())
        assert result["confidence"] == 0.91
        assert result["explanation"] == ["Night-time thermal contact", "Inside known crossing corridor"]

    def test_start_offline(self):
        api = MissionAPI.from_config(_config(start_online=False), project_root=PROJECT_ROOT)
        assert api.queue_status() == {"online": False, "pending": 0}


# ── HTTP ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def client():
    with TestClient(build_app(_make_api())) as c:
        yield c


class TestHTTP:
    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "ok"
        assert data["alerts"] == 3
        assert data["online"] is True

    def test_alerts(self, client):
        data = client.get("/alerts", params={"level": "Info"}).json()
        assert data["count"] == 1
        assert data["alerts"][0]["id"] == "a3"

    def test_bad_filter_400(self, client):
        assert client.get("/alerts", params={"status": "Closed"}).status_code == 400

    def test_unknown_alert_404(self, client):
        assert client.get("/alerts/nope").status_code == 404
        assert client.get("/alerts/nope/anomaly").status_code == 404
        assert client.post("/alerts/nope/acknowledge").status_code == 404
        assert client.post("/alerts/nope/messages", json={"text": "x"}).status_code == 404

    def test_offline_round_trip(self, client):
        assert client.put("/connectivity", json={"online": False}).json() == {"online": False, "pending": 0}
        assert client.post("/alerts/a1/acknowledge").json() == {"status": "queued", "pending": 1}
        assert client.get("/alerts/a1").json()["status"] == "Pending"
        assert client.put("/connectivity", json={"online": True}).json()["pending"] == 0
        assert client.get("/alerts/a1").json()["status"] == "Acknowledged"

    def test_message_validation(self, client):
        assert client.post("/alerts/a1/messages", json={"text": ""}).status_code == 422
        assert client.post("/alerts/a1/messages", json={"text": "x", "sender": "Director"}).status_code == 400
        resp = client.post("/alerts/a1/messages", json={"text": "En route", "sender": "Agent"})
        assert resp.json()["status"] == "applied"

    def test_evidence(self, client):
        resp = client.post("/alerts/a2/evidence", json={
            "file_name": "photo.jpg", "size": 100, "last_modified": 5,
        })
        assert resp.status_code == 200
        assert resp.json()["hash"] == fingerprint("photo.jpg-100-5")
        assert len(client.get("/alerts/a2").json()["evidence"]) == 1

    def test_anomalies_and_report(self, client):
        assert client.get("/anomalies", params={"only_anomalies": True}).json()["count"] == 1
        assert client.get("/report").json()["alert_count"] == 3
        assert client.get("/tamper-log").json()["count"] == 3

    def test_narration_fallbacks(self, client):
        assert client.post("/alerts/a1/explain").json() == {"ok": False, "text": EXPLANATION_FALLBACK}
        assert client.post("/assessment", json={"alert_ids": []}).json()["ok"] is False
