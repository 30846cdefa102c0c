"""
mission/config.py
Runtime configuration. Persists to mission_config.json in the project root.
Missing or corrupt files fall back to DEFAULT_CONFIG so the engine always
starts.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "mission_config.json"

DEFAULT_HIGH_RISK_ZONES: List[Dict[str, float]] = [
    {"lat": 31.776, "lng": -106.511, "radius": 0.01},
    {"lat": 31.774, "lng": -106.505, "radius": 0.01},
]

DEFAULT_CONFIG: Dict[str, Any] = {
    "events_path": "data/border_surveillance_data.json",
    "anomalies_path": "data/detected_anomalies.json",
    "scorer": "rules",
    "high_risk_zones": DEFAULT_HIGH_RISK_ZONES,
    "night_start_hour": 22,
    "night_end_hour": 6,
    "threat_keywords": ["vehicle", "thermal"],
    "evidence_hash_latency_sec": 0.5,
    "ollama_host": "http://localhost:11434",
    "narration_model": "llama3.1:8b",
    "api_host": "127.0.0.1",
    "api_port": 8766,
    "start_online": True,
}


def _config_path(project_root: Optional[Path] = None) -> Path:
    root = project_root or Path.cwd()
    return root / CONFIG_FILENAME


def load_config(project_root: Optional[Path] = None) -> Dict[str, Any]:
    """Load config from mission_config.json. Returns defaults if missing."""
    path = _config_path(project_root)
    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise TypeError("config root must be a JSON object")
            return {**DEFAULT_CONFIG, **data}
        except (json.JSONDecodeError, OSError, TypeError) as e:
            logger.warning(f"Config load failed: {e}")
    return dict(DEFAULT_CONFIG)


def save_config(config: Dict[str, Any], project_root: Optional[Path] = None) -> Path:
    """Persist config to mission_config.json."""
    path = _config_path(project_root)
    path.write_text(json.dumps(config, indent=2), encoding="utf-8")
    return path


def scorer_settings(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Translate config keys into RuleBasedScorer keyword arguments.
    Zones become (lat, lng, radius) tuples.
    """
    zones: List[Tuple[float, float, float]] = [
        (float(z["lat"]), float(z["lng"]), float(z.get("radius", 0.01)))
        for z in config.get("high_risk_zones") or []
    ]
    return {
        "zones": zones,
        "night_start_hour": int(config.get("night_start_hour", 22)),
        "night_end_hour": int(config.get("night_end_hour", 6)),
        "keywords": [str(k).lower() for k in config.get("threat_keywords") or []],
    }
