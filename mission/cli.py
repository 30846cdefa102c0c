"""
mission/cli.py
Command-line interface for Mission Sentinel.

USAGE:
  mission --events data/border_surveillance_data.json
  mission --events events.json --anomalies anomalies.json --scorer precomputed
  mission --events events.json --only-anomalies
  mission --serve --port 8766

Without --serve: loads the event file, scores every alert and prints a
table plus a priority breakdown. Paths and defaults come from
mission_config.json when not given on the command line.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from mission.config import load_config, scorer_settings
from mission.loader import JsonEventSource
from mission.models.record import Alert, AnomalyDetection, Priority
from mission.scorer import SCORER_KINDS, build_scorer
from mission.store import MissionStore

logger = logging.getLogger(__name__)

# ANSI colors
GREEN  = '\033[92m'
YELLOW = '\033[93m'
RED    = '\033[91m'
CYAN   = '\033[96m'
RESET  = '\033[0m'
BOLD   = '\033[1m'

PRIORITY_COLOR = {
    Priority.HIGH:   RED,
    Priority.MEDIUM: YELLOW,
    Priority.LOW:    GREEN,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog        = 'mission',
        description = 'Mission Sentinel — incident store & anomaly scoring',
        formatter_class = argparse.RawDescriptionHelpFormatter,
        epilog = """
NOTE:
  Risk scores are heuristic. Fingerprints are tamper-evidence only,
  not cryptographic proof.
        """
    )
    parser.add_argument(
        '--events', '-e',
        type = Path,
        help = 'Sensor events JSON (default: events_path from config)',
    )
    parser.add_argument(
        '--anomalies', '-a',
        type = Path,
        help = 'Model results JSON for the precomputed scorer',
    )
    parser.add_argument(
        '--scorer', '-s',
        choices = SCORER_KINDS,
        help    = 'Scoring strategy (default: scorer from config)',
    )
    parser.add_argument(
        '--only-anomalies',
        action = 'store_true',
        help   = 'Print only alerts flagged as anomalies',
    )
    parser.add_argument(
        '--serve',
        action = 'store_true',
        help   = 'Start the HTTP API instead of printing a table',
    )
    parser.add_argument('--host', help='API bind host (default: api_host from config)')
    parser.add_argument('--port', type=int, help='API port (default: api_port from config)')
    parser.add_argument(
        '--verbose', '-v',
        action = 'store_true',
        help   = 'Enable debug logging',
    )
    return parser


async def score_events(
    events_path:    Optional[Path],
    anomalies_path: Optional[Path],
    kind:           str,
    config:         dict,
) -> List[Tuple[Alert, AnomalyDetection]]:
    """Load the event file into a fresh store and score every alert."""
    source = JsonEventSource(events_path=events_path, anomalies_path=anomalies_path)
    store  = MissionStore(loader=source.load_events)
    await store.load()

    if kind == 'rules':
        scorer = build_scorer(kind, **scorer_settings(config))
    else:
        scorer = build_scorer(kind, loader=source.load_precomputed)

    alerts = store.get_alerts()
    detections = await scorer.score_all(alerts)
    return list(zip(alerts, detections))


def main(argv: Optional[List[str]] = None) -> int:
    args   = build_parser().parse_args(argv)
    config = load_config()

    # ── LOGGING SETUP ────────────────────────────────────────
    logging.basicConfig(
        level   = logging.DEBUG if args.verbose else logging.INFO,
        format  = '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt = '%H:%M:%S',
    )

    # ── SERVE ────────────────────────────────────────────────
    if args.serve:
        import uvicorn
        from mission.api import MissionAPI, build_app

        if args.events:
            config['events_path'] = str(args.events.resolve())
        if args.anomalies:
            config['anomalies_path'] = str(args.anomalies.resolve())
        if args.scorer:
            config['scorer'] = args.scorer
        app = build_app(MissionAPI.from_config(config))
        uvicorn.run(
            app,
            host      = args.host or config['api_host'],
            port      = args.port or int(config['api_port']),
            log_level = 'info',
        )
        return 0

    # ── SCORE ────────────────────────────────────────────────
    events_path    = args.events or (Path(config['events_path']) if config.get('events_path') else None)
    anomalies_path = args.anomalies or (Path(config['anomalies_path']) if config.get('anomalies_path') else None)
    kind           = args.scorer or config.get('scorer', 'rules')

    if events_path is None or not events_path.exists():
        _print(f"{RED}Error: events file not found: {events_path}{RESET}")
        return 1

    _step(f"Scoring {events_path} with the {kind} scorer...")
    rows = asyncio.run(score_events(events_path, anomalies_path, kind, config))
    if not rows:
        _print(f"{YELLOW}No alerts loaded from {events_path}{RESET}")
        return 1

    if args.only_anomalies:
        rows = [(a, d) for a, d in rows if d.is_anomaly]

    _print_table(rows)
    _print_breakdown([d for _, d in rows])
    return 0


# ── PRINT HELPERS ────────────────────────────────────────────

def _print_table(rows: List[Tuple[Alert, AnomalyDetection]]) -> None:
    _print(f"\n{BOLD}{'ID':<14} {'TIMESTAMP':<24} {'LEVEL':<9} {'PRIO':<7} {'CONF':>5}  {'HASH':<10}  TITLE{RESET}")
    for alert, det in rows:
        color = PRIORITY_COLOR.get(det.priority, RESET)
        flag  = '!' if det.is_anomaly else ' '
        _print(
            f"{alert.id:<14} {alert.timestamp:<24} {alert.level.value:<9} "
            f"{color}{det.priority.value:<7}{RESET} {det.confidence:>5.2f}  "
            f"{alert.hash:<10} {flag}{alert.title}"
        )


def _print_breakdown(detections: List[AnomalyDetection]) -> None:
    high   = sum(1 for d in detections if d.priority == Priority.HIGH)
    medium = sum(1 for d in detections if d.priority == Priority.MEDIUM)
    low    = sum(1 for d in detections if d.priority == Priority.LOW)
    flagged = sum(1 for d in detections if d.is_anomaly)
    _print(f"\n  {BOLD}{GREEN}✓ {len(detections)} alerts scored, {flagged} anomalies{RESET}")
    _print(f"    HIGH   : {high}")
    _print(f"    MEDIUM : {medium}")
    _print(f"    LOW    : {low}\n")


def _step(msg):  _print(f"  {CYAN}→{RESET} {msg}")
def _print(msg): print(msg)


if __name__ == '__main__':
    sys.exit(main())
