"""
mission/narration/briefing.py
Narrated briefings for command officers and field agents.

Builds prompts from Alert / AnomalyDetection snapshots and hands them to a
Narrator. Every method returns a Narration result rather than raising:
an unconfigured or failing backend yields ok=False with a fixed fallback
text so dashboards can degrade gracefully.

No chat text or evidence names are written to logs.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from mission.errors import ServiceUnavailable
from mission.models.record import Alert, AnomalyDetection
from mission.narration.base import Narrator

logger = logging.getLogger(__name__)

ASSESSMENT_FALLBACK   = 'AI Service Not Configured: Threat assessment is unavailable.'
EXPLANATION_FALLBACK  = 'AI Service Not Configured: Alert explanation is unavailable.'
SUMMARY_FALLBACK      = 'AI Service Not Configured: Mission summary is unavailable.'
SERVICE_ERROR_TEXT    = 'Error: Could not get a response from the AI model.'
NO_INCIDENTS_TEXT     = ('No incidents selected. Please select one or more incidents '
                         'to generate a threat assessment.')
NO_MISSION_DATA_TEXT  = 'No dispatch logs or evidence available to summarize for this mission.'


@dataclass(frozen=True)
class Narration:
    ok:   bool
    text: str


class MissionBriefing:

    def __init__(self, narrator: Optional[Narrator] = None):
        self.narrator = narrator

    @property
    def configured(self) -> bool:
        return self.narrator is not None

    def _generate(self, prompt: str, fallback: str) -> Narration:
        if self.narrator is None:
            return Narration(ok=False, text=fallback)
        try:
            return Narration(ok=True, text=self.narrator.narrate(prompt))
        except ServiceUnavailable as e:
            logger.warning(f"Narration unavailable: {e}")
            return Narration(ok=False, text=f"{SERVICE_ERROR_TEXT} {fallback}")

    # ── PROMPTS ──────────────────────────────────────────────
    @staticmethod
    def threat_assessment_prompt(alerts: Sequence[Alert]) -> str:
        incidents = '\n\n'.join(
            f"- Title: {a.title}\n  Location: {a.location}\n"
            f"  Severity: {a.level.value}\n  Timestamp: {a.timestamp}"
            for a in alerts
        )
        return (
            "Analyze the following border security incidents and provide a brief, "
            "actionable threat assessment.\n"
            "Focus on potential connections, escalation risks, and recommended "
            "priority. Be concise.\n\n"
            f"Incidents:\n{incidents}\n"
        )

    @staticmethod
    def explain_alert_prompt(alert: Alert, detection: Optional[AnomalyDetection] = None) -> str:
        prompt = (
            "Explain the following security alert in simple terms for a command officer.\n"
            "What are the potential implications and what is the immediate operational "
            "context? Be brief and clear.\n\n"
            "Alert Details:\n"
            f"- Title: {alert.title}\n"
            f"- Severity: {alert.level.value}\n"
            f"- Location: {alert.location}\n"
            f"- Timestamp: {alert.timestamp}\n"
        )
        if detection is not None:
            reasons = '\n'.join(f"  - {r}" for r in detection.explanation)
            prompt += (
                f"- Anomaly: {'yes' if detection.is_anomaly else 'no'} "
                f"(priority {detection.priority.value}, confidence {detection.confidence:.0%})\n"
                f"- Scoring factors:\n{reasons}\n"
            )
        return prompt

    @staticmethod
    def mission_summary_prompt(alert: Alert) -> str:
        log = '\n'.join(f"- [{m.sender.value}] {m.text}" for m in alert.dispatch_log) \
            or 'No dispatch messages.'
        files = '\n'.join(f"- File: {e.file_name}" for e in alert.evidence) \
            or 'No evidence uploaded.'
        return (
            "Summarize the mission activity for a field agent's report based on the "
            "following dispatch log and evidence list.\n"
            "Provide a brief, neutral summary of events.\n\n"
            f"Mission: {alert.title} at {alert.location}\n\n"
            f"Dispatch Log:\n{log}\n\n"
            f"Evidence Log:\n{files}\n"
        )

    # ── BRIEFINGS ────────────────────────────────────────────
    def threat_assessment(self, alerts: Sequence[Alert]) -> Narration:
        if not self.configured:
            return Narration(ok=False, text=ASSESSMENT_FALLBACK)
        if not alerts:
            return Narration(ok=False, text=NO_INCIDENTS_TEXT)
        return self._generate(self.threat_assessment_prompt(alerts), ASSESSMENT_FALLBACK)

    def explain_alert(self, alert: Alert, detection: Optional[AnomalyDetection] = None) -> Narration:
        if not self.configured:
            return Narration(ok=False, text=EXPLANATION_FALLBACK)
        return self._generate(self.explain_alert_prompt(alert, detection), EXPLANATION_FALLBACK)

    def summarize_mission(self, alert: Alert) -> Narration:
        if not self.configured:
            return Narration(ok=False, text=SUMMARY_FALLBACK)
        if not alert.dispatch_log and not alert.evidence:
            return Narration(ok=False, text=NO_MISSION_DATA_TEXT)
        return self._generate(self.mission_summary_prompt(alert), SUMMARY_FALLBACK)
