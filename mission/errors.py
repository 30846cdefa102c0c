"""
mission/errors.py
Error taxonomy shared across the package.

LoadFailure is recovered where it happens (empty result + warning log).
AlertNotFoundError is raised to the caller of a store mutation.
ServiceUnavailable is raised by narrators and turned into a Narration result
by MissionBriefing, so consumers degrade instead of crashing.
"""


class MissionError(Exception):
    """Base class for all mission errors."""


class LoadFailure(MissionError):
    """An external collaborator (event source, model results) is unreachable or malformed."""


class AlertNotFoundError(MissionError, KeyError):
    """A mutation targeted an alert id the store does not hold."""

    def __init__(self, alert_id: str):
        super().__init__(alert_id)
        self.alert_id = alert_id

    def __str__(self) -> str:
        return f"Alert not found: {self.alert_id}"


class ServiceUnavailable(MissionError):
    """Narration backend not configured or the remote call failed."""
