"""
mission/narration — LLM narration collaborators.
Outside the core: nothing in store, scorer or queue imports this package.
"""

from mission.narration.base import Narrator
from mission.narration.briefing import MissionBriefing, Narration
from mission.narration.ollama_narrator import OllamaNarrator

__all__ = [
    "MissionBriefing",
    "Narration",
    "Narrator",
    "OllamaNarrator",
]
