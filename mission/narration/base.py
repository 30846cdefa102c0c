"""
mission/narration/base.py
Abstract base class for narration (LLM text generation) backends.
To add a new backend: subclass Narrator and implement is_available() and
narrate().

The core never calls a narrator. Only MissionBriefing does, using alert
and anomaly data as prompt material.
"""

from abc import ABC, abstractmethod


class Narrator(ABC):

    @abstractmethod
    def is_available(self) -> bool:
        """
        True when the backend is configured and reachable.
        Lets consumers hide narration features up front.
        """
        ...

    @abstractmethod
    def narrate(self, prompt: str) -> str:
        """
        Generate text for prompt.
        Raises ServiceUnavailable when unconfigured or on any transport error.
        """
        ...
