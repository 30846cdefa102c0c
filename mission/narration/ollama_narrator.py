"""
mission/narration/ollama_narrator.py
Ollama backend for narration. Talks to a local Ollama server over HTTP.

Without a host or model configured the narrator reports unavailable and
narrate() raises ServiceUnavailable, so briefing features switch off
instead of failing at request time.
"""

import json
import logging
import urllib.error
import urllib.request
from typing import List, Optional

from mission.errors import ServiceUnavailable
from mission.narration.base import Narrator

logger = logging.getLogger(__name__)


class OllamaNarrator(Narrator):

    def __init__(
        self,
        model:       Optional[str] = 'llama3.1:8b',
        host:        Optional[str] = 'http://localhost:11434',
        timeout_sec: int           = 60,
        temperature: float         = 0.2,
    ):
        self.model       = model or ''
        self.host        = (host or '').rstrip('/')
        self.timeout_sec = timeout_sec
        self.temperature = temperature

    @property
    def configured(self) -> bool:
        return bool(self.host and self.model)

    # ── AVAILABILITY CHECK ───────────────────────────────────
    def is_available(self) -> bool:
        """Ping Ollama and confirm the configured model is pulled."""
        if not self.configured:
            return False
        models = self.list_available_models()
        available = any(
            m == self.model or m.startswith(self.model.split(':')[0])
            for m in models
        )
        if not available:
            logger.warning(
                f"Narration model '{self.model}' not found at {self.host}. "
                f"Available: {models}"
            )
        return available

    def list_available_models(self) -> List[str]:
        """Locally pulled model names; empty when Ollama is unreachable."""
        try:
            req = urllib.request.Request(f"{self.host}/api/tags", method='GET')
            with urllib.request.urlopen(req, timeout=5) as resp:
                data = json.loads(resp.read().decode())
            return [m['name'] for m in data.get('models', [])]
        except (urllib.error.URLError, OSError, ValueError, KeyError) as e:
            logger.warning(f"Ollama not reachable at {self.host}: {e}")
            return []

    # ── NARRATION ────────────────────────────────────────────
    def narrate(self, prompt: str) -> str:
        if not self.configured:
            raise ServiceUnavailable("Narration service not configured")

        payload = json.dumps({
            'model':   self.model,
            'prompt':  prompt,
            'stream':  False,
            'options': {
                'temperature': self.temperature,
                'num_predict': 400,
            },
        }).encode('utf-8')

        try:
            req = urllib.request.Request(
                f"{self.host}/api/generate",
                data    = payload,
                headers = {'Content-Type': 'application/json'},
                method  = 'POST',
            )
            with urllib.request.urlopen(req, timeout=self.timeout_sec) as resp:
                data = json.loads(resp.read().decode('utf-8'))
        except urllib.error.URLError as e:
            logger.error(f"Ollama request failed: {e}")
            raise ServiceUnavailable(f"Narration request failed: {e}") from e
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Ollama response unreadable: {e}")
            raise ServiceUnavailable(f"Narration response unreadable: {e}") from e

        text = str(data.get('response', '')).strip()
        if not text:
            raise ServiceUnavailable("Narration service returned an empty response")
        return text
