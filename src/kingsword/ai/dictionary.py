"""
Dictionary Client - OpenRouter chat completions used as a word dictionary

Asks the model for a concise definition, synonyms and etymology of a word as
JSON. The search core treats it as an opaque definition service; the synonyms
feed query expansion.
"""

import json
import os
import time
from typing import Any, Dict, Optional

import httpx

from ..core.error_handling import ExpansionFailure, log_debug
from ..core.synonyms import WordDefinition

SYSTEM_PROMPT = """You are a reference dictionary for a library of transcribed sermons.

Answer with a single JSON object with these fields:
- "word": the word being defined
- "definition": a concise, deep definition
- "synonyms": a list of synonyms or closely related words, in the word's language
- "etymology": a short etymology, or null

Return only valid JSON, no other text."""


class DictionaryClient:
    """Definition service backed by an OpenRouter-compatible API."""

    def __init__(self, config: Dict[str, Any], http_client: Optional[httpx.Client] = None):
        """Initialize the client from the ``dictionary`` configuration section."""
        self.config = config.get("dictionary", {})
        self.api_key = self._get_api_key()
        self.base_url = self.config.get("base_url", "https://openrouter.ai/api/v1").rstrip("/")
        self.model = self.config.get("model", "meta-llama/llama-3.1-8b-instruct:free")
        self.timeout = float(self.config.get("timeout", 30.0))
        self.temperature = self.config.get("temperature", 0.1)
        self.enabled = self.config.get("enabled", False) and bool(self.api_key)
        self._http_client = http_client

        self.last_response_time = 0.0
        self.total_requests = 0

    def _get_api_key(self) -> Optional[str]:
        """Get the API key from the environment, then the config file."""
        api_key = os.getenv("OPENROUTER_API_KEY")
        if api_key:
            return api_key
        return self.config.get("api_key")

    def is_available(self) -> bool:
        """Check if the dictionary is configured and switched on."""
        return bool(self.enabled and self.api_key)

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": "King's Sword",
        }
        url = f"{self.base_url}/chat/completions"
        if self._http_client is not None:
            response = self._http_client.post(url, headers=headers, json=payload, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        with httpx.Client(timeout=self.timeout) as client:
            response = client.post(url, headers=headers, json=payload)
            response.raise_for_status()
            return response.json()

    def lookup(self, word: str) -> WordDefinition:
        """Define ``word``.

        Raises:
            ExpansionFailure: the service is off, unreachable, or answered
                with something that is not a definition.
        """
        if not self.is_available():
            raise ExpansionFailure("Dictionary service is disabled or has no API key")

        cleaned = word.strip().lower()
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": f'Define: "{cleaned}"'},
            ],
            "temperature": self.temperature,
            "response_format": {"type": "json_object"},
            "stream": False,
        }

        start = time.time()
        try:
            data = self._post(payload)
        except httpx.HTTPError as e:
            raise ExpansionFailure(f"Dictionary request failed: {e}") from e
        self.last_response_time = time.time() - start
        self.total_requests += 1

        content = data.get("choices", [{}])[0].get("message", {}).get("content", "")
        try:
            parsed = json.loads(_strip_code_fence(content))
        except (json.JSONDecodeError, TypeError) as e:
            raise ExpansionFailure(f"Dictionary returned invalid JSON for {cleaned!r}") from e
        if not isinstance(parsed, dict):
            raise ExpansionFailure(f"Dictionary returned no definition for {cleaned!r}")

        definition = WordDefinition.from_dict(parsed)
        if not definition.word:
            definition.word = cleaned
        log_debug(
            "Dictionary lookup complete",
            word=cleaned,
            synonyms=len(definition.synonyms),
            response_time=round(self.last_response_time, 3),
        )
        return definition

    def get_stats(self) -> Dict[str, Any]:
        return {
            "enabled": self.is_available(),
            "model": self.model,
            "total_requests": self.total_requests,
            "last_response_time": self.last_response_time,
        }


def _strip_code_fence(content: str) -> str:
    """Models sometimes wrap JSON in a ```json fence."""
    text = (content or "").strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()
