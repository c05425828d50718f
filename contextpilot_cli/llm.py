"""LLM oracle for commit analysis: OpenAI, Anthropic, Groq, and Ollama."""

from __future__ import annotations

import asyncio
import http.client
import json
import logging
import time
import urllib.request
from typing import Any, Callable, Dict, Optional

import requests

from . import config, config_manager
from .errors import LLMUnavailableError

logger = logging.getLogger(__name__)

# OSError also covers URLError and dropped connections.
RETRYABLE_ERRORS = (
    OSError,
    http.client.HTTPException,
    json.JSONDecodeError,
    KeyError,
    IndexError,
    requests.RequestException,
)


def _post_json(url: str, payload: Dict[str, Any], headers: Dict[str, str], timeout: float) -> Dict[str, Any]:
    req = urllib.request.Request(
        url,
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json", **headers},
        method="POST",
    )
    with urllib.request.urlopen(req, timeout=timeout) as resp:
        return json.loads(resp.read().decode("utf-8"))


class LLMProvider:
    """Base class for LLM providers. ``generate`` raises on transport errors."""

    name = "base"

    def __init__(self, model: str, api_key: str = "", endpoint: str = "", timeout: float = config.LLM_TIMEOUT_SECONDS):
        self.model = model
        self.api_key = api_key
        self.endpoint = endpoint
        self.timeout = timeout

    def generate(self, prompt: str) -> str:
        raise NotImplementedError

    def _require_key(self) -> None:
        if not self.api_key:
            raise LLMUnavailableError(
                f"No API key configured for {self.name}. Run 'cpilot set-llm {self.name} -k <key>'."
            )


class OpenAIProvider(LLMProvider):
    """OpenAI chat completions (also OpenAI-compatible gateways via endpoint)."""

    name = "openai"

    def generate(self, prompt: str) -> str:
        self._require_key()
        parsed = _post_json(
            self.endpoint or "https://api.openai.com/v1/chat/completions",
            {
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": 0.2,
            },
            {"Authorization": f"Bearer {self.api_key}"},
            self.timeout,
        )
        return parsed["choices"][0]["message"]["content"]


class AnthropicProvider(LLMProvider):
    name = "anthropic"

    def generate(self, prompt: str) -> str:
        self._require_key()
        parsed = _post_json(
            self.endpoint or "https://api.anthropic.com/v1/messages",
            {
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "max_tokens": 2048,
                "temperature": 0.2,
            },
            {"x-api-key": self.api_key, "anthropic-version": "2023-06-01"},
            self.timeout,
        )
        return parsed["content"][0]["text"]


class GroqProvider(LLMProvider):
    name = "groq"

    def generate(self, prompt: str) -> str:
        self._require_key()
        response = requests.post(
            self.endpoint or "https://api.groq.com/openai/v1/chat/completions",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": 0.2,
            },
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()["choices"][0]["message"]["content"]


class OllamaProvider(LLMProvider):
    """Local Ollama server; no API key needed."""

    name = "ollama"

    def generate(self, prompt: str) -> str:
        parsed = _post_json(
            self.endpoint or "http://127.0.0.1:11434/api/generate",
            {
                "model": self.model,
                "prompt": prompt,
                "stream": False,
                "options": {"temperature": 0.2},
            },
            {},
            self.timeout,
        )
        return parsed["response"]


PROVIDERS = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "groq": GroqProvider,
    "ollama": OllamaProvider,
}


def create_provider(
    provider: Optional[str] = None,
    model: Optional[str] = None,
    api_key: Optional[str] = None,
    endpoint: Optional[str] = None,
) -> LLMProvider:
    """Build a provider, filling unset values from ``[llm]`` in config.toml."""
    settings = config_manager.load_llm_config()
    name = (provider or settings.get("provider", "openai")).lower()
    if name not in PROVIDERS:
        raise LLMUnavailableError(f"Unknown LLM provider '{name}'. Choose from: {', '.join(PROVIDERS)}")
    defaults = config_manager.get_provider_config(name)
    same_provider = settings.get("provider", "openai") == name
    return PROVIDERS[name](
        model=model or (settings.get("model") if same_provider else None) or defaults.get("model", ""),
        api_key=api_key or (settings.get("api_key", "") if same_provider else ""),
        endpoint=endpoint or (settings.get("endpoint", "") if same_provider else "") or defaults.get("endpoint", ""),
    )


class LLMOracle:
    """Text in, text out, with bounded retries.

    Each attempt is bounded by the provider timeout (30s by default). Failed
    attempts are retried up to ``max_attempts`` in total, sleeping
    ``backoff * attempt`` seconds in between.
    """

    def __init__(
        self,
        provider: LLMProvider,
        max_attempts: int = config.LLM_MAX_ATTEMPTS,
        backoff: float = config.LLM_BACKOFF_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.provider = provider
        self.max_attempts = max_attempts
        self.backoff = backoff
        self.sleep = sleep

    def complete(self, prompt: str) -> str:
        last_error: Optional[str] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                text = self.provider.generate(prompt)
            except RETRYABLE_ERRORS as exc:
                last_error = str(exc) or type(exc).__name__
                logger.warning(
                    "LLM attempt %d/%d via %s failed: %s",
                    attempt,
                    self.max_attempts,
                    self.provider.name,
                    last_error,
                )
            else:
                if text and text.strip():
                    return text
                last_error = "empty response"
                logger.warning("LLM attempt %d/%d returned an empty response", attempt, self.max_attempts)

            if attempt < self.max_attempts:
                self.sleep(self.backoff * attempt)

        raise LLMUnavailableError(
            f"{self.provider.name} did not answer after {self.max_attempts} attempt(s): {last_error}"
        )

    async def acomplete(self, prompt: str) -> str:
        return await asyncio.to_thread(self.complete, prompt)
