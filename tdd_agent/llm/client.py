"""
LLM Client
==========
Asynchronous client for the text-generation service.

Providers:
    - ollama: POST {base_url}/api/generate with "stream": false, text in "response"
    - openai: POST {base_url}/chat/completions (any OpenAI-compatible endpoint)

Fail-Open Contract:
    ``generate`` never raises on transport problems. Timeouts, HTTP errors
    and malformed bodies are logged and returned as a descriptive
    "Error calling ..." string. The convergence loop treats that string like
    any other response: no fence is found and the iteration moves on.

Response Decoding:
    HTML/XML entity escapes (&lt; &gt; &amp; ...) are decoded so that Java
    generics and pom fragments arrive usable.
"""
import html
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from tdd_agent.core.config import (
    GENERATOR_PROVIDER,
    OLLAMA_BASE_URL,
    OPENAI_BASE_URL,
    OPENAI_API_KEY,
    GENERATOR_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)


class Generator(Protocol):
    """Anything the convergence loop can ask for text."""

    async def generate(self, model_id: str, prompt: str) -> str: ...


# ---------------------------------------------------------------------------
# Provider Configuration
# ---------------------------------------------------------------------------
@dataclass
class ProviderConfig:
    """Configuration for the generation endpoint."""
    name: str
    base_url: str
    api_key: str = ""
    temperature: float = 0.1
    timeout_seconds: Optional[float] = None


def default_provider() -> ProviderConfig:
    """Build the provider from environment configuration."""
    if GENERATOR_PROVIDER == "openai":
        return ProviderConfig(
            name="openai",
            base_url=OPENAI_BASE_URL,
            api_key=OPENAI_API_KEY,
            timeout_seconds=GENERATOR_TIMEOUT_SECONDS,
        )
    return ProviderConfig(
        name="ollama",
        base_url=OLLAMA_BASE_URL,
        timeout_seconds=GENERATOR_TIMEOUT_SECONDS,
    )


# ---------------------------------------------------------------------------
# LLM Client
# ---------------------------------------------------------------------------
class LLMClient:
    """
    Async HTTP client for the generation provider.

    Usage:
        client = LLMClient()
        text = await client.generate("deepseek-coder-v2:16b", "Fix this class...")
        await client.close()
    """

    def __init__(self, provider: Optional[ProviderConfig] = None) -> None:
        self.provider = provider or default_provider()
        self._http: Optional[httpx.AsyncClient] = None

    async def _get_http(self) -> httpx.AsyncClient:
        """Lazy-initialise the HTTP client."""
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(timeout=httpx.Timeout(self.provider.timeout_seconds))
        return self._http

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http and not self._http.is_closed:
            await self._http.aclose()
            self._http = None

    async def generate(self, model_id: str, prompt: str) -> str:
        """
        Send ``prompt`` to ``model_id`` and return the decoded response text.

        Returns
        -------
        str
            The generated text, or an "Error calling <provider>: ..." string
            when the call failed.
        """
        logger.debug("Sending prompt to %s/%s:\n%s", self.provider.name, model_id, prompt)
        try:
            if self.provider.name == "openai":
                raw = await self._call_openai_compatible(model_id, prompt)
            else:
                raw = await self._call_ollama(model_id, prompt)
        except httpx.TimeoutException:
            return self._failure(model_id, "request timed out")
        except httpx.HTTPStatusError as e:
            return self._failure(model_id, f"HTTP {e.response.status_code}")
        except (httpx.HTTPError, ValueError) as e:
            return self._failure(model_id, f"{type(e).__name__}: {e}")

        text = html.unescape(raw)
        logger.debug("Response from %s/%s:\n%s", self.provider.name, model_id, text)
        return text

    def _failure(self, model_id: str, reason: str) -> str:
        message = f"Error calling {self.provider.name} ({model_id}): {reason}"
        logger.error(message)
        return message

    async def _call_ollama(self, model_id: str, prompt: str) -> str:
        """Call the Ollama generate API (non-streaming)."""
        http = await self._get_http()
        url = f"{self.provider.base_url.rstrip('/')}/api/generate"
        payload = {
            "model": model_id,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": self.provider.temperature},
        }
        resp = await http.post(url, json=payload)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise ValueError("Unexpected Ollama response body")
        return data.get("response", "") or ""

    async def _call_openai_compatible(self, model_id: str, prompt: str) -> str:
        """Call an OpenAI-compatible chat completions API."""
        http = await self._get_http()
        url = f"{self.provider.base_url.rstrip('/')}/chat/completions"
        headers = {"Content-Type": "application/json"}
        if self.provider.api_key:
            headers["Authorization"] = f"Bearer {self.provider.api_key}"
        payload = {
            "model": model_id,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.provider.temperature,
        }
        resp = await http.post(url, json=payload, headers=headers)
        resp.raise_for_status()
        data = resp.json()

        try:
            choices = data.get("choices", [])
            if choices:
                return choices[0].get("message", {}).get("content", "") or ""
        except (IndexError, KeyError, TypeError, AttributeError):
            pass
        return ""
