"""LLM client: HTTP connection to a chat-completion backend.

The scenario generator and the driver dialogue take an LLM callable
matching the protocol:

    async def __call__(self, stage: str, messages: list[dict], *, json_mode: bool = False) -> str: ...

`stage` identifies the caller ("scenario", "driver"). Implementations use
it for logging only. `messages` are OpenAI-style {"role", "content"} dicts.

HttpLLM is the only production implementation. Tests use StubLLM
(defined in the test helpers) instead.
"""

from __future__ import annotations

import json
import logging
from typing import Literal, Protocol

import httpx

from where_are_we.errors import CollaboratorError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol: every LLM implementation must match this signature
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def __call__(
        self, stage: str, messages: list[dict[str, str]], *, json_mode: bool = False
    ) -> str: ...


# ---------------------------------------------------------------------------
# HttpLLM: connects to a real backend
# ---------------------------------------------------------------------------

ProviderFormat = Literal["openai", "koboldcpp"]


class HttpLLM:
    """Async HTTP client for chat-completion backends.

    Supported formats:
      "openai"    : POST /v1/chat/completions  {"model", "messages", ...}
                     Response: {"choices": [{"message": {"content": "..."}}]}
      "koboldcpp" : POST /api/v1/generate      {"prompt": ...}
                     The chat is flattened into one prompt.
                     Response: {"results": [{"text": "..."}]}

    Args:
        provider_url:    Base URL of the backend, e.g. "https://api.openai.com".
        api_key:         Bearer token, or empty string if not required.
        provider_format: Wire format to use. Defaults to "openai".
        model:           Model identifier, used only by the openai format.
        temperature:     Sampling temperature.
        max_tokens:      Completion length cap.
        timeout:         HTTP timeout in seconds. Defaults to 60.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "openai",
        model: str = "gpt-4o-mini",
        temperature: float = 0.7,
        max_tokens: int = 1024,
        timeout: float = 60.0,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, messages: list[dict[str, str]], json_mode: bool) -> tuple[str, dict]:
        """Return (url, body) for the configured format."""
        if self._format == "koboldcpp":
            url = f"{self._base_url}/api/v1/generate"
            prompt = "\n\n".join(f"### {m['role']}\n{m['content']}" for m in messages)
            return url, {"prompt": f"{prompt}\n\n### assistant\n", "max_length": self._max_tokens}

        # openai (default)
        url = f"{self._base_url}/v1/chat/completions"
        body: dict = {
            "messages": messages,
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
        }
        if self._model:
            body["model"] = self._model
        if json_mode:
            body["response_format"] = {"type": "json_object"}
        return url, body

    def _parse_response(self, data: dict) -> str:
        """Extract the completion text from the response body."""
        if self._format == "koboldcpp":
            results = data.get("results")
            if not results or "text" not in results[0]:
                raise LLMError("Unexpected response format from KoboldCpp backend")
            return results[0]["text"]

        choices = data.get("choices")
        if not choices:
            raise LLMError("Unexpected response format from OpenAI-compatible backend")
        content = (choices[0].get("message") or {}).get("content")
        if not content:
            raise LLMError("Unexpected response format from OpenAI-compatible backend")
        return content

    async def __call__(
        self, stage: str, messages: list[dict[str, str]], *, json_mode: bool = False
    ) -> str:
        url, body = self._build_request(messages, json_mode)
        logger.debug("llm call stage=%s url=%s messages=%d", stage, url, len(messages))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"LLM backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise LLMError(f"LLM backend request failed: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise LLMError("LLM backend returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise LLMError("Unexpected response format from LLM backend")
        text = self._parse_response(data)
        logger.debug("llm response stage=%s len=%d", stage, len(text))
        return text


# ---------------------------------------------------------------------------
# Structured output
# ---------------------------------------------------------------------------

def parse_json_output(text: str) -> dict | None:
    """Parse a JSON object from LLM output, stripping markdown fences.

    Returns None when the text is not a JSON object.
    """
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.warning("LLM output is not valid JSON: %s", e)
        return None
    return data if isinstance(data, dict) else None


# ---------------------------------------------------------------------------
# LLMError: raised by HttpLLM for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(CollaboratorError):
    """Raised when the LLM backend cannot be reached or returns an error."""
