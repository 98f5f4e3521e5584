"""Speech services: text-to-speech for the driver and NPCs, transcription for the player.

  SpeechSynthesizer   ElevenLabs  POST /v1/text-to-speech/{voice_id}
                      -> audio/mpeg bytes
  SpeechTranscriber   OpenAI      POST /v1/audio/transcriptions (multipart)
                      -> {"text": "..."}

Both raise SpeechError. Callers treat speech as optional: a failure means
text-only for that turn, never a blocked round.
"""

from __future__ import annotations

import base64
import binascii
import logging

import httpx

from where_are_we.errors import CollaboratorError
from where_are_we.models import SpeechRequest, Transcription

from .voices import voice_for_languages

logger = logging.getLogger(__name__)


class SpeechError(CollaboratorError):
    """Raised when speech synthesis or transcription fails."""


def decode_audio(audio_b64: str) -> bytes:
    """Decode base64 audio, with or without a data: URL prefix."""
    if audio_b64.startswith("data:") and "," in audio_b64:
        audio_b64 = audio_b64.split(",", 1)[1]
    try:
        return base64.b64decode(audio_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise SpeechError("Audio is not valid base64") from e


async def _post(url: str, timeout: float, what: str, **kwargs) -> httpx.Response:
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.post(url, **kwargs)
            resp.raise_for_status()
    except httpx.ConnectError as e:
        raise SpeechError(f"Cannot connect to {what} backend at {url}") from e
    except httpx.HTTPStatusError as e:
        raise SpeechError(f"{what} backend returned HTTP {e.response.status_code}") from e
    except httpx.TimeoutException as e:
        raise SpeechError(f"{what} backend timed out after {timeout}s") from e
    except httpx.HTTPError as e:
        raise SpeechError(f"{what} backend request failed: {e}") from e
    return resp


class SpeechSynthesizer:
    """ElevenLabs multilingual text-to-speech.

    The voice is picked from the request's language codes (first non-English
    code wins).
    """

    def __init__(
        self,
        provider_url: str = "https://api.elevenlabs.io",
        api_key: str = "",
        model: str = "eleven_multilingual_v2",
        timeout: float = 30.0,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._timeout = timeout

    async def __call__(self, request: SpeechRequest) -> bytes:
        if not request.text.strip():
            raise SpeechError("Nothing to say")
        if not self._api_key:
            raise SpeechError("Text-to-speech API key not configured")

        voice_id = voice_for_languages(request.language_codes)
        url = f"{self._base_url}/v1/text-to-speech/{voice_id}"
        body = {
            "text": request.text,
            "model_id": self._model,
            "voice_settings": {
                "stability": 0.5,
                "similarity_boost": 0.75,
                "style": 0.0,
                "use_speaker_boost": True,
            },
        }
        headers = {
            "Accept": "audio/mpeg",
            "Content-Type": "application/json",
            "xi-api-key": self._api_key,
        }
        logger.debug("tts voice=%s languages=%s len=%d", voice_id, request.language_codes, len(request.text))
        resp = await _post(url, self._timeout, "Text-to-speech", json=body, headers=headers)
        return resp.content


class SpeechTranscriber:
    """OpenAI-compatible audio transcription (Whisper)."""

    def __init__(
        self,
        provider_url: str = "https://api.openai.com",
        api_key: str = "",
        model: str = "whisper-1",
        timeout: float = 60.0,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._timeout = timeout

    async def transcribe_base64(self, audio_b64: str) -> Transcription:
        return await self(decode_audio(audio_b64))

    async def __call__(self, audio: bytes) -> Transcription:
        if not audio:
            raise SpeechError("No audio to transcribe")

        url = f"{self._base_url}/v1/audio/transcriptions"
        headers: dict[str, str] = {}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        logger.debug("transcribe url=%s bytes=%d", url, len(audio))
        resp = await _post(
            url, self._timeout, "Transcription",
            data={"model": self._model},
            files={"file": ("audio.wav", audio, "audio/wav")},
            headers=headers,
        )
        try:
            payload = resp.json()
        except ValueError as e:
            raise SpeechError("Transcription backend returned a non-JSON body") from e
        text = payload.get("text") if isinstance(payload, dict) else None
        if not isinstance(text, str):
            raise SpeechError("Unexpected response format from transcription backend")
        return Transcription(transcription=text.strip())
