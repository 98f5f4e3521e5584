"""Tests for text-to-speech and transcription clients."""

import base64
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from where_are_we.models import SpeechRequest
from where_are_we.services import SpeechError, SpeechSynthesizer, SpeechTranscriber, decode_audio
from where_are_we.services.voices import LANGUAGE_VOICE_MAP


def _mock_response(*, json_body: dict | None = None, content: bytes = b"", status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.content = content
    resp.json.return_value = json_body or {}
    resp.raise_for_status = MagicMock(
        side_effect=None if status < 400 else httpx.HTTPStatusError(
            "", request=MagicMock(), response=resp
        )
    )
    return resp


# ---------------------------------------------------------------------------
# SpeechSynthesizer
# ---------------------------------------------------------------------------

class TestSpeechSynthesizer:
    @pytest.fixture
    def tts(self) -> SpeechSynthesizer:
        return SpeechSynthesizer(provider_url="http://tts.local", api_key="el-key")

    async def test_returns_audio(self, tts) -> None:
        mock_post = AsyncMock(return_value=_mock_response(content=b"ID3audio"))
        with patch("httpx.AsyncClient.post", mock_post):
            audio = await tts(SpeechRequest(text="Bonjour", language_codes=["FR", "EN"]))
        assert audio == b"ID3audio"

    async def test_voice_from_language(self, tts) -> None:
        mock_post = AsyncMock(return_value=_mock_response(content=b"x"))
        with patch("httpx.AsyncClient.post", mock_post):
            await tts(SpeechRequest(text="Hola", language_codes=["EN", "ES"]))
        url = mock_post.call_args[0][0]
        assert url == f"http://tts.local/v1/text-to-speech/{LANGUAGE_VOICE_MAP['ES']}"
        assert mock_post.call_args.kwargs["headers"]["xi-api-key"] == "el-key"
        assert mock_post.call_args.kwargs["json"]["model_id"] == "eleven_multilingual_v2"

    async def test_blank_text_rejected(self, tts) -> None:
        with pytest.raises(SpeechError, match="Nothing to say"):
            await tts(SpeechRequest(text="  "))

    async def test_missing_key(self) -> None:
        with pytest.raises(SpeechError, match="not configured"):
            await SpeechSynthesizer(api_key="")(SpeechRequest(text="hi"))

    async def test_http_error(self, tts) -> None:
        mock_post = AsyncMock(return_value=_mock_response(status=429))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(SpeechError, match="HTTP 429"):
                await tts(SpeechRequest(text="hi"))

    async def test_timeout(self, tts) -> None:
        mock_post = AsyncMock(side_effect=httpx.TimeoutException("slow"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(SpeechError, match="timed out"):
                await tts(SpeechRequest(text="hi"))


    async def test_read_error(self, tts) -> None:
        mock_post = AsyncMock(side_effect=httpx.ReadError("reset"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(SpeechError, match="request failed"):
                await tts(SpeechRequest(text="hi"))


# ---------------------------------------------------------------------------
# SpeechTranscriber
# ---------------------------------------------------------------------------

class TestSpeechTranscriber:
    @pytest.fixture
    def stt(self) -> SpeechTranscriber:
        return SpeechTranscriber(provider_url="http://stt.local", api_key="sk")

    async def test_transcribes(self, stt) -> None:
        mock_post = AsyncMock(return_value=_mock_response(json_body={"text": " Where are we? "}))
        with patch("httpx.AsyncClient.post", mock_post):
            result = await stt(b"RIFF")
        assert result.transcription == "Where are we?"
        assert mock_post.call_args[0][0] == "http://stt.local/v1/audio/transcriptions"
        assert mock_post.call_args.kwargs["data"] == {"model": "whisper-1"}
        assert mock_post.call_args.kwargs["files"]["file"][1] == b"RIFF"

    async def test_base64_with_data_url(self, stt) -> None:
        encoded = "data:audio/wav;base64," + base64.b64encode(b"RIFF").decode()
        mock_post = AsyncMock(return_value=_mock_response(json_body={"text": "hola"}))
        with patch("httpx.AsyncClient.post", mock_post):
            result = await stt.transcribe_base64(encoded)
        assert result.transcription == "hola"
        assert mock_post.call_args.kwargs["files"]["file"][1] == b"RIFF"

    async def test_empty_audio(self, stt) -> None:
        with pytest.raises(SpeechError, match="No audio"):
            await stt(b"")

    async def test_unexpected_body(self, stt) -> None:
        mock_post = AsyncMock(return_value=_mock_response(json_body={"error": "?"}))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(SpeechError, match="Unexpected response format"):
                await stt(b"RIFF")

    async def test_non_json_body(self, stt) -> None:
        resp = _mock_response()
        resp.json.side_effect = ValueError("Expecting value")
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=resp)):
            with pytest.raises(SpeechError, match="non-JSON"):
                await stt(b"RIFF")

    async def test_remote_protocol_error(self, stt) -> None:
        mock_post = AsyncMock(side_effect=httpx.RemoteProtocolError("server hung up"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(SpeechError, match="request failed"):
                await stt(b"RIFF")

    async def test_connect_error(self, stt) -> None:
        mock_post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(SpeechError, match="Cannot connect"):
                await stt(b"RIFF")


def test_decode_audio_rejects_garbage():
    with pytest.raises(SpeechError, match="not valid base64"):
        decode_audio("%%%not-base64%%%")


def test_decode_audio_plain():
    assert decode_audio(base64.b64encode(b"abc").decode()) == b"abc"
