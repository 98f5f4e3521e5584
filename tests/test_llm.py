"""Tests for where_are_we.llm: HttpLLM and JSON output parsing."""

import pytest
import httpx
from unittest.mock import AsyncMock, MagicMock, patch

from where_are_we.llm import HttpLLM, LLMError, parse_json_output

MESSAGES = [
    {"role": "system", "content": "You are a taxi driver."},
    {"role": "user", "content": "Where are we?"},
]


def _mock_response(body: dict, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body
    resp.raise_for_status = MagicMock(
        side_effect=None if status < 400 else httpx.HTTPStatusError(
            "", request=MagicMock(), response=resp
        )
    )
    return resp


def _chat(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


# ---------------------------------------------------------------------------
# HttpLLM: OpenAI format (default)
# ---------------------------------------------------------------------------

class TestHttpLLMOpenAI:
    @pytest.fixture
    def llm(self) -> HttpLLM:
        return HttpLLM(provider_url="http://localhost:8080", model="gpt-test")

    async def test_happy_path(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_chat("Bonjour!")))
        with patch("httpx.AsyncClient.post", mock_post):
            result = await llm("driver", MESSAGES)
        assert result == "Bonjour!"

    async def test_posts_to_correct_url(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_chat("ok")))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("driver", MESSAGES)
        url = mock_post.call_args[0][0]
        assert url == "http://localhost:8080/v1/chat/completions"

    async def test_sends_model_and_messages(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_chat("ok")))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("driver", MESSAGES)
        sent_body = mock_post.call_args.kwargs["json"]
        assert sent_body["model"] == "gpt-test"
        assert sent_body["messages"] == MESSAGES
        assert "response_format" not in sent_body

    async def test_json_mode_requests_json_object(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_chat("{}")))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("scenario", MESSAGES, json_mode=True)
        sent_body = mock_post.call_args.kwargs["json"]
        assert sent_body["response_format"] == {"type": "json_object"}

    async def test_bearer_token_sent_when_api_key_set(self) -> None:
        llm = HttpLLM(provider_url="http://localhost:8080", api_key="secret")
        mock_post = AsyncMock(return_value=_mock_response(_chat("ok")))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("driver", MESSAGES)
        headers = mock_post.call_args.kwargs["headers"]
        assert headers.get("Authorization") == "Bearer secret"

    async def test_no_auth_header_when_no_api_key(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_chat("ok")))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("driver", MESSAGES)
        headers = mock_post.call_args.kwargs["headers"]
        assert "Authorization" not in headers

    async def test_trailing_slash_stripped_from_url(self) -> None:
        llm = HttpLLM(provider_url="http://localhost:8080/")
        mock_post = AsyncMock(return_value=_mock_response(_chat("ok")))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("driver", MESSAGES)
        url = mock_post.call_args[0][0]
        assert url == "http://localhost:8080/v1/chat/completions"

    async def test_connect_error_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Cannot connect"):
                await llm("driver", MESSAGES)

    async def test_timeout_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(side_effect=httpx.TimeoutException("timeout"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="timed out"):
                await llm("driver", MESSAGES)

    async def test_http_error_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({}, status=401))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="HTTP 401"):
                await llm("driver", MESSAGES)

    async def test_read_error_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(side_effect=httpx.ReadError("connection reset"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="request failed"):
                await llm("driver", MESSAGES)

    async def test_protocol_error_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(side_effect=httpx.RemoteProtocolError("server hung up"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError):
                await llm("driver", MESSAGES)

    async def test_non_json_body_raises_llm_error(self, llm: HttpLLM) -> None:
        resp = _mock_response({})
        resp.json.side_effect = ValueError("Expecting value")
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=resp)):
            with pytest.raises(LLMError, match="non-JSON"):
                await llm("driver", MESSAGES)

    async def test_non_object_body_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response(["not", "a", "dict"]))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Unexpected response format"):
                await llm("driver", MESSAGES)

    async def test_empty_content_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_chat("")))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Unexpected response format"):
                await llm("driver", MESSAGES)

    async def test_kobold_body_rejected(self, llm: HttpLLM) -> None:
        body = {"results": [{"text": "kobold format accidentally"}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Unexpected response format"):
                await llm("driver", MESSAGES)


# ---------------------------------------------------------------------------
# HttpLLM: KoboldCpp format
# ---------------------------------------------------------------------------

class TestHttpLLMKoboldCpp:
    @pytest.fixture
    def llm(self) -> HttpLLM:
        return HttpLLM(provider_url="http://localhost:5001", provider_format="koboldcpp")

    async def test_happy_path(self, llm: HttpLLM) -> None:
        body = {"results": [{"text": "We are near the river."}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            result = await llm("driver", MESSAGES)
        assert result == "We are near the river."

    async def test_posts_flattened_prompt(self, llm: HttpLLM) -> None:
        body = {"results": [{"text": "ok"}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("driver", MESSAGES)
        url = mock_post.call_args[0][0]
        prompt = mock_post.call_args.kwargs["json"]["prompt"]
        assert url == "http://localhost:5001/api/v1/generate"
        assert "### system\nYou are a taxi driver." in prompt
        assert prompt.endswith("### assistant\n")

    async def test_malformed_response_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"unexpected": "format"}))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Unexpected response format"):
                await llm("driver", MESSAGES)


# ---------------------------------------------------------------------------
# parse_json_output
# ---------------------------------------------------------------------------

class TestParseJsonOutput:
    def test_plain_object(self) -> None:
        assert parse_json_output('{"response": "hi"}') == {"response": "hi"}

    def test_fenced_object(self) -> None:
        text = '```json\n{"response": "hi", "is_hint": false}\n```'
        assert parse_json_output(text) == {"response": "hi", "is_hint": False}

    def test_invalid_json(self) -> None:
        assert parse_json_output("Sure! Here you go") is None

    def test_non_object(self) -> None:
        assert parse_json_output("[1, 2, 3]") is None
