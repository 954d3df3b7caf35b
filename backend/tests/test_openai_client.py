"""Completion client tests — retries on transient errors only, response parsing, env config."""

import asyncio
import json
import os
import sys
from unittest.mock import AsyncMock, patch

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import httpx
import pytest

from signal_verdict.http_client import backoff_delay, is_retryable_error
from signal_verdict.services import openai_client
from signal_verdict.services.openai_client import (
    CompletionClient,
    CompletionError,
    build_payload,
    get_openai_key,
)

OK_BODY = {
    "model": "gpt-4.1",
    "choices": [{"message": {"role": "assistant", "content": '{"ok": true}'}}],
    "usage": {"prompt_tokens": 10, "completion_tokens": 5},
}

MESSAGES = [{"role": "user", "content": "hi"}]


def _client(responses, max_retries=2):
    """Client whose transport replays *responses* (status, json) in order."""
    calls = []

    def handler(request):
        calls.append(request)
        status, body = responses[min(len(calls), len(responses)) - 1]
        if isinstance(body, Exception):
            raise body
        return httpx.Response(status, json=body)

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = CompletionClient(api_key="sk-test", model="gpt-4.1", http_client=http, max_retries=max_retries)
    return client, calls


def _complete(client, **kwargs):
    return asyncio.run(client.complete(MESSAGES, **kwargs))


@pytest.fixture(autouse=True)
def no_sleep():
    with patch.object(openai_client, "_sleep", new=AsyncMock()) as sleep:
        yield sleep


class TestComplete:
    def test_success(self):
        client, calls = _client([(200, OK_BODY)])

        response = _complete(client)

        assert response.text == '{"ok": true}'
        assert response.usage.input_tokens == 10
        assert response.usage.output_tokens == 5
        assert response.model == "gpt-4.1"
        assert len(calls) == 1
        assert calls[0].headers["Authorization"] == "Bearer sk-test"

    def test_retries_transient_status(self, no_sleep):
        client, calls = _client([(503, {"error": "busy"}), (200, OK_BODY)])

        response = _complete(client)

        assert response.text == '{"ok": true}'
        assert len(calls) == 2
        no_sleep.assert_awaited_once_with(backoff_delay(0))

    def test_gives_up_after_max_retries(self):
        client, calls = _client([(429, {"error": "rate"})], max_retries=2)

        with pytest.raises(CompletionError) as exc_info:
            _complete(client)

        assert exc_info.value.status_code == 429
        assert len(calls) == 3

    def test_no_retry_on_auth_error(self, no_sleep):
        client, calls = _client([(401, {"error": "bad key"}), (200, OK_BODY)])

        with pytest.raises(CompletionError) as exc_info:
            _complete(client)

        assert exc_info.value.status_code == 401
        assert len(calls) == 1
        no_sleep.assert_not_awaited()

    def test_transport_error_retried(self):
        client, calls = _client([(0, httpx.ConnectError("refused")), (200, OK_BODY)])
        assert _complete(client).text == '{"ok": true}'
        assert len(calls) == 2

    def test_refusal_has_no_text(self):
        body = {"choices": [{"message": {"content": None, "refusal": "I can't help with that"}}]}
        client, _ = _client([(200, body)])

        response = _complete(client)

        assert response.text is None
        assert response.content_type == "refusal"
        assert response.usage is None

    def test_json_mode_sets_response_format(self):
        client, calls = _client([(200, OK_BODY)])
        _complete(client, max_completion_tokens=200)

        sent = json.loads(calls[0].content)
        assert sent["response_format"] == {"type": "json_object"}
        assert sent["max_tokens"] == 200


class TestConfig:
    def test_missing_key_raises(self):
        with patch.dict(os.environ, {"OPENAI_API_KEY": ""}):
            with pytest.raises(EnvironmentError):
                get_openai_key()

    def test_max_retries_from_env(self):
        with patch.dict(os.environ, {"OPENAI_MAX_RETRIES": "5"}):
            assert CompletionClient(api_key="k").max_retries == 5

    def test_payload_without_json_mode(self):
        payload = build_payload(
            model="m", messages=MESSAGES, max_completion_tokens=10, temperature=0.2, json_mode=False
        )
        assert "response_format" not in payload

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_retryable_statuses(self, status):
        assert is_retryable_error(status)

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 422])
    def test_non_retryable_statuses(self, status):
        assert not is_retryable_error(status)
