"""Tests for the extraction-service collaborators (prompt + stream reader)."""
import json

import httpx
import pytest

from ai.extraction import ExtractionStreamReader
from ai.prompts import build_job_offer_prompt
from be.config import ExtractionSettings
from be.errors import EmptyExtractionResult, MalformedPayload

LLM_URL = "http://llm.test/api/generate"


@pytest.fixture
def config():
    return ExtractionSettings(
        url=LLM_URL,
        version="test-model",
        max_attempts=3,
        backoff_min_seconds=0,
        backoff_max_seconds=0,
    )


def _ndjson(*events):
    return "\n".join(json.dumps(e) for e in events).encode()


def _reader(config, handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ExtractionStreamReader(config, client=client)


class TestPrompt:
    def test_contains_message_and_wrapper(self):
        prompt = build_job_offer_prompt("  Python developer at Acme  ", "offer")

        assert "Python developer at Acme" in prompt
        assert '{"offer": {...}}' in prompt
        assert "external_id" in prompt
        assert "workModes" in prompt

    def test_is_pure(self):
        assert build_job_offer_prompt("x") == build_job_offer_prompt("x")


class TestStreamReader:
    async def test_collects_fragments_in_order(self, config):
        requests = []

        def handler(request):
            requests.append(json.loads(request.content))
            return httpx.Response(200, content=_ndjson(
                {"response": '{"json": ', "done": False},
                {"response": '{"external_id": "X1"}}', "done": False},
                {"response": "", "done": True},
            ))

        chunks = await _reader(config, handler).read_responses_from_prompt("PROMPT")

        assert chunks == ['{"json": ', '{"external_id": "X1"}}']
        assert requests == [{"model": "test-model", "prompt": "PROMPT", "stream": True}]

    async def test_stops_at_done(self, config):
        def handler(request):
            return httpx.Response(200, content=_ndjson(
                {"response": "a", "done": True},
                {"response": "ignored"},
            ))

        assert await _reader(config, handler).read_responses_from_prompt("p") == ["a"]

    async def test_no_text_is_empty_result(self, config):
        def handler(request):
            return httpx.Response(200, content=_ndjson({"response": "", "done": True}))

        with pytest.raises(EmptyExtractionResult):
            await _reader(config, handler).read_responses_from_prompt("p")

    async def test_non_json_line(self, config):
        def handler(request):
            return httpx.Response(200, content=b"<html>oops</html>")

        with pytest.raises(MalformedPayload):
            await _reader(config, handler).read_responses_from_prompt("p")

    async def test_http_error_is_not_retried(self, config):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500, content=b"server error")

        with pytest.raises(httpx.HTTPStatusError):
            await _reader(config, handler).read_responses_from_prompt("p")
        assert len(calls) == 1

    async def test_transport_errors_are_retried(self, config):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, content=_ndjson({"response": "ok", "done": True}))

        assert await _reader(config, handler).read_responses_from_prompt("p") == ["ok"]
        assert len(calls) == 3

    async def test_gives_up_after_max_attempts(self, config):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(httpx.ConnectError):
            await _reader(config, handler).read_responses_from_prompt("p")
        assert len(calls) == config.max_attempts
