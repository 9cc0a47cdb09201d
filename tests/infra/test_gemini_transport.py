"""
Tests for infra/llm/gemini/transport.py and response_parser.py

requests.Session.post is replaced; nothing leaves the process.
"""

import json
import time

import pytest
import requests

from infra.llm.errors import (
    ErrorKind,
    ServiceAuthError,
    ServiceError,
    ServiceIncompleteError,
    ServiceNoCandidateError,
    ServiceNotFoundError,
    ServiceRateLimitedError,
    ServiceTimeoutError,
    ServiceUnavailableError,
    ServiceUnparseableError,
)
from infra.llm.gemini import GeminiTransport, ResponseParser

PAYLOAD = {"contents": [{"role": "user", "parts": [{"text": "hi"}]}]}


class FakeResponse:
    """Streamed response that hands out its body chunk by chunk."""

    def __init__(self, status, chunks, chunk_delay=0.0):
        self.status_code = status
        self.encoding = "utf-8"
        self.chunks = chunks
        self.chunk_delay = chunk_delay
        self.chunks_sent = 0
        self.closed = False

    def iter_content(self, chunk_size=1):
        for chunk in self.chunks:
            if self.chunk_delay:
                time.sleep(self.chunk_delay)
            if self.closed:
                return
            self.chunks_sent += 1
            yield chunk

    def close(self):
        self.closed = True


def fake_response(status, text):
    return FakeResponse(status, [text.encode("utf-8")])


@pytest.fixture
def capture_post(monkeypatch):
    """Patch Session.post to return a canned response and record the call."""
    calls = []

    def install(status=200, text="{}", delay=0.0, exc=None, response=None):
        def post(self, url, headers=None, json=None, timeout=None, stream=False):
            calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout, "stream": stream})
            if delay:
                time.sleep(delay)
            if exc:
                raise exc
            return response or fake_response(status, text)

        monkeypatch.setattr(requests.Session, "post", post)
        return calls

    return install


class TestTransportRequest:
    """Test URL, headers and body."""

    def test_endpoint_and_key_header(self, capture_post):
        calls = capture_post(text='{"candidates": []}')
        body = GeminiTransport().post("secret-key", "gemini-2.5-flash-lite", "v1beta", PAYLOAD, timeout=3)

        assert body == '{"candidates": []}'
        call = calls[0]
        assert call["url"] == (
            "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash-lite:generateContent"
        )
        assert call["headers"]["x-goog-api-key"] == "secret-key"
        assert "secret-key" not in call["url"]
        assert call["json"] == PAYLOAD
        assert call["timeout"] == 3

    def test_model_name_is_url_encoded(self):
        url = GeminiTransport().endpoint("tuned/my model", "v1")
        assert url.endswith("/v1/models/tuned%2Fmy%20model:generateContent")


class TestTransportErrors:
    """Test HTTP status classification."""

    @pytest.mark.parametrize("status,text,error_cls,hard", [
        (401, "unauthorized", ServiceAuthError, True),
        (403, "forbidden", ServiceAuthError, True),
        (404, "models/x is not found for API version v1", ServiceNotFoundError, True),
        (429, "quota", ServiceRateLimitedError, False),
        (500, "internal", ServiceUnavailableError, False),
        (503, "overloaded", ServiceUnavailableError, False),
    ])
    def test_status_mapping(self, capture_post, status, text, error_cls, hard):
        capture_post(status=status, text=text)
        with pytest.raises(error_cls) as exc_info:
            GeminiTransport().post("k", "m", "v1", PAYLOAD)
        assert exc_info.value.status_code == status
        assert exc_info.value.hard is hard

    def test_404_without_not_found_is_generic(self, capture_post):
        capture_post(status=404, text="")
        with pytest.raises(ServiceError) as exc_info:
            GeminiTransport().post("k", "m", "v1", PAYLOAD)
        assert exc_info.value.kind == ErrorKind.HTTP
        assert not exc_info.value.hard

    def test_deadline_exceeded(self, capture_post):
        capture_post(delay=1.0)
        start = time.time()
        with pytest.raises(ServiceTimeoutError):
            GeminiTransport().post("k", "m", "v1", PAYLOAD, timeout=0.1)
        assert time.time() - start < 0.9

    def test_deadline_closes_streaming_body(self, capture_post):
        response = FakeResponse(200, [b"{"] + [b" "] * 40 + [b"}"], chunk_delay=0.05)
        calls = capture_post(response=response)

        start = time.time()
        with pytest.raises(ServiceTimeoutError):
            GeminiTransport().post("k", "m", "v1", PAYLOAD, timeout=0.3)
        assert time.time() - start < 1.0
        assert calls[0]["stream"] is True

        time.sleep(0.2)
        assert response.closed
        assert response.chunks_sent < len(response.chunks)

    def test_late_headers_are_closed(self, capture_post):
        response = fake_response(200, "{}")
        capture_post(delay=0.4, response=response)

        with pytest.raises(ServiceTimeoutError):
            GeminiTransport().post("k", "m", "v1", PAYLOAD, timeout=0.1)

        time.sleep(0.6)
        assert response.closed
        assert response.chunks_sent == 0

    def test_requests_timeout(self, capture_post):
        capture_post(exc=requests.exceptions.ReadTimeout("slow"))
        with pytest.raises(ServiceTimeoutError):
            GeminiTransport().post("k", "m", "v1", PAYLOAD)

    def test_connection_error_is_soft(self, capture_post):
        capture_post(exc=requests.exceptions.ConnectionError("refused"))
        with pytest.raises(ServiceUnavailableError) as exc_info:
            GeminiTransport().post("k", "m", "v1", PAYLOAD)
        assert not exc_info.value.hard


class TestResponseParser:
    """Test generateContent envelope parsing."""

    def parse(self, data):
        body = data if isinstance(data, str) else json.dumps(data)
        return ResponseParser().parse_generate_content(body, "m")

    def test_text_parts_joined(self):
        parsed = self.parse({"candidates": [{
            "content": {"parts": [{"text": "a"}, {"inlineData": {}}, {"text": "b"}]},
            "finishReason": "STOP",
        }]})
        assert parsed.text == "ab"
        assert parsed.finish_reason == "STOP"

    def test_empty_text_allowed(self):
        assert self.parse({"candidates": [{"content": {"parts": []}, "finishReason": "STOP"}]}).text == ""

    def test_invalid_json(self):
        with pytest.raises(ServiceUnparseableError) as exc_info:
            self.parse("not json")
        assert exc_info.value.hard

    def test_non_object_json(self):
        with pytest.raises(ServiceUnparseableError):
            self.parse("[1, 2]")

    def test_no_candidate_without_feedback(self):
        with pytest.raises(ServiceNoCandidateError) as exc_info:
            self.parse({})
        assert "no candidates were returned" in str(exc_info.value)
        assert not exc_info.value.hard

    def test_safety_block(self):
        with pytest.raises(ServiceNoCandidateError) as exc_info:
            self.parse({"promptFeedback": {"blockReason": "OTHER", "safetyRatings": [
                {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "probability": "MEDIUM"},
                {"category": "HARM_CATEGORY_HATE_SPEECH", "probability": "LOW"},
            ]}})
        err = exc_info.value
        assert err.block_reason == "OTHER"
        assert err.safety_ratings == "HARM_CATEGORY_DANGEROUS_CONTENT:MEDIUM, HARM_CATEGORY_HATE_SPEECH:LOW"

    @pytest.mark.parametrize("reason", ["SAFETY", "RECITATION", "OTHER"])
    def test_non_terminal_finish(self, reason):
        with pytest.raises(ServiceIncompleteError):
            self.parse({"candidates": [{"content": {"parts": [{"text": "x"}]}, "finishReason": reason}]})
