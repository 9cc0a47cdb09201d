"""
Shared fakes for mermaid_repair tests.

The parser and the Gemini service are replaced by small in-process
stand-ins injected through constructors. Everything else is real.
"""

import json
import re

import pytest

from infra.llm.cache import FixMemo
from infra.llm.gemini import ResponseParser
from infra.mermaid.backends import MermaidSyntaxError
from infra.mermaid.oracle import ValidationOracle
from pipeline.mermaid_repair.corrector import CorrectionClient
from pipeline.mermaid_repair.orchestrator import RetryOrchestrator

UNQUOTED_LABEL_RE = re.compile(r'\[(?!")[^\]\n]*\]')


class FakeMermaid:
    """parse() raises MermaidSyntaxError whenever `reject(text)` returns a message."""

    def __init__(self, reject=None):
        self.reject = reject or (lambda text: None)
        self.calls = []

    def parse(self, text):
        self.calls.append(text)
        error = self.reject(text)
        if error:
            raise MermaidSyntaxError(error)
        return True


def reject_unquoted_labels(text):
    """Toy grammar: every [label] must be double-quoted."""
    for lineno, line in enumerate(text.split("\n"), 1):
        match = UNQUOTED_LABEL_RE.search(line)
        if match:
            return f"Parse error on line {lineno}: unquoted label {match.group(0)}. Expecting 'STR'"
    return None


class ScriptedCorrector:
    """Stands in for CorrectionClient: returns or raises outcomes in order."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def fix(self, api_key, model, original, error_message, timeout, api_version="v1beta"):
        self.calls.append({"original": original, "error": error_message, "model": model})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeTransport:
    """Stands in for GeminiTransport: hands back scripted bodies or raises."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, api_key, model, api_version, payload, timeout=30.0):
        self.calls.append({
            "api_key": api_key,
            "model": model,
            "api_version": api_version,
            "payload": payload,
            "timeout": timeout,
        })
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def gemini_body(text, finish_reason="STOP"):
    """A generateContent success envelope carrying `text`."""
    return json.dumps({
        "candidates": [{
            "content": {"parts": [{"text": text}], "role": "model"},
            "finishReason": finish_reason,
        }]
    })


def sentinel_body(code):
    return gemini_body(f"BEGIN_MERMAID\n{code}\nEND_MERMAID")


@pytest.fixture
def strict_parser():
    return FakeMermaid(reject_unquoted_labels)


@pytest.fixture
def strict_oracle(strict_parser):
    return ValidationOracle(strict_parser)


@pytest.fixture
def scripted_corrector():
    return ScriptedCorrector


@pytest.fixture
def fake_transport():
    return FakeTransport


@pytest.fixture
def make_client():
    def _make(transport, **kwargs):
        return CorrectionClient(transport=transport, parser=ResponseParser(), memo=FixMemo(), **kwargs)
    return _make


@pytest.fixture
def make_orchestrator():
    def _make(corrector, oracle, **kwargs):
        kwargs.setdefault("api_key", "test-key")
        kwargs.setdefault("model", "gemini-2.5-flash-lite")
        return RetryOrchestrator(corrector=corrector, oracle=oracle, **kwargs)
    return _make


@pytest.fixture
def reply():
    """Builds a sentinel-wrapped generateContent body."""
    return sentinel_body


@pytest.fixture
def raw_reply():
    """Builds a generateContent body with free-form text."""
    return gemini_body
