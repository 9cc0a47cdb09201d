"""
LLM subsystem for Gemini API integration.

Provides:
- GeminiTransport: one time-bounded generateContent call
- ResponseParser: envelope parsing into text + finish reason
- FixMemo: content-addressed memo of accepted corrections
- errors: the per-call error taxonomy (hard vs soft)
"""

from infra.llm.cache import FixMemo
from infra.llm.errors import (
    ErrorKind,
    HARD_KINDS,
    RepairError,
    ServiceError,
    ServiceAuthError,
    ServiceNotFoundError,
    ServiceUnparseableError,
    ServiceRateLimitedError,
    ServiceUnavailableError,
    ServiceTimeoutError,
    ServiceNoCandidateError,
    ServiceIncompleteError,
    ServiceEmptyOutputError,
)
from infra.llm.gemini import GeminiTransport, ResponseParser, ParsedResponse

__all__ = [
    "FixMemo",
    "GeminiTransport",
    "ResponseParser",
    "ParsedResponse",
    "ErrorKind",
    "HARD_KINDS",
    "RepairError",
    "ServiceError",
    "ServiceAuthError",
    "ServiceNotFoundError",
    "ServiceUnparseableError",
    "ServiceRateLimitedError",
    "ServiceUnavailableError",
    "ServiceTimeoutError",
    "ServiceNoCandidateError",
    "ServiceIncompleteError",
    "ServiceEmptyOutputError",
]
