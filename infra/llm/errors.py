"""
Error taxonomy for generative-service calls.

Every non-success state of a single correction call maps to one class here.
`hard` errors point at a configuration fault (bad key, wrong model/version,
unreadable responses) and abort the whole batch. Soft errors only cost the
current attempt.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    AUTH = "auth"
    NOT_FOUND = "not_found"
    UNPARSEABLE = "unparseable"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    NO_CANDIDATE = "no_candidate"
    INCOMPLETE = "incomplete"
    EMPTY_OUTPUT = "empty_output"
    HTTP = "http"


HARD_KINDS = frozenset({ErrorKind.AUTH, ErrorKind.NOT_FOUND, ErrorKind.UNPARSEABLE})


class RepairError(Exception):
    """Base class for everything the repair pipeline raises on purpose."""


class ServiceError(RepairError):
    kind: ErrorKind = ErrorKind.HTTP

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    @property
    def hard(self) -> bool:
        return self.kind in HARD_KINDS


class ServiceAuthError(ServiceError):
    kind = ErrorKind.AUTH


class ServiceNotFoundError(ServiceError):
    kind = ErrorKind.NOT_FOUND


class ServiceUnparseableError(ServiceError):
    kind = ErrorKind.UNPARSEABLE


class ServiceRateLimitedError(ServiceError):
    kind = ErrorKind.RATE_LIMITED


class ServiceUnavailableError(ServiceError):
    kind = ErrorKind.UNAVAILABLE


class ServiceTimeoutError(ServiceError):
    kind = ErrorKind.TIMEOUT


class ServiceNoCandidateError(ServiceError):
    kind = ErrorKind.NO_CANDIDATE

    def __init__(self, message: str, block_reason: Optional[str] = None, safety_ratings: str = ""):
        super().__init__(message)
        self.block_reason = block_reason
        self.safety_ratings = safety_ratings


class ServiceIncompleteError(ServiceError):
    kind = ErrorKind.INCOMPLETE

    def __init__(self, message: str, finish_reason: str = ""):
        super().__init__(message)
        self.finish_reason = finish_reason


class ServiceEmptyOutputError(ServiceError):
    kind = ErrorKind.EMPTY_OUTPUT
