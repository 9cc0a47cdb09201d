"""
Validation oracle: classifies diagram text as parseable or not.

The oracle never parses Mermaid itself. It drives whichever entry point the
backend offers, in this order:
  1. backend.parse(text)
  2. backend.api.parse(text)         (namespaced parse API)
  3. backend.render(id, text)        (full render, used only for its errors)

Entry points may return awaitables. Some parsers report syntax errors through
an out-of-band `parse_error` hook instead of raising; the oracle installs its
own hook for the duration of one validation and always restores the previous
one, including when the entry point raises.

A BackendFailure (node crashed, mermaid missing, parser timeout) says nothing
about the diagram and comes back as an "unavailable" result, the same hard
stop as having no parser at all.
"""

import asyncio
import inspect
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from infra.mermaid.backends import BackendFailure
from infra.mermaid.normalize import pre_normalize
from infra.pipeline.logger import PipelineLogger, null_logger

ORACLE_UNAVAILABLE = (
    "Mermaid parser is not available. Install Node.js with the mermaid package "
    "or @mermaid-js/mermaid-cli (mmdc)."
)
GENERIC_SYNTAX_ERROR = "Unknown syntax error"
PARSER_FAILED = "Mermaid parser failed"

_MISSING = object()


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    error: Optional[str] = None
    unavailable: bool = False

    def __post_init__(self):
        if self.ok and self.error is not None:
            raise ValueError("a passing ValidationResult carries no error")
        if not self.ok and not self.error:
            raise ValueError("a failing ValidationResult needs a non-empty error")


UNAVAILABLE_RESULT = ValidationResult(ok=False, error=ORACLE_UNAVAILABLE, unavailable=True)


@dataclass
class HookState:
    """What was installed on the backend before interception."""
    previous: Any
    errors: List[str] = field(default_factory=list)


def error_text(err: Any) -> str:
    """Normalize whatever a parser reported into a non-empty message."""
    msg = None
    if isinstance(err, dict):
        msg = err.get("str") or err.get("message")
    else:
        msg = getattr(err, "str", None) or getattr(err, "message", None)
    if not msg:
        msg = str(err) if err is not None else ""
    msg = str(msg).strip()
    return msg or GENERIC_SYNTAX_ERROR


@contextmanager
def intercept_parse_errors(backend: Any):
    """Install a capturing parse_error hook; restore the previous value on exit."""
    state = HookState(previous=getattr(backend, "parse_error", _MISSING))

    def trap(err, *args):
        state.errors.append(error_text(err))

    setattr(backend, "parse_error", trap)
    try:
        yield state
    finally:
        if state.previous is _MISSING:
            try:
                delattr(backend, "parse_error")
            except AttributeError:
                setattr(backend, "parse_error", None)
        else:
            setattr(backend, "parse_error", state.previous)


class OracleUsageError(RuntimeError):
    """validate() was called where it cannot run the backend to completion."""


async def _await(awaitable):
    return await awaitable


def _run_to_completion(awaitable) -> None:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        asyncio.run(_await(awaitable))
        return
    if inspect.iscoroutine(awaitable):
        awaitable.close()
    raise OracleUsageError(
        "ValidationOracle.validate() cannot await an async parser inside a running "
        "event loop; use 'await oracle.avalidate(code)' instead"
    )


class ValidationOracle:
    def __init__(self, backend: Any, logger: Optional[PipelineLogger] = None):
        self.backend = backend
        self.logger = logger or null_logger("oracle")

    def _entry_point(self) -> Optional[Callable[[str], Any]]:
        backend = self.backend
        if backend is None:
            return None

        parse = getattr(backend, "parse", None)
        if callable(parse):
            return parse

        api = getattr(backend, "api", None)
        api_parse = getattr(api, "parse", None) if api is not None else None
        if callable(api_parse):
            return api_parse

        render = getattr(backend, "render", None)
        if callable(render):
            return lambda text: render(f"tmp-{uuid.uuid4().hex[:10]}", text)

        return None

    def is_available(self) -> bool:
        return self._entry_point() is not None

    def validate(self, code: str) -> ValidationResult:
        """Validate synchronously; awaitable entry points are run to completion.

        Raises OracleUsageError when the backend is async and an event loop is
        already running in this thread.
        """
        entry = self._entry_point()
        if entry is None:
            return UNAVAILABLE_RESULT

        start = time.time()
        failure = None
        with intercept_parse_errors(self.backend) as hook:
            try:
                result = entry(pre_normalize(code))
                if inspect.isawaitable(result):
                    _run_to_completion(result)
            except OracleUsageError:
                raise
            except BackendFailure as e:
                failure = e
            except Exception as e:
                hook.errors.insert(0, error_text(e))

        return self._result(hook, start, failure)

    async def avalidate(self, code: str) -> ValidationResult:
        """Validate from inside a running event loop."""
        entry = self._entry_point()
        if entry is None:
            return UNAVAILABLE_RESULT

        start = time.time()
        failure = None
        with intercept_parse_errors(self.backend) as hook:
            try:
                result = entry(pre_normalize(code))
                if inspect.isawaitable(result):
                    await result
            except BackendFailure as e:
                failure = e
            except Exception as e:
                hook.errors.insert(0, error_text(e))

        return self._result(hook, start, failure)

    def _result(self, hook: HookState, start: float, failure: Optional[BackendFailure] = None) -> ValidationResult:
        duration = round(time.time() - start, 3)
        if failure is not None:
            # The parser itself broke; nothing is known about the diagram.
            message = f"{PARSER_FAILED}: {error_text(failure)}"
            self.logger.error("Parser backend failed", duration_seconds=duration, error=message)
            return ValidationResult(ok=False, error=message, unavailable=True)
        if hook.errors:
            self.logger.debug("Validation failed", duration_seconds=duration, error=hook.errors[0])
            return ValidationResult(ok=False, error=hook.errors[0])
        self.logger.debug("Validation passed", duration_seconds=duration)
        return ValidationResult(ok=True)
