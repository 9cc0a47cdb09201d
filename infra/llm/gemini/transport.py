#!/usr/bin/env python3
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from typing import Dict, Any, Optional, Tuple
from urllib.parse import quote

import requests

from infra.pipeline.logger import PipelineLogger, null_logger
from infra.llm.errors import (
    ServiceAuthError,
    ServiceError,
    ServiceNotFoundError,
    ServiceRateLimitedError,
    ServiceTimeoutError,
    ServiceUnavailableError,
)

BASE_URL = "https://generativelanguage.googleapis.com"


class _Exchange:
    """Response handle shared between the request thread and the deadline path."""

    def __init__(self):
        self.cancelled = threading.Event()
        self.response = None
        self._lock = threading.Lock()

    def attach(self, response) -> bool:
        with self._lock:
            self.response = response
            if self.cancelled.is_set():
                response.close()
                return False
            return True

    def abort(self):
        with self._lock:
            self.cancelled.set()
            if self.response is not None:
                self.response.close()


class GeminiTransport:
    """Single POST to the generateContent endpoint.

    No retries happen here. The whole request (connect + body) is bounded by
    `timeout`. The body is streamed; when the deadline passes the streamed
    response is closed, which releases its socket and stops the body read,
    and ServiceTimeoutError is raised. If the headers only arrive after the
    deadline, the response is closed as soon as it exists.
    """

    def __init__(self, logger: Optional[PipelineLogger] = None, base_url: str = BASE_URL):
        self.logger = logger or null_logger("gemini-transport")
        self.base_url = base_url.rstrip("/")

    def endpoint(self, model: str, api_version: str) -> str:
        return f"{self.base_url}/{api_version}/models/{quote(model, safe='')}:generateContent"

    def post(
        self,
        api_key: str,
        model: str,
        api_version: str,
        payload: Dict[str, Any],
        timeout: float = 30.0,
    ) -> str:
        """Send the request and return the raw body text of a 2xx response."""
        url = self.endpoint(model, api_version)
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": api_key,
        }

        self.logger.debug("Gemini API request", model=model, timeout=timeout, api_version=api_version)

        session = requests.Session()
        pool = ThreadPoolExecutor(max_workers=1)
        exchange = _Exchange()
        start = time.time()
        try:
            future = pool.submit(self._exchange, session, exchange, url, headers, payload, timeout)
            try:
                status, text = future.result(timeout=timeout if timeout > 0 else None)
            except FuturesTimeout:
                exchange.abort()
                future.cancel()
                self.logger.warning("Gemini API request aborted", model=model, timeout=timeout)
                raise ServiceTimeoutError(f"Request timed out after {timeout:g}s")
            except requests.exceptions.Timeout:
                raise ServiceTimeoutError(f"Request timed out after {timeout:g}s")
            except requests.exceptions.RequestException as e:
                raise ServiceUnavailableError(f"Could not reach Gemini API: {type(e).__name__}")
        finally:
            session.close()
            pool.shutdown(wait=False)

        self.logger.debug(
            "Gemini API response",
            model=model,
            status_code=status,
            duration_seconds=round(time.time() - start, 3),
        )

        if not 200 <= status < 300:
            self._raise_for_status(status, text, api_version)
        return text

    @staticmethod
    def _exchange(session, exchange: _Exchange, url, headers, payload, timeout) -> Tuple[int, str]:
        response = session.post(url, headers=headers, json=payload, timeout=timeout, stream=True)
        if not exchange.attach(response):
            raise ServiceTimeoutError("Response arrived after the deadline")

        chunks = []
        try:
            for chunk in response.iter_content(chunk_size=8192):
                if exchange.cancelled.is_set():
                    break
                chunks.append(chunk)
        finally:
            response.close()

        body = b"".join(chunks).decode(response.encoding or "utf-8", errors="replace")
        return response.status_code, body

    def _raise_for_status(self, status: int, text: str, api_version: str):
        if status in (401, 403):
            raise ServiceAuthError(
                f"Gemini API authentication error ({status}). Check the API key and project settings. Response: {text}",
                status_code=status, body=text,
            )
        if status == 404 and "not found" in text.lower():
            raise ServiceNotFoundError(
                f"Model not found ({api_version}). Check the model name and API version combination. Response: {text}",
                status_code=status, body=text,
            )
        if status == 429:
            raise ServiceRateLimitedError(f"Rate limit reached (429). Response: {text}", status_code=status, body=text)
        if status >= 500:
            raise ServiceUnavailableError(f"Gemini server error ({status}). Response: {text}", status_code=status, body=text)
        raise ServiceError(f"Gemini API error: {status} {text}", status_code=status, body=text)
