"""
CorrectionClient: one Gemini call per fix(), no internal retries.

Retry policy lives in the orchestrator. This client only builds the prompt,
bounds the call in time, classifies failures (infra.llm.errors) and pulls the
repaired diagram out of the response.
"""

import time
from typing import Optional

from infra.llm.cache import FixMemo
from infra.llm.errors import ServiceEmptyOutputError
from infra.llm.gemini import GeminiTransport, ResponseParser
from infra.mermaid.normalize import (
    extract_from_sentinel,
    infer_diagram_type,
    pre_normalize,
    sanitize_output,
)
from infra.pipeline.logger import PipelineLogger, null_logger
from pipeline.mermaid_repair.prompts import BuildOptions, PromptBuilder


def generation_payload(prompt: str, max_output_tokens: int) -> dict:
    return {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": {
            "temperature": 0,
            "topP": 1,
            "maxOutputTokens": max_output_tokens,
            "candidateCount": 1,
        },
    }


class CorrectionClient:
    def __init__(
        self,
        transport: Optional[GeminiTransport] = None,
        parser: Optional[ResponseParser] = None,
        memo: Optional[FixMemo] = None,
        options: Optional[BuildOptions] = None,
        max_output_tokens: int = 2048,
        logger: Optional[PipelineLogger] = None,
    ):
        self.logger = logger or null_logger("correction")
        self.transport = transport or GeminiTransport(logger=self.logger)
        self.parser = parser or ResponseParser(logger=self.logger)
        self.memo = memo if memo is not None else FixMemo()
        self.prompts = PromptBuilder(options)
        self.max_output_tokens = max_output_tokens

    @property
    def use_sentinel(self) -> bool:
        return self.prompts.options.use_sentinel

    def fix(
        self,
        api_key: str,
        model: str,
        original: str,
        error_message: str,
        timeout: float,
        api_version: str = "v1beta",
    ) -> str:
        """Return repaired diagram text or raise a ServiceError subclass."""
        diagram_type = infer_diagram_type(original)
        normalized = pre_normalize(original)

        key = FixMemo.make_key(api_version, model, diagram_type, normalized, error_message)
        cached = self.memo.get(key)
        if cached is not None:
            self.logger.debug("Memo hit", model=model)
            return cached

        prompt = self.prompts.build(normalized, error_message, diagram_hint=diagram_type)
        payload = generation_payload(prompt, self.max_output_tokens)

        start = time.time()
        body = self.transport.post(api_key, model, api_version, payload, timeout=timeout)
        parsed = self.parser.parse_generate_content(body, model)

        raw = extract_from_sentinel(parsed.text) if self.use_sentinel else parsed.text
        fixed = sanitize_output(raw)

        self.logger.info(
            "Correction received",
            model=model,
            duration_seconds=round(time.time() - start, 3),
        )

        if not fixed.strip():
            # Light normalization alone is still an improvement worth validating.
            if normalized != original:
                self.memo.put(key, normalized)
                return normalized
            raise ServiceEmptyOutputError("Gemini returned empty output")

        self.memo.put(key, fixed)
        return fixed
