import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from infra.pipeline.logger import PipelineLogger, null_logger
from infra.llm.errors import (
    ServiceIncompleteError,
    ServiceNoCandidateError,
    ServiceUnparseableError,
)

# Finish reasons that still carry usable text.
TERMINAL_FINISH_REASONS = ("STOP", "MAX_TOKENS")


@dataclass
class ParsedResponse:
    text: str
    finish_reason: Optional[str]
    model_used: str


class ResponseParser:
    def __init__(self, logger: Optional[PipelineLogger] = None):
        self.logger = logger or null_logger("gemini-parser")

    def parse_generate_content(self, body: str, model: str) -> ParsedResponse:
        """Pull the first candidate's text out of a generateContent body.

        Empty text is not an error here; the caller decides after sentinel
        extraction.
        """
        try:
            data: Dict[str, Any] = json.loads(body) if body else {}
        except json.JSONDecodeError:
            self.logger.error("Malformed API response from Gemini (invalid JSON)", model=model)
            raise ServiceUnparseableError(
                f"Failed to parse Gemini response as JSON. Raw data: {body[:400]}", body=body
            )
        if not isinstance(data, dict):
            raise ServiceUnparseableError(
                f"Unexpected Gemini response type: {type(data).__name__}", body=body
            )

        candidates = data.get("candidates") or []
        candidate = candidates[0] if isinstance(candidates, list) and candidates else None
        if not candidate:
            feedback = data.get("promptFeedback") or {}
            reason = feedback.get("blockReason") or "no candidates were returned"
            ratings = ", ".join(
                f"{r.get('category')}:{r.get('probability')}"
                for r in feedback.get("safetyRatings") or []
                if isinstance(r, dict)
            )
            detail = f" (details: {ratings})" if ratings else ""
            raise ServiceNoCandidateError(
                f"Gemini returned no usable candidate. Reason: {reason}{detail}",
                block_reason=feedback.get("blockReason"),
                safety_ratings=ratings,
            )

        finish_reason = candidate.get("finishReason")
        if finish_reason and finish_reason not in TERMINAL_FINISH_REASONS:
            raise ServiceIncompleteError(
                f"Generation did not complete. finishReason={finish_reason}",
                finish_reason=finish_reason,
            )

        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(p.get("text") or "" for p in parts if isinstance(p, dict))

        self.logger.debug(
            f"Parsed generateContent: model={model}, finish_reason={finish_reason}, content_length={len(text)}",
            model=model,
        )
        return ParsedResponse(text=text, finish_reason=finish_reason, model_used=model)
