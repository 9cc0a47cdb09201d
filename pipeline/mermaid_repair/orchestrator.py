"""
RetryOrchestrator: the fix-then-validate loop for one block.

Each attempt asks the CorrectionClient for a candidate, re-attaches a
dropped init directive, and validates the result with the same oracle
that flagged the block. An invalid candidate becomes the input of the next
attempt together with its new parser error.

Hard service errors (auth, model not found, unparseable response) are
re-raised so the caller can abort the whole batch. Soft errors cost one
attempt. The loop runs at most max_attempts times.
"""

import time
from typing import Optional

from infra.llm.errors import ServiceError
from infra.mermaid.oracle import ValidationOracle
from infra.pipeline.logger import PipelineLogger, null_logger
from pipeline.mermaid_repair.corrector import CorrectionClient
from pipeline.mermaid_repair.directives import preserve_init_directive
from pipeline.mermaid_repair.errors import OracleUnavailableError
from pipeline.mermaid_repair.schemas import (
    AttemptFailure,
    Block,
    BlockRepairResult,
    CorrectionAttempt,
)


class RetryOrchestrator:
    def __init__(
        self,
        corrector: CorrectionClient,
        oracle: ValidationOracle,
        api_key: str,
        model: str,
        api_version: str = "v1beta",
        timeout: float = 30.0,
        preserve_directive: bool = True,
        logger: Optional[PipelineLogger] = None,
    ):
        self.corrector = corrector
        self.oracle = oracle
        self.api_key = api_key
        self.model = model
        self.api_version = api_version
        self.timeout = timeout
        self.preserve_directive = preserve_directive
        self.logger = logger or null_logger("orchestrator")

    @classmethod
    def from_settings(cls, settings, corrector, oracle, logger=None) -> "RetryOrchestrator":
        return cls(
            corrector=corrector,
            oracle=oracle,
            api_key=settings.resolve_api_key(),
            model=settings.gemini_model,
            api_version=settings.api_version,
            timeout=settings.request_timeout_seconds,
            preserve_directive=settings.preserve_init_directive,
            logger=logger,
        )

    def repair_block(self, block: Block, initial_error: str, max_attempts: int) -> BlockRepairResult:
        state = CorrectionAttempt(current_code=block.code, last_error=initial_error)
        result = BlockRepairResult(block_index=block.index, success=False, last_error=initial_error)

        while state.attempt_number < max_attempts:
            state.attempt_number += 1
            result.attempts = state.attempt_number
            start = time.time()

            try:
                candidate = self.corrector.fix(
                    self.api_key,
                    self.model,
                    state.current_code,
                    state.last_error,
                    self.timeout,
                    api_version=self.api_version,
                )
            except ServiceError as e:
                if e.hard:
                    self.logger.error(
                        "Hard service error, aborting",
                        block=block.index,
                        attempt=state.attempt_number,
                        error_kind=e.kind.value,
                        status_code=e.status_code,
                        error=str(e),
                    )
                    raise
                self.logger.warning(
                    "Correction attempt failed",
                    block=block.index,
                    attempt=state.attempt_number,
                    max_attempts=max_attempts,
                    error_kind=e.kind.value,
                    error=str(e),
                )
                result.failures.append(AttemptFailure(
                    attempt=state.attempt_number, error_kind=e.kind.value, message=str(e)
                ))
                result.last_error = str(e)
                continue

            candidate = preserve_init_directive(block.code, candidate, self.preserve_directive)
            check = self.oracle.validate(candidate)
            if check.unavailable:
                raise OracleUnavailableError(check.error)

            if check.ok:
                self.logger.info(
                    "Block repaired",
                    block=block.index,
                    attempt=state.attempt_number,
                    duration_seconds=round(time.time() - start, 3),
                )
                result.success = True
                result.final_code = candidate
                result.last_error = None
                return result

            self.logger.info(
                "Candidate still invalid",
                block=block.index,
                attempt=state.attempt_number,
                max_attempts=max_attempts,
                error_kind="syntax",
                error=check.error,
            )
            result.failures.append(AttemptFailure(
                attempt=state.attempt_number, error_kind="syntax", message=check.error
            ))
            result.last_error = check.error
            state.current_code = candidate
            state.last_error = check.error

        self.logger.warning(
            "Attempts exhausted",
            block=block.index,
            attempt=state.attempt_number,
            max_attempts=max_attempts,
            error=result.last_error,
        )
        return result
