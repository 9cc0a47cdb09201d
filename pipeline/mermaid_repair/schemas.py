from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class Block(BaseModel):
    """One fenced mermaid region. code == document[start_offset:end_offset]."""
    start_offset: int = Field(..., ge=0)
    end_offset: int = Field(..., ge=0)
    fence_open: str = Field(..., description="Opening fence line, verbatim")
    fence_close: str = Field(..., description="Closing fence line, verbatim")
    info: str = Field("", description="Text after the language tag on the opening fence")
    code: str
    index: int = Field(..., ge=0, description="0-based discovery order")

    @model_validator(mode='after')
    def check_span(self):
        if self.start_offset > self.end_offset:
            raise ValueError("start_offset must not exceed end_offset")
        if self.end_offset - self.start_offset != len(self.code):
            raise ValueError("span length must equal len(code)")
        return self

    model_config = {"frozen": True}


class Replacement(BaseModel):
    """Offsets refer to the document text before any edit."""
    start: int
    end: int
    text: str

    model_config = {"frozen": True}


class CorrectionAttempt(BaseModel):
    """Loop state for one block; discarded when the loop exits."""
    current_code: str
    last_error: str
    attempt_number: int = 0


class AttemptFailure(BaseModel):
    attempt: int
    error_kind: str
    message: str


class BlockRepairResult(BaseModel):
    block_index: int
    success: bool
    final_code: Optional[str] = None
    attempts: int = 0
    last_error: Optional[str] = None
    failures: List[AttemptFailure] = Field(default_factory=list)


class BlockValidation(BaseModel):
    block_index: int
    ok: bool
    error: Optional[str] = None


class DocumentValidationReport(BaseModel):
    document: str
    blocks: List[BlockValidation] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.blocks)

    @property
    def invalid(self) -> List[BlockValidation]:
        return [b for b in self.blocks if not b.ok]


class DocumentRepairReport(BaseModel):
    document: str
    total_blocks: int = 0
    broken_blocks: int = 0
    fixed: int = 0
    skipped: int = 0
    failed: int = 0
    written: bool = False
    results: List[BlockRepairResult] = Field(default_factory=list)


class BatchRepairReport(BaseModel):
    documents: List[DocumentRepairReport] = Field(default_factory=list)
    aborted: bool = False
    abort_reason: Optional[str] = None
    abort_kind: Optional[str] = None
    abort_document: Optional[str] = None

    @property
    def fixed(self) -> int:
        return sum(d.fixed for d in self.documents)

    @property
    def failed(self) -> int:
        return sum(d.failed for d in self.documents)

    @property
    def skipped(self) -> int:
        return sum(d.skipped for d in self.documents)

    @property
    def documents_written(self) -> int:
        return sum(1 for d in self.documents if d.written)
