"""
Mermaid repair pipeline.

Document -> extract_blocks -> ValidationOracle (broken blocks only)
         -> RetryOrchestrator (PromptBuilder + CorrectionClient + oracle, per block)
         -> ApplyPolicy (preview / auto) -> apply_replacements -> document.write

Blocks within a document are processed one at a time. Hard service errors
and context changes stop the run before anything is written to the
current document.
"""

from pipeline.mermaid_repair.schemas import (
    Block,
    Replacement,
    CorrectionAttempt,
    BlockRepairResult,
    BlockValidation,
    DocumentValidationReport,
    DocumentRepairReport,
    BatchRepairReport,
)
from pipeline.mermaid_repair.errors import (
    OracleUnavailableError,
    ContextChangedError,
    ReplacementPreconditionError,
)
from pipeline.mermaid_repair.extractor import BlockExtractor, extract_blocks
from pipeline.mermaid_repair.prompts import BuildOptions, PromptBuilder, build_prompt
from pipeline.mermaid_repair.corrector import CorrectionClient
from pipeline.mermaid_repair.directives import preserve_init_directive
from pipeline.mermaid_repair.orchestrator import RetryOrchestrator
from pipeline.mermaid_repair.replacements import ReplacementApplier, apply_replacements
from pipeline.mermaid_repair.documents import (
    FileDocument,
    InMemoryDocument,
    RepairContext,
    find_markdown_files,
)
from pipeline.mermaid_repair.preview import (
    ApplyPolicy,
    ConsolePreviewGate,
    PreviewDecision,
    calculate_diff,
)
from pipeline.mermaid_repair.runner import (
    validate_document,
    validate_documents,
    repair_document,
    fix_document,
    fix_documents,
)

__all__ = [
    "Block",
    "Replacement",
    "CorrectionAttempt",
    "BlockRepairResult",
    "BlockValidation",
    "DocumentValidationReport",
    "DocumentRepairReport",
    "BatchRepairReport",
    "OracleUnavailableError",
    "ContextChangedError",
    "ReplacementPreconditionError",
    "BlockExtractor",
    "extract_blocks",
    "BuildOptions",
    "PromptBuilder",
    "build_prompt",
    "CorrectionClient",
    "preserve_init_directive",
    "RetryOrchestrator",
    "ReplacementApplier",
    "apply_replacements",
    "FileDocument",
    "InMemoryDocument",
    "RepairContext",
    "find_markdown_files",
    "ApplyPolicy",
    "ConsolePreviewGate",
    "PreviewDecision",
    "calculate_diff",
    "validate_document",
    "validate_documents",
    "repair_document",
    "fix_document",
    "fix_documents",
]
