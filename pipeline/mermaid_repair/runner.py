"""
Entry points: validate / fix one document, validate / fix many.

fix_document() and fix_documents() share repair_document(); the only
differences are which documents are visited, the attempt budget, and the
gate that decides whether a validated fix is written.
"""

from typing import Callable, Iterable, List, Optional

from infra.llm.errors import ServiceError
from infra.mermaid.oracle import ValidationOracle
from infra.pipeline.logger import PipelineLogger, null_logger
from pipeline.mermaid_repair.documents import RepairContext, fingerprint
from pipeline.mermaid_repair.errors import ContextChangedError, OracleUnavailableError
from pipeline.mermaid_repair.extractor import extract_blocks
from pipeline.mermaid_repair.orchestrator import RetryOrchestrator
from pipeline.mermaid_repair.preview import ApplyPolicy
from pipeline.mermaid_repair.replacements import apply_replacements
from pipeline.mermaid_repair.schemas import (
    BatchRepairReport,
    BlockValidation,
    DocumentRepairReport,
    DocumentValidationReport,
    Replacement,
)

ConfirmGate = Callable[[int], bool]


def _require_oracle(oracle: ValidationOracle) -> None:
    if not oracle.is_available():
        raise OracleUnavailableError()


def validate_document(document, oracle: ValidationOracle) -> DocumentValidationReport:
    _require_oracle(oracle)
    report = DocumentValidationReport(document=document.name)
    for block in extract_blocks(document.read()):
        result = oracle.validate(block.code)
        if result.unavailable:
            raise OracleUnavailableError(result.error)
        report.blocks.append(BlockValidation(block_index=block.index, ok=result.ok, error=result.error))
    return report


def validate_documents(documents: Iterable, oracle: ValidationOracle) -> List[DocumentValidationReport]:
    _require_oracle(oracle)
    return [validate_document(doc, oracle) for doc in documents]


def repair_document(
    document,
    oracle: ValidationOracle,
    orchestrator: RetryOrchestrator,
    max_attempts: int,
    policy: Optional[ApplyPolicy] = None,
    context: Optional[RepairContext] = None,
    logger: Optional[PipelineLogger] = None,
) -> DocumentRepairReport:
    """Validate every block, repair the broken ones, write accepted fixes once.

    Blocks are handled strictly in order. Hard ServiceErrors, OracleUnavailable
    and ContextChanged propagate and nothing is written for this document.
    """
    policy = policy or ApplyPolicy(mode="auto")
    context = context or RepairContext()
    logger = logger or null_logger("repair")

    context.ensure_active(document.name)
    policy.begin_document(document.name)
    text = document.read()
    expected = fingerprint(text)
    blocks = extract_blocks(text)
    report = DocumentRepairReport(document=document.name, total_blocks=len(blocks))

    replacements: List[Replacement] = []
    for block in blocks:
        context.ensure_current(document, expected)

        check = oracle.validate(block.code)
        if check.unavailable:
            raise OracleUnavailableError(check.error)
        if check.ok:
            continue

        report.broken_blocks += 1
        logger.info("Repairing block", document=document.name, block=block.index, error=check.error)
        result = orchestrator.repair_block(block, check.error, max_attempts)
        report.results.append(result)

        if not result.success:
            report.failed += 1
            continue

        if not policy.accept(block.code, result.final_code, block):
            report.skipped += 1
            continue

        replacements.append(Replacement(start=block.start_offset, end=block.end_offset, text=result.final_code))
        report.fixed += 1

    if replacements:
        context.ensure_current(document, expected)
        document.write(apply_replacements(text, replacements))
        report.written = True
        logger.info(f"Document updated ({len(replacements)} blocks)", document=document.name)

    return report


def fix_document(
    document,
    oracle: ValidationOracle,
    orchestrator: RetryOrchestrator,
    max_attempts: int = 5,
    policy: Optional[ApplyPolicy] = None,
    context: Optional[RepairContext] = None,
    logger: Optional[PipelineLogger] = None,
) -> DocumentRepairReport:
    _require_oracle(oracle)
    return repair_document(document, oracle, orchestrator, max_attempts, policy, context, logger)


def fix_documents(
    documents: Iterable,
    oracle: ValidationOracle,
    orchestrator: RetryOrchestrator,
    max_attempts: int = 3,
    confirm: Optional[ConfirmGate] = None,
    policy: Optional[ApplyPolicy] = None,
    context: Optional[RepairContext] = None,
    logger: Optional[PipelineLogger] = None,
) -> BatchRepairReport:
    """Repair many documents after one yes/no confirmation.

    The same policy gates every block of every document, so confirm mode
    previews each fix and ACCEPT_ALL carries over to later documents.

    A hard service error or a context change stops the batch; documents
    already written stay written, the current one is left untouched.
    """
    _require_oracle(oracle)
    documents = list(documents)
    context = context or RepairContext()
    logger = logger or null_logger("repair-batch")
    report = BatchRepairReport()

    if confirm is not None and not confirm(len(documents)):
        report.aborted = True
        report.abort_kind = "declined"
        report.abort_reason = "Batch fix was not confirmed"
        return report

    for document in documents:
        try:
            context.ensure_active(document.name)
            doc_report = repair_document(
                document, oracle, orchestrator, max_attempts, policy, context, logger
            )
        except ServiceError as e:
            if not e.hard:
                raise
            report.aborted = True
            report.abort_kind = e.kind.value
            report.abort_reason = str(e)
            report.abort_document = document.name
            logger.error("Batch aborted", document=document.name, error_kind=e.kind.value, error=str(e))
            break
        except ContextChangedError as e:
            report.aborted = True
            report.abort_kind = ContextChangedError.kind
            report.abort_reason = str(e)
            report.abort_document = document.name
            logger.warning("Batch cancelled", document=document.name, error=str(e))
            break

        report.documents.append(doc_report)

    return report
