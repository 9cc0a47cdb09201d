import uuid
from typing import Optional, Tuple

from rich.console import Console
from rich.table import Table

from infra.config import RepairSettings, SettingsManager
from infra.llm import FixMemo, GeminiTransport, ResponseParser
from infra.mermaid import ValidationOracle, resolve_backend
from infra.pipeline.logger import PipelineLogger, create_logger
from pipeline.mermaid_repair import (
    ApplyPolicy,
    BuildOptions,
    ConsolePreviewGate,
    CorrectionClient,
    DocumentValidationReport,
    RetryOrchestrator,
)


def load_settings_for(args) -> Tuple[SettingsManager, RepairSettings]:
    manager = SettingsManager(getattr(args, 'home', None))
    settings = manager.load()

    overrides = {}
    if getattr(args, 'model', None):
        overrides['gemini_model'] = args.model
    if getattr(args, 'attempts', None):
        overrides['max_attempts'] = args.attempts
        overrides['batch_max_attempts'] = args.attempts
    if getattr(args, 'backend', None):
        overrides['oracle_backend'] = args.backend
    if overrides:
        settings = RepairSettings.model_validate({**settings.model_dump(), **overrides})
    return manager, settings


def make_logger(settings: RepairSettings, operation: str, verbose: bool = False) -> PipelineLogger:
    return create_logger(
        uuid.uuid4().hex[:8],
        operation,
        log_dir=settings.log_dir,
        console_output=verbose,
        level="DEBUG" if verbose else "INFO",
        secrets=[settings.resolve_api_key()],
    )


def build_oracle(settings: RepairSettings, logger: Optional[PipelineLogger] = None) -> ValidationOracle:
    backend = resolve_backend(settings.oracle_backend, settings.mermaid_dir, logger=logger)
    return ValidationOracle(backend, logger=logger)


def build_orchestrator(
    settings: RepairSettings,
    oracle: ValidationOracle,
    logger: Optional[PipelineLogger] = None,
) -> RetryOrchestrator:
    options = BuildOptions(
        mermaid_version=settings.mermaid_version,
        enforce_code_only=settings.enforce_code_only,
        use_sentinel=settings.use_sentinel,
    )
    corrector = CorrectionClient(
        transport=GeminiTransport(logger=logger),
        parser=ResponseParser(logger=logger),
        memo=FixMemo(),
        options=options,
        max_output_tokens=settings.max_output_tokens,
        logger=logger,
    )
    return RetryOrchestrator.from_settings(settings, corrector, oracle, logger=logger)


def build_policy(
    manager: SettingsManager,
    settings: RepairSettings,
    console: Console,
    document_name: str = "",
    force_auto: bool = False,
) -> ApplyPolicy:
    def persist_auto():
        manager.update({'apply_mode': 'auto'})
        console.print("[dim]apply_mode set to auto; future fixes are applied without preview[/dim]")

    mode = "auto" if force_auto else settings.apply_mode
    return ApplyPolicy(
        mode=mode,
        gate=ConsolePreviewGate(console, document_name=document_name),
        on_auto_apply=persist_auto,
    )


def print_validation_table(console: Console, reports: list[DocumentValidationReport]) -> None:
    table = Table(title="Mermaid validation", show_lines=False)
    table.add_column("Document", style="cyan")
    table.add_column("Block", justify="right")
    table.add_column("Error", style="red")

    for report in reports:
        for block in report.invalid:
            first_line = (block.error or "").splitlines()[0] if block.error else ""
            table.add_row(report.document, str(block.block_index + 1), first_line)

    console.print(table)
