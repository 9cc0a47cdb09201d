from infra.config import RepairSettings, SettingsManager, load_settings

from infra.llm import (
    FixMemo,
    GeminiTransport,
    ResponseParser,
    RepairError,
    ServiceError,
)

from infra.mermaid import (
    ValidationOracle,
    ValidationResult,
    resolve_backend,
)

from infra.pipeline import (
    PipelineLogger,
    create_logger,
)

__all__ = [
    "RepairSettings",
    "SettingsManager",
    "load_settings",

    "FixMemo",
    "GeminiTransport",
    "ResponseParser",
    "RepairError",
    "ServiceError",

    "ValidationOracle",
    "ValidationResult",
    "resolve_backend",

    "PipelineLogger",
    "create_logger",
]
