"""
Mermaid support: normalization helpers, parser backends and the
validation oracle built on top of them.
"""

from infra.mermaid.normalize import (
    pre_normalize,
    normalize_surface,
    strip_code_fences,
    extract_from_sentinel,
    sanitize_output,
    infer_diagram_type,
    SENTINEL_BEGIN,
    SENTINEL_END,
)
from infra.mermaid.oracle import (
    ValidationOracle,
    ValidationResult,
    OracleUsageError,
    intercept_parse_errors,
    error_text,
    ORACLE_UNAVAILABLE,
)
from infra.mermaid.backends import (
    NodeMermaidBackend,
    MermaidCliBackend,
    MermaidSyntaxError,
    BackendFailure,
    ParseErrorReport,
    resolve_backend,
)

__all__ = [
    "pre_normalize",
    "normalize_surface",
    "strip_code_fences",
    "extract_from_sentinel",
    "sanitize_output",
    "infer_diagram_type",
    "SENTINEL_BEGIN",
    "SENTINEL_END",
    "ValidationOracle",
    "ValidationResult",
    "OracleUsageError",
    "intercept_parse_errors",
    "error_text",
    "ORACLE_UNAVAILABLE",
    "NodeMermaidBackend",
    "MermaidCliBackend",
    "MermaidSyntaxError",
    "BackendFailure",
    "ParseErrorReport",
    "resolve_backend",
]
