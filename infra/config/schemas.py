"""
Configuration schema for mend.

Stored at: {mend_home}/config.yaml (default ~/.mend/config.yaml).
The API key may be written as ${ENV_VAR} and is resolved at use time.
"""

import os
import re
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class RepairSettings(BaseModel):
    """Settings for validation and LLM-assisted repair."""

    gemini_api_key: str = Field(
        default="${GEMINI_API_KEY}",
        description="Gemini API key (literal or ${ENV_VAR} reference)"
    )
    gemini_model: str = Field(
        default="gemini-2.5-flash-lite",
        description="Model identifier passed to generateContent"
    )
    api_version: Literal["v1", "v1beta"] = Field(
        default="v1beta",
        description="Versioned API path segment"
    )
    apply_mode: Literal["confirm", "auto"] = Field(
        default="confirm",
        description="confirm: preview each fix; auto: apply every validated fix"
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        description="Deadline for one correction call"
    )
    preserve_init_directive: bool = Field(
        default=True,
        description="Re-attach the original %%{init}%% line when a fix drops it"
    )
    max_attempts: int = Field(
        default=5,
        description="Correction attempts per block (single document)"
    )
    batch_max_attempts: int = Field(
        default=3,
        description="Correction attempts per block (all documents)"
    )
    max_output_tokens: int = Field(
        default=2048,
        description="Output token budget for one correction"
    )
    use_sentinel: bool = Field(
        default=True,
        description="Ask for output between BEGIN_MERMAID/END_MERMAID lines"
    )
    enforce_code_only: bool = Field(
        default=True,
        description="Forbid prose and fences in the model output"
    )
    mermaid_version: str = Field(
        default="v10.x",
        description="Grammar version label echoed into the prompt"
    )
    oracle_backend: Literal["auto", "node", "mmdc"] = Field(
        default="auto",
        description="Parser used to validate diagrams"
    )
    mermaid_dir: Optional[Path] = Field(
        default=None,
        description="Directory containing node_modules/mermaid (node backend)"
    )
    log_dir: Optional[Path] = Field(
        default=None,
        description="Directory for JSONL logs (default: {mend_home}/logs)"
    )

    @field_validator('request_timeout_seconds')
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        return v

    @field_validator('max_attempts', 'batch_max_attempts')
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if not 1 <= v <= 10:
            raise ValueError("attempt budgets must be between 1 and 10")
        return v

    @field_validator('max_output_tokens')
    @classmethod
    def validate_tokens(cls, v: int) -> int:
        if v < 64:
            raise ValueError("max_output_tokens must be at least 64")
        return v

    @field_validator('mermaid_dir', 'log_dir')
    @classmethod
    def validate_paths(cls, v: Optional[Path]) -> Optional[Path]:
        if v is None:
            return None
        return Path(v).expanduser()

    model_config = {
        "validate_assignment": True
    }

    def resolve_api_key(self) -> str:
        """API key with ${ENV_VAR} references expanded ("" when unset)."""
        return resolve_env_vars(self.gemini_api_key).strip()


def resolve_env_vars(value: str) -> str:
    """
    Resolve ${ENV_VAR} references in a string.

    Examples:
        "${GEMINI_API_KEY}" -> actual value from environment
        "literal-value" -> "literal-value"
        "${MISSING_VAR}" -> "" (empty string if not set)
    """
    if not isinstance(value, str):
        return value

    # Pattern matches ${VAR_NAME}
    pattern = r'\$\{([^}]+)\}'

    def replace(match):
        var_name = match.group(1)
        return os.environ.get(var_name, "")

    return re.sub(pattern, replace, value)
