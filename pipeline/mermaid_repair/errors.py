from infra.llm.errors import RepairError
from infra.mermaid.oracle import ORACLE_UNAVAILABLE


class OracleUnavailableError(RepairError):
    """No Mermaid parser entry point could be found. Stop; do not retry."""
    kind = "oracle_unavailable"

    def __init__(self, message: str = ORACLE_UNAVAILABLE):
        super().__init__(message)


class ContextChangedError(RepairError):
    """The document changed or the run was cancelled between blocks."""
    kind = "context_changed"

    def __init__(self, message: str, document: str = ""):
        super().__init__(message)
        self.document = document


class ReplacementPreconditionError(RepairError, ValueError):
    """Replacement spans overlap or fall outside the document."""
    kind = "replacement_precondition"
