import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

# Extra fields copied from log records into JSON lines, in this order.
EXTRA_FIELDS = (
    'run_id',
    'operation',
    'document',
    'block',
    'attempt',
    'max_attempts',
    'model',
    'error_kind',
    'status_code',
    'duration_seconds',
    'error',
)

REDACTED = "[redacted]"

_RESERVED = ('exc_info', 'stack_info', 'stacklevel')


class FlushingFileHandler(logging.FileHandler):
    """Flush after every record so `tail -f` on a run's log shows attempts as they happen."""
    def emit(self, record):
        super().emit(record)
        self.flush()


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now().astimezone().isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
        }
        entry.update(
            (name, getattr(record, name)) for name in EXTRA_FIELDS if hasattr(record, name)
        )
        return json.dumps(entry, default=str)


class PipelineLogger:
    """Append-only JSONL log for one operation (validate, fix, fix-all, ...).

    Every run of an operation appends to {log_dir}/{operation}.jsonl; lines
    are told apart by run_id. Handlers and the log directory are created on
    the first record, so a run that logs nothing leaves no file behind.

    Secret values registered with the logger (the API key) are replaced by
    "[redacted]" in messages and string extras before anything is emitted.
    Without a log_dir the logger still accepts every call and writes nowhere
    unless console_output is set.
    """
    def __init__(
        self,
        run_id: str,
        operation: str,
        log_dir: Optional[Path] = None,
        console_output: bool = False,
        json_output: bool = True,
        level: str = "INFO",
        filename: Optional[str] = None,
        secrets: Iterable[str] = (),
    ):
        self.run_id = run_id
        self.operation = operation
        self.log_dir = Path(log_dir) if log_dir is not None else None
        self.console_output = console_output
        self.json_output = json_output and self.log_dir is not None
        self.level = level
        self.filename = filename or f"{operation}.jsonl"
        self._secrets = {s for s in secrets if s}

        self._logger: Optional[logging.Logger] = None
        self.log_file: Optional[Path] = None

    def add_secret(self, value: str) -> None:
        if value:
            self._secrets.add(value)

    def redact(self, text: str) -> str:
        for secret in self._secrets:
            text = text.replace(secret, REDACTED)
        return text

    @property
    def logger(self) -> logging.Logger:
        if self._logger is None:
            self._logger = self._build()
        return self._logger

    def _build(self) -> logging.Logger:
        # Not registered with logging.getLogger: the logger lives and dies with this object.
        logger = logging.Logger(f"mend.{self.run_id}.{self.operation}")
        logger.setLevel(getattr(logging, self.level.upper()))
        logger.propagate = False

        if self.console_output:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
            logger.addHandler(console_handler)

        if self.json_output:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            self.log_file = self.log_dir / self.filename
            json_handler = FlushingFileHandler(self.log_file, mode='a', encoding='utf-8')
            json_handler.setFormatter(JSONFormatter())
            logger.addHandler(json_handler)

        if not logger.handlers:
            logger.addHandler(logging.NullHandler())
        return logger

    def _log(self, level: int, message: str, **fields):
        options = {name: fields.pop(name) for name in _RESERVED if name in fields}
        extra = {'run_id': self.run_id, 'operation': self.operation}
        for name, value in fields.items():
            extra[name] = self.redact(value) if isinstance(value, str) else value

        self.logger.log(level, self.redact(message), extra=extra, **options)

    def debug(self, message: str, **fields):
        self._log(logging.DEBUG, message, **fields)

    def info(self, message: str, **fields):
        self._log(logging.INFO, message, **fields)

    def warning(self, message: str, **fields):
        self._log(logging.WARNING, message, **fields)

    def error(self, message: str, **fields):
        self._log(logging.ERROR, message, **fields)

    def close(self):
        if self._logger is None:
            return
        for handler in self._logger.handlers[:]:
            handler.close()
            self._logger.removeHandler(handler)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def create_logger(run_id: str, operation: str, **kwargs) -> PipelineLogger:
    return PipelineLogger(run_id, operation, **kwargs)


def null_logger(operation: str) -> PipelineLogger:
    """Logger for components constructed without one: accepts keyword extras, writes nowhere."""
    return PipelineLogger("detached", operation, log_dir=None, json_output=False)
