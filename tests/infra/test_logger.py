"""
Tests for infra/pipeline/logger.py

Key behaviors to verify:
1. Lazy initialization - no files created until first log
2. Single append-only file per operation
3. JSON lines carry run_id/operation plus known extras
4. Detached loggers accept extras and write nowhere
5. Loggers are not registered process-wide
"""

import json
import logging

from infra.pipeline.logger import PipelineLogger, create_logger, null_logger


class TestLazyInit:
    """Test that logger initializes lazily."""

    def test_no_file_created_on_init(self, tmp_path):
        log_dir = tmp_path / "logs"
        logger = PipelineLogger(run_id="run-1", operation="fix", log_dir=log_dir)

        assert not log_dir.exists()
        assert logger.log_file is None

    def test_file_created_on_first_log(self, tmp_path):
        log_dir = tmp_path / "logs"
        logger = PipelineLogger(run_id="run-1", operation="fix", log_dir=log_dir)
        logger.info("first")
        logger.close()

        assert logger.log_file == log_dir / "fix.jsonl"
        assert logger.log_file.exists()

    def test_close_without_logging_creates_nothing(self, tmp_path):
        log_dir = tmp_path / "logs"
        PipelineLogger(run_id="run-1", operation="fix", log_dir=log_dir).close()
        assert not log_dir.exists()


class TestJsonLines:
    """Test JSON log formatting."""

    def test_runs_append_to_same_file(self, tmp_path):
        log_dir = tmp_path / "logs"
        for run in ("a", "b"):
            with PipelineLogger(run_id=run, operation="validate", log_dir=log_dir) as logger:
                logger.info(f"from {run}")

        lines = (log_dir / "validate.jsonl").read_text().splitlines()
        assert [json.loads(l)["run_id"] for l in lines] == ["a", "b"]

    def test_entry_fields(self, tmp_path):
        logger = PipelineLogger(run_id="run-1", operation="fix", log_dir=tmp_path)
        logger.warning("attempt failed", document="doc.md", block=2, attempt=1, error_kind="timeout", page=9)
        logger.close()

        entry = json.loads(logger.log_file.read_text().splitlines()[0])
        assert "timestamp" in entry
        assert entry["level"] == "WARNING"
        assert entry["message"] == "attempt failed"
        assert entry["run_id"] == "run-1"
        assert entry["operation"] == "fix"
        assert entry["document"] == "doc.md"
        assert entry["block"] == 2
        assert entry["error_kind"] == "timeout"
        # unknown extras are accepted but not serialized
        assert "page" not in entry

    def test_level_filtering(self, tmp_path):
        logger = PipelineLogger(run_id="r", operation="fix", log_dir=tmp_path, level="WARNING")
        logger.debug("no")
        logger.info("no")
        logger.warning("yes")
        logger.error("yes")
        logger.close()

        levels = [json.loads(l)["level"] for l in logger.log_file.read_text().splitlines()]
        assert levels == ["WARNING", "ERROR"]


class TestRedaction:
    """Test that registered secrets never reach the log file."""

    def test_secret_redacted_in_message_and_extras(self, tmp_path):
        logger = PipelineLogger(run_id="r", operation="fix", log_dir=tmp_path, secrets=["AIzaSECRET"])
        logger.add_secret("")
        logger.error("request with AIzaSECRET failed", error="echo: key=AIzaSECRET", status_code=400)
        logger.close()

        text = logger.log_file.read_text()
        assert "AIzaSECRET" not in text
        entry = json.loads(text.splitlines()[0])
        assert entry["message"] == "request with [redacted] failed"
        assert entry["error"] == "echo: key=[redacted]"
        assert entry["status_code"] == 400

    def test_add_secret_later(self, tmp_path):
        logger = PipelineLogger(run_id="r", operation="fix", log_dir=tmp_path)
        logger.add_secret("token-123")
        logger.info("token-123")
        logger.close()
        assert "token-123" not in logger.log_file.read_text()


class TestFactories:
    """Test create_logger and null_logger."""

    def test_create_logger(self, tmp_path):
        logger = create_logger("r", "fix-all", log_dir=tmp_path, filename="batch.jsonl")
        logger.info("x")
        logger.close()
        assert isinstance(logger, PipelineLogger)
        assert logger.log_file.name == "batch.jsonl"

    def test_null_logger_writes_nothing(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        logger = null_logger("corrector")
        logger.info("ignored", model="m", attempt=1)
        logger.close()

        assert logger.log_file is None
        assert list(tmp_path.iterdir()) == []


class TestLoggerLifetime:
    """Test that loggers are not kept in the logging module registry."""

    def test_many_loggers_leave_registry_unchanged(self, tmp_path):
        before = set(logging.Logger.manager.loggerDict)

        for i in range(50):
            logger = create_logger(f"run-{i}", "fix", log_dir=tmp_path)
            logger.info("attempt", attempt=i)
            logger.close()
            null_logger("corrector").info("ignored")

        added = set(logging.Logger.manager.loggerDict) - before
        assert not [name for name in added if name.startswith("mend.")]

    def test_same_run_and_operation_do_not_share_handlers(self, tmp_path):
        first = PipelineLogger("r", "fix", log_dir=tmp_path / "a")
        second = PipelineLogger("r", "fix", log_dir=tmp_path / "b")
        first.info("one")
        second.info("two")
        first.close()
        second.close()

        assert (tmp_path / "a" / "fix.jsonl").read_text().count("\n") == 1
        assert (tmp_path / "b" / "fix.jsonl").read_text().count("\n") == 1
