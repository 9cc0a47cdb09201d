"""Mermaid parser backends driven through subprocesses.

Each backend exposes the entry points the validation oracle looks for:
- NodeMermaidBackend.parse(text): mermaid.parse() under Node.js
- MermaidCliBackend.render(id, text): a full mmdc render; syntax errors are
  reported through the `parse_error` hook when one is installed

Both need external tools (node + the mermaid npm package, or
@mermaid-js/mermaid-cli). resolve_backend() returns None when neither is
present and the oracle then reports itself unavailable.
"""

from __future__ import annotations

import json
import os
import re
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from infra.pipeline.logger import PipelineLogger, null_logger


# Reads one diagram from stdin, writes {"ok": bool, "error": str} to stdout.
# 'loose' keeps mermaid away from DOMPurify, which has no DOM under Node.
_PARSE_SCRIPT = """\
import mermaid from 'mermaid';

mermaid.initialize({ startOnLoad: false, securityLevel: 'loose' });

const source = await new Promise(resolve => {
    let data = '';
    process.stdin.on('data', chunk => data += chunk);
    process.stdin.on('end', () => resolve(data));
});

try {
    await mermaid.parse(source);
    process.stdout.write(JSON.stringify({ ok: true }));
} catch (e) {
    const msg = (e && (e.str || e.message)) || String(e);
    process.stdout.write(JSON.stringify({ ok: false, error: msg }));
}
"""

_STACK_LINE_RE = re.compile(r"^\s+at\s")


class MermaidSyntaxError(Exception):
    """Raised by a backend entry point when the diagram does not parse."""


class BackendFailure(Exception):
    """The parser process itself failed (crash, timeout, bad output)."""


@dataclass
class ParseErrorReport:
    """Payload handed to an installed parse_error hook."""
    message: str
    hash: Optional[dict] = None


def _extract_cli_error(stderr_text: str) -> str:
    """Trim mmdc stderr down to the parser message (no stack frames)."""
    raw = (stderr_text or "").replace("\r\n", "\n").replace("\r", "\n")
    lines = [line.rstrip() for line in raw.split("\n") if line.strip()]
    lines = [line for line in lines if not _STACK_LINE_RE.match(line)]
    if not lines:
        return "unknown error"

    for i, line in enumerate(lines):
        if "Error:" in line or "error" in line.lower():
            picked = lines[i:i + 6]
            picked[0] = picked[0].split("Error:", 1)[-1].strip() or picked[0].strip()
            return "\n".join(picked)
    return "\n".join(lines[:6])


class NodeMermaidBackend:
    def __init__(
        self,
        mermaid_dir: Path,
        node_bin: str = "node",
        timeout: float = 30.0,
        logger: Optional[PipelineLogger] = None,
    ):
        self.mermaid_dir = Path(mermaid_dir)
        self.node_bin = node_bin
        self.timeout = timeout
        self.logger = logger or null_logger("mermaid-node")

    @classmethod
    def discover(cls, mermaid_dir: Optional[Path] = None, **kwargs) -> Optional["NodeMermaidBackend"]:
        node_bin = shutil.which("node")
        if not node_bin:
            return None

        candidates = [Path(mermaid_dir).expanduser()] if mermaid_dir else []
        candidates.append(Path.cwd())
        for directory in candidates:
            if (directory / "node_modules" / "mermaid").is_dir():
                return cls(directory, node_bin=node_bin, **kwargs)
        return None

    def parse(self, text: str) -> bool:
        # ESM resolves 'mermaid' relative to the script, so it lives in mermaid_dir.
        fd, script_path = tempfile.mkstemp(
            suffix=".mjs", prefix=".mend_parse_", dir=str(self.mermaid_dir)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(_PARSE_SCRIPT)

            try:
                result = subprocess.run(
                    [self.node_bin, script_path],
                    input=text,
                    capture_output=True,
                    text=True,
                    encoding="utf-8",
                    timeout=self.timeout,
                    env={**os.environ, "NODE_NO_WARNINGS": "1"},
                )
            except subprocess.TimeoutExpired:
                raise BackendFailure(f"mermaid.parse timed out after {self.timeout:g}s")
        finally:
            try:
                os.unlink(script_path)
            except OSError:
                pass

        if result.returncode != 0:
            self.logger.warning(
                "Parser script failed",
                status_code=result.returncode,
                error=result.stderr.strip()[:500],
            )
            raise BackendFailure(f"node exited with {result.returncode}: {result.stderr.strip()[:300]}")

        try:
            payload = json.loads(result.stdout)
        except json.JSONDecodeError:
            raise BackendFailure(f"unexpected parser output: {result.stdout[:300]}")

        if not payload.get("ok"):
            raise MermaidSyntaxError(payload.get("error") or "Syntax error")
        return True


class MermaidCliBackend:
    def __init__(
        self,
        mmdc_bin: str = "mmdc",
        timeout: float = 60.0,
        logger: Optional[PipelineLogger] = None,
    ):
        self.mmdc_bin = mmdc_bin
        self.timeout = timeout
        self.logger = logger or null_logger("mermaid-cli")
        self.parse_error: Optional[Callable[[ParseErrorReport], None]] = None

    @classmethod
    def discover(cls, **kwargs) -> Optional["MermaidCliBackend"]:
        mmdc_bin = shutil.which("mmdc")
        if not mmdc_bin:
            return None
        return cls(mmdc_bin=mmdc_bin, **kwargs)

    def render(self, diagram_id: str, text: str) -> Optional[str]:
        """Render to SVG; returns the SVG text, or None when the hook took an error."""
        with tempfile.TemporaryDirectory(prefix="mend-mmdc-") as tmp:
            source = Path(tmp) / f"{diagram_id}.mmd"
            target = Path(tmp) / f"{diagram_id}.svg"
            source.write_text(text, encoding="utf-8")

            try:
                result = subprocess.run(
                    [self.mmdc_bin, "-i", str(source), "-o", str(target), "-q"],
                    capture_output=True,
                    text=True,
                    timeout=self.timeout,
                )
            except subprocess.TimeoutExpired:
                raise BackendFailure(f"mmdc timed out after {self.timeout:g}s")

            if result.returncode == 0 and target.exists():
                return target.read_text(encoding="utf-8")

            message = _extract_cli_error(result.stderr or result.stdout)

        if self.parse_error is not None:
            self.parse_error(ParseErrorReport(message=message))
            return None
        raise MermaidSyntaxError(message)


def resolve_backend(
    preference: str = "auto",
    mermaid_dir: Optional[Path] = None,
    logger: Optional[PipelineLogger] = None,
):
    """First available backend for the preference, or None."""
    if preference in ("auto", "node"):
        backend = NodeMermaidBackend.discover(mermaid_dir, logger=logger)
        if backend:
            return backend
    if preference in ("auto", "mmdc"):
        backend = MermaidCliBackend.discover(logger=logger)
        if backend:
            return backend
    return None
