"""
Document accessors and the cancellation context.

The repair loop only needs to read a document's full text, write a new
full text, and tell whether the document changed since it was read.
FileDocument does that for Markdown files on disk; InMemoryDocument is a
plain buffer used by tests and callers that manage their own storage.
"""

import hashlib
from pathlib import Path
from typing import List, Optional, Union

from pipeline.mermaid_repair.errors import ContextChangedError

MARKDOWN_SUFFIXES = (".md", ".markdown")


def fingerprint(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class InMemoryDocument:
    def __init__(self, name: str, text: str):
        self.name = name
        self.text = text
        self.writes = 0

    def read(self) -> str:
        return self.text

    def write(self, text: str) -> None:
        self.text = text
        self.writes += 1

    def fingerprint(self) -> str:
        return fingerprint(self.text)


class FileDocument:
    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.name = str(self.path)

    def read(self) -> str:
        # newline="" keeps \r\n intact so offsets match what is written back.
        with open(self.path, "r", encoding="utf-8", newline="") as f:
            return f.read()

    def write(self, text: str) -> None:
        with open(self.path, "w", encoding="utf-8", newline="") as f:
            f.write(text)

    def fingerprint(self) -> str:
        return fingerprint(self.read())


def find_markdown_files(root: Union[str, Path]) -> List[FileDocument]:
    """Every Markdown file under root, sorted by path; hidden directories skipped."""
    root = Path(root)
    if root.is_file():
        return [FileDocument(root)]

    docs = []
    for path in sorted(root.rglob("*")):
        if path.suffix.lower() not in MARKDOWN_SUFFIXES or not path.is_file():
            continue
        if any(part.startswith(".") for part in path.relative_to(root).parts[:-1]):
            continue
        docs.append(FileDocument(path))
    return docs


class RepairContext:
    """Cancellation flag plus document-identity checks between blocks."""

    def __init__(self):
        self.cancelled = False
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        self.cancelled = True
        self.reason = reason

    def ensure_active(self, document_name: str = "") -> None:
        if self.cancelled:
            raise ContextChangedError(
                f"Repair cancelled: {self.reason}", document=document_name
            )

    def ensure_current(self, document, expected: str) -> None:
        """Raise ContextChangedError if cancelled or the document no longer matches."""
        self.ensure_active(document.name)
        if document.fingerprint() != expected:
            raise ContextChangedError(
                f"{document.name} changed during repair; stopping without writing",
                document=document.name,
            )
