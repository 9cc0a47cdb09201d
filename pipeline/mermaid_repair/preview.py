"""
Preview gate: decide per block whether a validated fix is written.

A gate is any callable (original, proposed, block) -> PreviewDecision.
ApplyPolicy wraps one with the configured apply mode and switches to
auto-apply for the rest of the run once the user picks ACCEPT_ALL.
"""

import difflib
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.text import Text

from pipeline.mermaid_repair.schemas import Block


class PreviewDecision(str, Enum):
    ACCEPT = "accept"
    SKIP = "skip"
    ACCEPT_ALL = "accept_all"


PreviewGate = Callable[[str, str, Block], PreviewDecision]


@dataclass
class DiffLine:
    type: str  # unchanged | removed | added
    content: str
    line_number: Optional[int] = None


def calculate_diff(original: str, proposed: str) -> List[DiffLine]:
    """Line diff; removed/unchanged carry original line numbers, added carry new ones."""
    old = original.split("\n")
    new = proposed.split("\n")
    lines: List[DiffLine] = []

    matcher = difflib.SequenceMatcher(a=old, b=new, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            lines.extend(DiffLine("unchanged", old[i], i + 1) for i in range(i1, i2))
            continue
        if tag in ("replace", "delete"):
            lines.extend(DiffLine("removed", old[i], i + 1) for i in range(i1, i2))
        if tag in ("replace", "insert"):
            lines.extend(DiffLine("added", new[j], j + 1) for j in range(j1, j2))
    return lines


DIFF_STYLES = {
    "unchanged": ("  ", "dim"),
    "removed": ("- ", "red"),
    "added": ("+ ", "green"),
}


def render_diff(original: str, proposed: str) -> Text:
    text = Text()
    for line in calculate_diff(original, proposed):
        prefix, style = DIFF_STYLES[line.type]
        number = f"{line.line_number:>4} " if line.line_number else "     "
        text.append(f"{number}{prefix}{line.content}\n", style=style)
    return text


def auto_accept(original: str, proposed: str, block: Block) -> PreviewDecision:
    return PreviewDecision.ACCEPT


class ConsolePreviewGate:
    """Shows a colored diff and asks replace / skip / auto-apply."""

    CHOICES = {"y": PreviewDecision.ACCEPT, "n": PreviewDecision.SKIP, "a": PreviewDecision.ACCEPT_ALL}

    def __init__(self, console: Optional[Console] = None, document_name: str = ""):
        self.console = console or Console()
        self.document_name = document_name

    def __call__(self, original: str, proposed: str, block: Block) -> PreviewDecision:
        title = f"Block {block.index + 1}"
        if self.document_name:
            title = f"{self.document_name}: {title}"
        self.console.print(Panel(render_diff(original, proposed), title=title, expand=False))

        answer = Prompt.ask(
            "Replace? [y] replace  [n] skip  [a] replace and auto-apply from now on",
            choices=list(self.CHOICES),
            default="y",
            console=self.console,
        )
        return self.CHOICES[answer]


class ApplyPolicy:
    """Apply mode plus the preview gate used while in confirm mode.

    on_auto_apply runs once, when the user switches to auto mode from the
    preview (used to persist apply_mode=auto).
    """

    def __init__(
        self,
        mode: str = "confirm",
        gate: Optional[PreviewGate] = None,
        on_auto_apply: Optional[Callable[[], None]] = None,
    ):
        self.mode = mode
        self.gate = gate or auto_accept
        self.on_auto_apply = on_auto_apply

    def begin_document(self, name: str) -> None:
        if isinstance(self.gate, ConsolePreviewGate):
            self.gate.document_name = name

    def accept(self, original: str, proposed: str, block: Block) -> bool:
        if self.mode == "auto":
            return True

        decision = self.gate(original, proposed, block)
        if decision == PreviewDecision.ACCEPT_ALL:
            self.mode = "auto"
            if self.on_auto_apply is not None:
                self.on_auto_apply()
            return True
        return decision == PreviewDecision.ACCEPT
