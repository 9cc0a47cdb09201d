"""
Block extraction: find fenced ```mermaid / ~~~mermaid regions.

Works line by line so offsets stay exact for \n and \r\n documents alike.
A fence opens with 3+ backticks or tildes followed by the mermaid tag and
closes with the same character, at least as many times, indented no deeper
than the opener, with nothing but whitespace after it. Fences for other
languages are skipped whole, so a mermaid fence nested inside one is not
a block.
"""

import re
from typing import Iterator, List, Optional, Tuple

from pipeline.mermaid_repair.schemas import Block

LANGUAGE = "mermaid"

FENCE_OPEN_RE = re.compile(r"^([ \t]*)(`{3,}|~{3,})(.*)$")
LANG_RE = re.compile(rf"^[ \t]*{LANGUAGE}(?=\s|$)(.*)$", re.IGNORECASE)

# (line_start, content, content_end, next_line_start)
Line = Tuple[int, str, int, int]


def _iter_lines(text: str) -> Iterator[Line]:
    pos = 0
    length = len(text)
    while pos < length:
        nl = text.find("\n", pos)
        if nl == -1:
            yield pos, text[pos:], length, length
            return
        end = nl - 1 if nl > pos and text[nl - 1] == "\r" else nl
        yield pos, text[pos:end], end, nl + 1
        pos = nl + 1


def _indent_width(indent: str) -> int:
    return len(indent.expandtabs(4))


def _closes(content: str, char: str, min_len: int, max_indent: int) -> bool:
    match = FENCE_OPEN_RE.match(content)
    if not match:
        return False
    indent, fence, rest = match.groups()
    return (
        fence[0] == char
        and len(fence) >= min_len
        and _indent_width(indent) <= max_indent
        and not rest.strip()
    )


def extract_blocks(document: str) -> List[Block]:
    """Return every mermaid block in ascending offset order (possibly empty)."""
    blocks: List[Block] = []
    lines = list(_iter_lines(document))
    i = 0

    while i < len(lines):
        _, content, _, _ = lines[i]
        opener = FENCE_OPEN_RE.match(content)
        if not opener:
            i += 1
            continue

        indent, fence, rest = opener.groups()
        char, fence_len, max_indent = fence[0], len(fence), _indent_width(indent)
        # A backtick fence's info string may not contain backticks.
        if char == "`" and "`" in rest:
            i += 1
            continue

        close_at: Optional[int] = None
        for j in range(i + 1, len(lines)):
            if _closes(lines[j][1], char, fence_len, max_indent):
                close_at = j
                break

        if close_at is None:
            # Unclosed fence runs to end of document; nothing after it is a block.
            break

        lang = LANG_RE.match(rest)
        body = lines[i + 1:close_at]
        start = body[0][0] if body else 0
        end = body[-1][2] if body else 0
        # Blank fences have nothing to validate.
        if lang and body and document[start:end].strip():
            blocks.append(Block(
                start_offset=start,
                end_offset=end,
                fence_open=content,
                fence_close=lines[close_at][1],
                info=lang.group(1).strip(),
                code=document[start:end],
                index=len(blocks),
            ))

        i = close_at + 1

    return blocks


class BlockExtractor:
    """Stateless; extract() may be called on any number of documents."""

    def extract(self, document: str) -> List[Block]:
        return extract_blocks(document)
