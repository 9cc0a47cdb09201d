"""
Text helpers shared by the validation oracle and the correction client.

pre_normalize() is the light structural pass applied before every
validation and before building a correction prompt. It only touches
square-bracket node labels and is idempotent:
pre_normalize(pre_normalize(s)) == pre_normalize(s).
"""

import re
from typing import Optional

BR_TAG_RE = re.compile(r"<br\s*/?\s*>", re.IGNORECASE)

# One square-bracket label on a single line, no nested brackets.
LABEL_RE = re.compile(r"\[([^\[\]\n]*)\]")

# Escaped newline as written inside a Mermaid label (backslash + n).
ESCAPED_NEWLINE = "\\n"

# Shape decorators that live inside the brackets: [(db)], [/in/], [\out\]
SHAPE_OPENERS = "(/\\"
SHAPE_CLOSERS = ")/\\"

UNESCAPED_QUOTE_RE = re.compile(r'(?<!\\)"')

DIAGRAM_TYPES = (
    (re.compile(r"^sequenceDiagram\b", re.IGNORECASE), "sequenceDiagram"),
    (re.compile(r"^classDiagram\b", re.IGNORECASE), "classDiagram"),
    (re.compile(r"^erDiagram\b", re.IGNORECASE), "erDiagram"),
    (re.compile(r"^stateDiagram(?:-v2)?\b", re.IGNORECASE), "stateDiagram"),
    (re.compile(r"^gantt\b", re.IGNORECASE), "gantt"),
    (re.compile(r"^journey\b", re.IGNORECASE), "journey"),
    (re.compile(r"^pie\b", re.IGNORECASE), "pie"),
    (re.compile(r"^mindmap\b", re.IGNORECASE), "mindmap"),
    (re.compile(r"^timeline\b", re.IGNORECASE), "timeline"),
    (re.compile(r"^(?:flowchart|graph)\b", re.IGNORECASE), "graph"),
)

DIRECTIVE_LINE_RE = re.compile(r"^\s*%%\{.*\}%%\s*$")
COMMENT_LINE_RE = re.compile(r"^\s*%%")

SENTINEL_BEGIN = "BEGIN_MERMAID"
SENTINEL_END = "END_MERMAID"
SENTINEL_RE = re.compile(rf"{SENTINEL_BEGIN}\s*\n([\s\S]*?)\n{SENTINEL_END}")

FENCE_HEAD_RE = re.compile(r"^(?:```|~~~)[\w-]*[ \t]*\n?")
FENCE_TAIL_RE = re.compile(r"\n?(?:```|~~~)\s*$")


def _is_quoted(label: str) -> bool:
    return len(label) >= 2 and label.startswith('"') and label.endswith('"')


def _normalize_label(match: re.Match) -> str:
    inner = match.group(1)

    lead = trail = ""
    body = inner
    if len(inner) >= 2 and inner[0] in SHAPE_OPENERS and inner[-1] in SHAPE_CLOSERS:
        lead, body, trail = inner[0], inner[1:-1], inner[-1]

    body = BR_TAG_RE.sub(lambda _: ESCAPED_NEWLINE, body)
    stripped = body.strip()
    if ESCAPED_NEWLINE in stripped and not _is_quoted(stripped):
        body = '"' + UNESCAPED_QUOTE_RE.sub(r'\\"', stripped) + '"'

    return f"[{lead}{body}{trail}]"


def pre_normalize(code: str) -> str:
    """Rewrite <br> inside [labels] to \\n and quote labels that carry one."""
    if not code:
        return code
    return LABEL_RE.sub(_normalize_label, code)


def normalize_surface(text: str) -> str:
    """Remove BOM/zero-width noise, fold dash look-alikes, drop trailing blanks."""
    text = text.replace("\ufeff", "")
    text = re.sub("[\u200b-\u200d\u2060]", "", text)
    text = re.sub("[\u2212\u2014\u2015]", "-", text)
    text = text.replace("\u3000", " ")
    return re.sub(r"[ \t]+$", "", text, flags=re.MULTILINE)


def strip_code_fences(text: str) -> str:
    text = text.strip()
    text = FENCE_HEAD_RE.sub("", text, count=1)
    text = FENCE_TAIL_RE.sub("", text, count=1)
    return text.strip()


def extract_from_sentinel(output: str) -> str:
    """Text between the first BEGIN_MERMAID/END_MERMAID pair, else the whole output."""
    match = SENTINEL_RE.search(output)
    return match.group(1).strip() if match else output.strip()


def sanitize_output(text: str) -> str:
    return pre_normalize(normalize_surface(strip_code_fences(text)))


def infer_diagram_type(code: str) -> Optional[str]:
    """Best-effort diagram type from the first declaration line."""
    for line in code.splitlines():
        stripped = line.strip()
        if not stripped or COMMENT_LINE_RE.match(stripped):
            continue
        for pattern, name in DIAGRAM_TYPES:
            if pattern.match(stripped):
                return name
        return None
    return None
