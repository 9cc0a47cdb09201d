"""
Prompt construction for Mermaid syntax repair.

The prompt is assembled from:
- a fixed header (role, grammar version, diagram-type hint, prohibitions,
  output discipline, design principles)
- remediation rules picked by an ordered trigger table: a rule is included
  only when its trigger matches the original code or the parser error
- universal rules that are always included
- an optional note about init directives
- a self-review checklist and three worked before/after examples
- the error message and the original code
- when sentinels are on, the two marker lines the answer must sit between

build_prompt() is pure: identical inputs give an identical string.
"""

import re
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Sequence, Union

from infra.mermaid.normalize import SENTINEL_BEGIN, SENTINEL_END


@dataclass(frozen=True)
class BuildOptions:
    mermaid_version: str = "v10.x"
    diagram_hint: Optional[str] = None
    enforce_code_only: bool = True
    use_sentinel: bool = True


Trigger = Callable[[str, str, BuildOptions], bool]
RuleText = Union[Sequence[str], Callable[[BuildOptions], Sequence[str]]]


@dataclass(frozen=True)
class PromptRule:
    name: str
    trigger: Trigger
    text: RuleText

    def lines(self, options: BuildOptions) -> List[str]:
        text = self.text(options) if callable(self.text) else self.text
        return list(text)


def _code_matches(pattern: str) -> Trigger:
    compiled = re.compile(pattern, re.IGNORECASE)
    return lambda code, error, options: bool(compiled.search(code))


def _error_mentions(*needles: str) -> Trigger:
    return lambda code, error, options: any(n in error for n in needles)


def _unknown_type_lines(options: BuildOptions) -> List[str]:
    if options.diagram_hint:
        return [f"- Keep the diagram type strictly as {options.diagram_hint}."]
    return ["- Default to a flowchart: start the diagram with `flowchart TD`."]


# Evaluated in order; `error` is the lower-cased parser message.
RULES: List[PromptRule] = [
    PromptRule(
        "html-break",
        lambda code, error, options: bool(re.search(r"<br\s*/?>", code, re.IGNORECASE)) or "html" in error,
        (
            "- Use \\n instead of HTML for line breaks inside nodes, and wrap the whole label in double quotes.",
            "  - Wrong: A[Title<br>Break]",
            '  - Right: A["Title\\nBreak"]',
            "- Avoid relying on htmlLabels. Disable them with an init directive only when needed (see below).",
        ),
    ),
    PromptRule(
        "lexical",
        _error_mentions("lexical error", "unrecognized"),
        (
            "- Remove or escape unknown and full-width symbols (full-width hyphens, middle dots, zero-width characters).",
            "- Delete stray ``` code fences.",
        ),
    ),
    PromptRule(
        "parse",
        _error_mentions("parse error", "expecting"),
        (
            "- Put one statement per line (nodes, edges, subgraph, classDef, click and so on).",
            "- Check that brackets pair up: [ ], ( ), { }.",
        ),
    ),
    PromptRule(
        "unknown-diagram-type",
        _error_mentions("unknown diagram type", "could not find diagram type"),
        _unknown_type_lines,
    ),
    PromptRule(
        "subgraph",
        _code_matches(r"subgraph"),
        ("- Close every subgraph with `end`. `direction` must be one of TB, LR, BT, RL.",),
    ),
    PromptRule(
        "class-definitions",
        _code_matches(r"classDef|class\s+[^\n]+"),
        (
            "- Declare `classDef` before any `class` assignment that uses it.",
            "- Keep `classDef` names and `class` target IDs to letters, digits and underscores.",
        ),
    ),
    PromptRule(
        "click",
        _code_matches(r"click\s+"),
        ('- `click` syntax is `click ID "URL" "Tooltip"`; quote anything with spaces or symbols.',),
    ),
    PromptRule(
        "sequence",
        _code_matches(r"sequenceDiagram"),
        (
            "- Use sequence arrows such as `->`, `->>`, `-->>` (`-->` belongs to flowcharts).",
            "- Keep `participant` declarations consistent between IDs and aliases.",
        ),
    ),
    PromptRule(
        "class-diagram",
        _code_matches(r"classDiagram"),
        ("- Follow classDiagram relation syntax exactly (for example `ClassA <|-- ClassB`).",),
    ),
    PromptRule(
        "er-diagram",
        _code_matches(r"erDiagram"),
        ("- Follow erDiagram key and relationship syntax exactly (for example `USER ||--o{ ORDER : places`).",),
    ),
    PromptRule(
        "gantt",
        _code_matches(r"gantt"),
        ("- In gantt charts keep `dateFormat` consistent with `title`/`section` entries and use one date/duration format.",),
    ),
]

UNIVERSAL_RULES = (
    '- Escape `"` inside labels as `\\"`.',
    "- Never rename node IDs (minimal fix).",
    "- Preserve meaning; split or merge statements only where the grammar requires it.",
)

PROHIBITIONS = (
    "Prohibited:",
    "- Changing the meaning or structure of the diagram (no needless changes to node IDs, edge count or subgraph layout).",
    "- Inserting placeholders (TODO, ???, ...).",
    "- Reordering or decorating for looks.",
)

DESIGN_PRINCIPLES = (
    "Design principles:",
    "- Minimal-diff policy: keep IDs and structure wherever possible.",
    "- Eliminating the grammar violation comes first.",
    "- Do not over-complete unclear parts; add only what the grammar needs.",
)

INIT_NOTE = (
    "Init directives only when needed:",
    "- Limit them to things like removing the HTML dependency, on a single line at the very top, e.g.",
    "  `%%{init: {'flowchart': {'htmlLabels': false}}}%%`",
)

CHECKLIST = (
    "Checklist (self-review):",
    "- Is the diagram type declaration correct? (`flowchart TD`, `sequenceDiagram`, `classDiagram`, ...)",
    "- Is every statement on its own line?",
    "- Do all brackets pair up ([ ], ( ), { })?",
    "- Does every `subgraph` have an `end`?",
    "- Is every `classDef` defined before it is used?",
    '- Are quotes escaped correctly (`"` -> `\\"`)?',
    "- Is the HTML dependency gone? (\\n plus double quotes)",
)

FEW_SHOT_EXAMPLES = (
    """[broken -> fixed 1]
(broken)
flowchart TD
  A[Title<br>Break] --> B[Next]
(fixed)
flowchart TD
  A["Title\\nBreak"] --> B["Next"]""",
    """[broken -> fixed 2]
(broken)
flowchart LR
  subgraph Group
    X-->Y
  %% missing end
(fixed)
flowchart LR
  subgraph Group
    X --> Y
  end""",
    """[broken -> fixed 3]
(broken)
sequenceDiagram
  participant A as User
  participant B as Service
  A-->>B: request
  Note over A,B: mixes in -->
(fixed)
sequenceDiagram
  participant A as User
  participant B as Service
  A->>B: request""",
)

OUTPUT_PLACEHOLDER = "(fixed code only goes here)"


def matching_rules(original: str, error_message: str, options: BuildOptions) -> List[PromptRule]:
    """Rules whose trigger fires, in table order."""
    error = (error_message or "").lower()
    return [rule for rule in RULES if rule.trigger(original, error, options)]


def _output_discipline(enforce_code_only: bool) -> List[str]:
    if not enforce_code_only:
        return ["Output rules: code only wherever possible."]
    return [
        "Output rules:",
        "- Output Mermaid code **only**. No explanations, no ``` fences, no extra text.",
        "- No blank lines at the start or end.",
    ]


def build_prompt(original: str, error_message: str, options: Optional[BuildOptions] = None) -> str:
    options = options or BuildOptions()

    fixes: List[str] = []
    for rule in matching_rules(original, error_message, options):
        fixes.extend(rule.lines(options))
    fixes.extend(UNIVERSAL_RULES)

    if options.diagram_hint:
        hint = [
            f"Diagram type hint: {options.diagram_hint}",
            f"Keep the diagram type {options.diagram_hint}; do not convert it to another type.",
        ]
    else:
        hint = ["Diagram type hint: not given (default to flowchart TD when unclear)"]

    header = [
        "You are an assistant dedicated to repairing Mermaid syntax.",
        f"Assume Mermaid {options.mermaid_version} grammar.",
        *hint,
        "Goal: resolve the syntax error and return only **parseable** Mermaid code that keeps the original intent.",
        *PROHIBITIONS,
        *_output_discipline(options.enforce_code_only),
        "",
        *DESIGN_PRINCIPLES,
        "",
        "Common fixes:",
        *fixes,
        "",
        *INIT_NOTE,
        "",
        *CHECKLIST,
        "",
        "Examples (broken -> fixed):",
        *FEW_SHOT_EXAMPLES,
    ]

    body = [
        "",
        "[Error message]",
        error_message or "(none)",
        "",
        "[Original code]",
        original,
    ]

    parts = header + body
    if options.use_sentinel:
        parts += [
            "",
            "[Output format] Output **Mermaid code only** between the following two lines.",
            SENTINEL_BEGIN,
            OUTPUT_PLACEHOLDER,
            SENTINEL_END,
        ]
    return "\n".join(parts)


class PromptBuilder:
    def __init__(self, options: Optional[BuildOptions] = None):
        self.options = options or BuildOptions()

    def build(self, original: str, error_message: str, diagram_hint: Optional[str] = None) -> str:
        options = self.options
        if diagram_hint and diagram_hint != options.diagram_hint:
            options = replace(options, diagram_hint=diagram_hint)
        return build_prompt(original, error_message, options)
