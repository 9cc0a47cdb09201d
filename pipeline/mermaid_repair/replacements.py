from typing import Iterable, List

from pipeline.mermaid_repair.errors import ReplacementPreconditionError
from pipeline.mermaid_repair.schemas import Replacement


def check_replacements(text: str, replacements: Iterable[Replacement]) -> List[Replacement]:
    """Return the replacements sorted by descending start after checking bounds and overlap."""
    ordered = sorted(replacements, key=lambda r: (r.start, r.end), reverse=True)
    length = len(text)

    upper = length
    for rep in ordered:
        if not 0 <= rep.start <= rep.end <= length:
            raise ReplacementPreconditionError(
                f"Replacement span [{rep.start}, {rep.end}) is outside the document (length {length})"
            )
        if rep.end > upper:
            raise ReplacementPreconditionError(
                f"Replacement span [{rep.start}, {rep.end}) overlaps a later span starting at {upper}"
            )
        upper = rep.start

    return ordered


def apply_replacements(text: str, replacements: Iterable[Replacement]) -> str:
    """Splice every replacement into text.

    Offsets refer to the original text. Applying from the highest start down
    keeps every lower span where it was.
    """
    for rep in check_replacements(text, replacements):
        text = text[:rep.start] + rep.text + text[rep.end:]
    return text


class ReplacementApplier:
    def apply(self, text: str, replacements: Iterable[Replacement]) -> str:
        return apply_replacements(text, replacements)
