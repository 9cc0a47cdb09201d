import re
from typing import Optional

# %%{init: {...}}%% or %%{initialize: {...}}%%
INIT_DIRECTIVE_RE = re.compile(r"^%%\{\s*init(?:ialize)?\s*:", re.IGNORECASE)


def find_init_directive(code: str) -> Optional[str]:
    """First init directive line, verbatim (without its line ending)."""
    for line in code.splitlines():
        if INIT_DIRECTIVE_RE.match(line.strip()):
            return line
    return None


def preserve_init_directive(original: str, fixed: str, enabled: bool = True) -> str:
    """Re-attach the original init directive when the fix dropped it.

    A directive already present in `fixed` wins and is left untouched.
    """
    if not enabled:
        return fixed
    directive = find_init_directive(original)
    if directive is None or find_init_directive(fixed) is not None:
        return fixed
    newline = "\r\n" if "\r\n" in original else "\n"
    return f"{directive}{newline}{fixed}"
