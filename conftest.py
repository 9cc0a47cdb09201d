"""
Pytest configuration for project root.

Ensures project modules can be imported in tests.
Provides global fixtures for settings isolation.
"""

import sys
import pytest
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))


@pytest.fixture
def mend_home(tmp_path, monkeypatch):
    """Isolated settings home; nothing under ~/.mend is touched."""
    home = tmp_path / "mend-home"
    monkeypatch.setenv("MEND_HOME", str(home))
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    return home


@pytest.fixture
def sample_markdown():
    """Markdown with one valid and one broken mermaid block plus a python fence."""
    return (
        "# Design\n"
        "\n"
        "```mermaid\n"
        "flowchart TD\n"
        '  A["Start"] --> B["End"]\n'
        "```\n"
        "\n"
        "```python\n"
        "print('not a diagram')\n"
        "```\n"
        "\n"
        "```mermaid\n"
        "flowchart LR\n"
        "  X[Title<br>Break] --> Y[Next]\n"
        "```\n"
    )
