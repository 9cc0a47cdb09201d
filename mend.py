#!/usr/bin/env python3
"""
mend CLI - Find and fix broken Mermaid diagrams in Markdown

Commands:
  Configuration:
    mend init                    Create the settings file
    mend config show|set|unset   Inspect or change settings

  Single Document:
    mend validate <file>         Report mermaid blocks that do not parse
    mend fix <file>              Repair broken blocks (preview per block)

  Directories:
    mend validate-all [dir]      Validate every Markdown file
    mend fix-all [dir]           Repair every Markdown file (asks first)
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from cli import main


if __name__ == '__main__':
    main()
