import argparse
import cli.config
import cli.repair
from cli.batch import setup_batch_parser


def create_parser():
    parser = argparse.ArgumentParser(
        prog='mend',
        description='mend - Find and fix broken Mermaid diagrams in Markdown',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Configuration (run first!)
  mend init                               # Create ~/.mend/config.yaml
  mend config show                        # Show current settings
  mend config set gemini_model gemini-2.5-flash
  mend config set apply_mode auto
  mend config unset gemini_model         # Back to the default

  # One document
  mend validate notes/design.md
  mend fix notes/design.md                # Preview each fix
  mend fix notes/design.md --auto --attempts 3

  # Every Markdown file under a directory
  mend validate-all ~/vault
  mend fix-all ~/vault --yes
"""
    )
    parser.add_argument(
        '--home',
        help='Settings directory (default: $MEND_HOME or ~/.mend)'
    )

    subparsers = parser.add_subparsers(dest='command', help='Command')
    subparsers.required = True

    cli.config.setup_parser(subparsers)
    cli.repair.setup_parser(subparsers)
    setup_batch_parser(subparsers)

    return parser


def main():
    parser = create_parser()
    args = parser.parse_args()
    args.func(args)
