"""
mend validate / mend fix - single document commands.
"""

import sys

from rich.console import Console

from infra.llm.errors import ServiceError
from pipeline.mermaid_repair import (
    ContextChangedError,
    FileDocument,
    OracleUnavailableError,
    fix_document,
    validate_document,
)
from cli.helpers import (
    build_oracle,
    build_orchestrator,
    build_policy,
    load_settings_for,
    make_logger,
    print_validation_table,
)

console = Console()


def cmd_validate(args):
    """Validate every mermaid block in one document."""
    _, settings = load_settings_for(args)
    logger = make_logger(settings, "validate", verbose=args.verbose)
    document = FileDocument(args.path)

    try:
        oracle = build_oracle(settings, logger)
        report = validate_document(document, oracle)
    except OracleUnavailableError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(2)
    except FileNotFoundError:
        console.print(f"[red]✗ File not found: {args.path}[/red]")
        sys.exit(1)
    finally:
        logger.close()

    if report.total == 0:
        console.print("No mermaid blocks found.")
        return

    if not report.invalid:
        console.print(f"[green]✓ All {report.total} mermaid blocks are valid[/green]")
        return

    print_validation_table(console, [report])
    console.print(f"\n✗ {len(report.invalid)}/{report.total} blocks have syntax errors")
    sys.exit(1)


def cmd_fix(args):
    """Fix broken mermaid blocks in one document."""
    manager, settings = load_settings_for(args)
    if not settings.resolve_api_key():
        console.print("[red]✗ Gemini API key is not set[/red]")
        console.print("  Set GEMINI_API_KEY or run: mend config set gemini_api_key <key>")
        sys.exit(2)

    logger = make_logger(settings, "fix", verbose=args.verbose)
    document = FileDocument(args.path)

    try:
        oracle = build_oracle(settings, logger)
        orchestrator = build_orchestrator(settings, oracle, logger)
        policy = build_policy(manager, settings, console, document.name, force_auto=args.auto)
        report = fix_document(
            document,
            oracle,
            orchestrator,
            max_attempts=settings.max_attempts,
            policy=policy,
            logger=logger,
        )
    except OracleUnavailableError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(2)
    except ServiceError as e:
        console.print(f"[red]✗ Aborted ({e.kind.value}): {e}[/red]")
        console.print("  No changes were written.")
        sys.exit(2)
    except ContextChangedError as e:
        console.print(f"[yellow]⚠️  {e}[/yellow]")
        sys.exit(1)
    except FileNotFoundError:
        console.print(f"[red]✗ File not found: {args.path}[/red]")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n⚠️  Interrupted. No changes were written.")
        sys.exit(130)
    finally:
        logger.close()

    if report.broken_blocks == 0:
        console.print(f"[green]✓ No syntax errors ({report.total_blocks} blocks)[/green]")
        return

    for result in report.results:
        if not result.success:
            console.print(
                f"[red]✗ Block {result.block_index + 1}: not fixed after {result.attempts} attempts[/red]"
                f" - {result.last_error}"
            )

    console.print(
        f"\nFixed {report.fixed}, skipped {report.skipped}, failed {report.failed} "
        f"of {report.broken_blocks} broken blocks"
    )
    if report.written:
        console.print(f"[green]✓ Updated {document.name}[/green]")
    if report.failed:
        sys.exit(1)


def setup_parser(subparsers):
    """Setup validate and fix command parsers."""
    validate_parser = subparsers.add_parser(
        'validate',
        help='Check mermaid blocks in a Markdown file'
    )
    validate_parser.add_argument('path', help='Markdown file')
    validate_parser.add_argument('--backend', choices=['auto', 'node', 'mmdc'], help='Parser backend')
    validate_parser.add_argument('--verbose', '-v', action='store_true', help='Log to stderr')
    validate_parser.set_defaults(func=cmd_validate)

    fix_parser = subparsers.add_parser(
        'fix',
        help='Fix broken mermaid blocks in a Markdown file'
    )
    fix_parser.add_argument('path', help='Markdown file')
    fix_parser.add_argument('--model', help='Gemini model (default: from config)')
    fix_parser.add_argument('--attempts', type=int, help='Correction attempts per block')
    fix_parser.add_argument('--backend', choices=['auto', 'node', 'mmdc'], help='Parser backend')
    fix_parser.add_argument('--auto', action='store_true', help='Apply validated fixes without preview')
    fix_parser.add_argument('--verbose', '-v', action='store_true', help='Log to stderr')
    fix_parser.set_defaults(func=cmd_fix)
