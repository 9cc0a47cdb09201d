"""
mend validate-all / mend fix-all - every Markdown file under a directory.
"""

import sys

from rich.console import Console
from rich.table import Table

from infra.llm.errors import ServiceError
from pipeline.mermaid_repair import (
    OracleUnavailableError,
    find_markdown_files,
    fix_documents,
    validate_documents,
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


def cmd_validate_all(args):
    _, settings = load_settings_for(args)
    logger = make_logger(settings, "validate-all", verbose=args.verbose)
    documents = find_markdown_files(args.root)

    try:
        oracle = build_oracle(settings, logger)
        reports = validate_documents(documents, oracle)
    except OracleUnavailableError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(2)
    finally:
        logger.close()

    total = sum(r.total for r in reports)
    invalid = sum(len(r.invalid) for r in reports)
    if invalid == 0:
        console.print(f"[green]✓ {total} blocks in {len(documents)} files, all valid[/green]")
        return

    print_validation_table(console, reports)
    files = sum(1 for r in reports if r.invalid)
    console.print(f"\n✗ {invalid}/{total} blocks invalid across {files} files")
    sys.exit(1)


def _confirm(count: int) -> bool:
    print(f"⚠️  This will rewrite broken mermaid blocks in up to {count} files.")
    try:
        response = input("   Are you sure? (yes/no): ").strip().lower()
    except (EOFError, KeyboardInterrupt):
        print()
        return False
    return response in ['yes', 'y']


def cmd_fix_all(args):
    manager, settings = load_settings_for(args)
    if not settings.resolve_api_key():
        console.print("[red]✗ Gemini API key is not set[/red]")
        sys.exit(2)

    logger = make_logger(settings, "fix-all", verbose=args.verbose)
    documents = find_markdown_files(args.root)
    if not documents:
        console.print("No Markdown files found.")
        return

    try:
        oracle = build_oracle(settings, logger)
        orchestrator = build_orchestrator(settings, oracle, logger)
        report = fix_documents(
            documents,
            oracle,
            orchestrator,
            max_attempts=settings.batch_max_attempts,
            confirm=None if args.yes else _confirm,
            policy=build_policy(manager, settings, console, force_auto=args.auto),
            logger=logger,
        )
    except OracleUnavailableError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(2)
    except ServiceError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(2)
    except KeyboardInterrupt:
        console.print("\n⚠️  Interrupted. The file being processed was not written.")
        sys.exit(130)
    finally:
        logger.close()

    if report.aborted and report.abort_kind == "declined":
        print("Cancelled.")
        return

    table = Table(title="Mermaid fixes")
    table.add_column("Document", style="cyan")
    table.add_column("Broken", justify="right")
    table.add_column("Fixed", justify="right", style="green")
    table.add_column("Skipped", justify="right")
    table.add_column("Failed", justify="right", style="red")
    for doc in report.documents:
        if doc.broken_blocks:
            table.add_row(doc.document, str(doc.broken_blocks), str(doc.fixed), str(doc.skipped), str(doc.failed))
    if table.row_count:
        console.print(table)

    console.print(
        f"\nFixed {report.fixed} blocks, skipped {report.skipped}, {report.failed} failed, "
        f"{report.documents_written} files updated"
    )

    if report.aborted:
        console.print(
            f"[red]✗ Aborted at {report.abort_document} ({report.abort_kind}): {report.abort_reason}[/red]"
        )
        sys.exit(2)
    if report.failed:
        sys.exit(1)


def setup_batch_parser(subparsers):
    validate_parser = subparsers.add_parser(
        'validate-all',
        help='Check mermaid blocks in every Markdown file under a directory'
    )
    validate_parser.add_argument('root', nargs='?', default='.', help='Directory (default: .)')
    validate_parser.add_argument('--backend', choices=['auto', 'node', 'mmdc'], help='Parser backend')
    validate_parser.add_argument('--verbose', '-v', action='store_true', help='Log to stderr')
    validate_parser.set_defaults(func=cmd_validate_all)

    fix_parser = subparsers.add_parser(
        'fix-all',
        help='Fix broken mermaid blocks in every Markdown file under a directory'
    )
    fix_parser.add_argument('root', nargs='?', default='.', help='Directory (default: .)')
    fix_parser.add_argument('--model', help='Gemini model (default: from config)')
    fix_parser.add_argument('--attempts', type=int, help='Correction attempts per block')
    fix_parser.add_argument('--backend', choices=['auto', 'node', 'mmdc'], help='Parser backend')
    fix_parser.add_argument('--yes', '-y', action='store_true', help='Skip confirmation prompt')
    fix_parser.add_argument('--auto', action='store_true', help='Apply validated fixes without preview')
    fix_parser.add_argument('--verbose', '-v', action='store_true', help='Log to stderr')
    fix_parser.set_defaults(func=cmd_fix_all)
