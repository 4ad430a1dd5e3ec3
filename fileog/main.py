"""
fileog - Command Line Interface
===============================

Scan, classify and organize a directory, and undo or inspect past
operation batches.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from fileog.actions import OperationStatus, OperationType
from fileog.service import FileOrganizer
from fileog.utils.exceptions import FileOrganizerError
from fileog.utils.logging_config import LoggingConfig, get_logger, setup_logging
from fileog.utils.progress import ProgressChannel, ProgressEvent

logger = get_logger(__name__)


def _print_progress(event: ProgressEvent) -> None:
    if event.event == "processing" and event.total_count:
        print(f"  [{event.completed_count}/{event.total_count}] {event.current_file or ''}", file=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fileog",
        description="fileog - Organize files by rules and language models, with undo"
    )
    parser.add_argument('--config-dir', type=Path, help='Directory holding settings.yaml and categories.yaml')
    parser.add_argument('--data-dir', type=Path, help='Directory holding history and backups')
    parser.add_argument('--verbose', '-v', action='store_true', help='Show debug logging')

    commands = parser.add_subparsers(dest='command', required=True)

    scan = commands.add_parser('scan', help='List the files in a directory')
    scan.add_argument('path', type=Path)
    scan.add_argument('--no-recursive', action='store_true', help='Do not descend into subdirectories')
    scan.add_argument('--hidden', action='store_true', help='Include hidden files')

    classify = commands.add_parser('classify', help='Show the category of every file in a directory')
    classify.add_argument('path', type=Path)
    classify.add_argument('--no-recursive', action='store_true', help='Do not descend into subdirectories')

    organize = commands.add_parser('organize', help='Move files into their category folders')
    organize.add_argument('path', type=Path)
    organize.add_argument('--copy', action='store_true', help='Copy instead of move')
    organize.add_argument('--dry-run', action='store_true', help='Only show the plan')
    organize.add_argument('--target', type=Path, help='Root for category folders (default: PATH)')
    organize.add_argument('--no-recursive', action='store_true', help='Do not descend into subdirectories')

    undo = commands.add_parser('undo', help='Undo the most recent operation batches')
    undo.add_argument('steps', type=int, nargs='?', default=1)

    history = commands.add_parser('history', help='Show recent operation batches')
    history.add_argument('--limit', '-n', type=int, default=10)

    commands.add_parser('categories', help='List configured categories')
    commands.add_parser('test-llm', help='Check the configured language model')

    return parser


def cmd_scan(organizer: FileOrganizer, args: argparse.Namespace) -> int:
    files = organizer.scan_directory(args.path, recursive=not args.no_recursive, include_hidden=args.hidden)
    for descriptor in files:
        print(f"{descriptor.size:>12}  {descriptor.path}")
    print(f"\n{len(files)} files")
    return 0


def cmd_classify(organizer: FileOrganizer, args: argparse.Namespace) -> int:
    files = organizer.scan_directory(args.path, recursive=not args.no_recursive)
    results = organizer.classify_files(files, progress=ProgressChannel(_print_progress))
    for descriptor, result in zip(files, results):
        category = result.suggested_category or "?"
        print(f"  {descriptor.name} -> {category} ({result.confidence:.0%}) {result.reasoning}")
    return 0


def cmd_organize(organizer: FileOrganizer, args: argparse.Namespace) -> int:
    root = args.path.expanduser().absolute()
    files = organizer.scan_directory(root, recursive=not args.no_recursive)
    if not files:
        print("Nothing to organize.")
        return 0

    results = organizer.classify_files(files, progress=ProgressChannel(_print_progress))
    operation_type = OperationType.COPY if args.copy else OperationType.MOVE
    planned = organizer.plan_operations(
        files,
        results,
        operation_type=operation_type,
        base_directory=args.target or root,
    )
    if not planned:
        print("Everything is already organized.")
        return 0

    if args.dry_run:
        print(f"\nPlan ({len(planned)} operations):\n")
        for op in planned:
            print(f"  {op.operation_type.value}: {op.source} -> {op.destination}")
        return 0

    operations = organizer.execute_operations(
        planned,
        progress=ProgressChannel(_print_progress),
        description=f"Organize {root}",
    )
    failed = [op for op in operations if op.status == OperationStatus.FAILED]
    for op in failed:
        print(f"  ✗ {op.source_path}: {op.error}")
    print(f"✓ {len(operations) - len(failed)} of {len(operations)} operations completed")
    return 1 if failed else 0


def cmd_undo(organizer: FileOrganizer, args: argparse.Namespace) -> int:
    result = organizer.undo_operations(args.steps)
    if result.steps_reversed == 0:
        print("✗ Nothing to undo")
        return 0
    for failure in result.failures:
        print(f"  ✗ {failure.operation.source_path}: {failure.error.message}")
    print(f"✓ Undid {len(result.undone)} operations in {result.steps_reversed} batches")
    return 1 if result.failures else 0


def cmd_history(organizer: FileOrganizer, args: argparse.Namespace) -> int:
    batches = organizer.get_operation_history(args.limit)
    if not batches:
        print("No history yet.")
        return 0
    print(f"\nRecent History ({len(batches)} batches):\n")
    for batch in batches:
        print(f"  [{batch.created_at[:16]}] {batch.description} ({batch.undo_state.value})")
        for op in batch.operations:
            target = op.destination_path or ""
            print(f"      {op.status.value:<11} {op.operation_type.value:<6} {op.source_path} {target}")
    return 0


def cmd_categories(organizer: FileOrganizer, args: argparse.Namespace) -> int:
    categories = organizer.get_categories()
    print(f"\nCategories ({len(categories)}):\n")
    for category in categories:
        rules = ", ".join(f"{r.rule_type.value}={r.pattern}" for r in category.sorted_rules())
        print(f"  {category.id:<12} {category.name:<12} -> {category.target_folder}")
        if rules:
            print(f"      {rules}")
    return 0


def cmd_test_llm(organizer: FileOrganizer, args: argparse.Namespace) -> int:
    print(organizer.test_llm_connection())
    return 0


COMMANDS = {
    'scan': cmd_scan,
    'classify': cmd_classify,
    'organize': cmd_organize,
    'undo': cmd_undo,
    'history': cmd_history,
    'categories': cmd_categories,
    'test-llm': cmd_test_llm,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point with CLI support."""
    args = build_parser().parse_args(argv)

    organizer = FileOrganizer(config_dir=args.config_dir, data_dir=args.data_dir)
    setup_logging(LoggingConfig(
        level="DEBUG" if args.verbose else "WARNING",
        log_dir=organizer.data_dir / "logs",
    ))

    try:
        return COMMANDS[args.command](organizer, args)
    except FileOrganizerError as e:
        logger.debug(f"Command failed: {e.to_dict()}")
        print(f"✗ {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
