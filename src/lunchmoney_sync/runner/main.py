"""
CLI main entry point.
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

from ..categorization import MemoryStore, rebuild_memory_from_history
from ..config import Config, ConfigValidationError, create_default_config, load_config
from ..errors import PersistenceError, SyncError, redact
from ..services import build_client, sync

logger = logging.getLogger(__name__)

RECENT_MAPPINGS_SHOWN = 10


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="lunchmoney-sync",
        description="Sync bank movements into Lunch Money with automatic categorization",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # sync command
    sync_parser = subparsers.add_parser("sync", help="Sync recent movements into Lunch Money")
    sync_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Preview changes without sending them",
    )

    # memory commands
    subparsers.add_parser("show-memory", help="Display categorization memory stats")
    subparsers.add_parser("clear-memory", help="Clear all categorization memory")
    subparsers.add_parser("export-memory", help="Print memory in category_rules format")

    rebuild_parser = subparsers.add_parser(
        "rebuild-memory", help="Rebuild memory from Lunch Money transaction history"
    )
    rebuild_parser.add_argument(
        "--since",
        type=str,
        default=None,
        help="Learn from transactions since this date (YYYY-MM-DD)",
    )

    # init-config command
    subparsers.add_parser("init-config", help="Write a default config file")

    return parser


def _require_valid(config: Config, require_source: bool) -> None:
    errors = config.validate(require_source=require_source)
    if errors:
        raise ConfigValidationError(errors)


def cmd_sync(config: Config, dry_run: bool) -> int:
    """Run one sync."""
    print(f"🔄 Syncing {config.sync.source} movements into Lunch Money...")
    if dry_run:
        print("  ℹ️  DRY RUN mode - no changes will be made")

    result = sync(config, dry_run=dry_run)

    print()
    print("📊 Sync Results")
    print("=" * 40)
    print(f"  Status:     {result.state.value}")
    print(f"  Processed:  {result.processed}")
    print(f"  {'Would insert' if dry_run else 'Inserted'}: {result.inserted}")
    print(f"  Skipped:    {result.skipped}")
    print(f"  Errors:     {result.errors}")
    if result.batches:
        print(f"  Batches:    {result.batches}")
    print()

    if dry_run:
        for tx in result.preview:
            category = f" (Category ID: {tx.category_id})" if tx.category_id else ""
            print(f"  NEW {tx.date} {tx.formatted_amount} {tx.payee}{category}")

    if result.fatal_error:
        print(f"❌ Sync aborted: {result.fatal_error}")
        if result.retryable:
            print("   Temporary failure, safe to retry later")
    for error in result.insertion_errors:
        print(f"   ✗ Batch {error['batch_index'] + 1}: {error['error']}")
    for error in result.processing_errors:
        print(f"   ⚠ {error['transaction']['payee']}: {error['error']} ({error['step']})")

    if not result.success:
        print("⚠ Sync completed with errors")
        return 1
    print("✓ Sync completed successfully")
    return 0


def cmd_show_memory(config: Config) -> int:
    """Show memory statistics and recent mappings."""
    store = MemoryStore(config.memory_path)
    stats = store.stats()

    print("📊 Categorization Memory Statistics")
    print(f"  Total entries:     {stats.total_entries}")
    print(f"  Unique categories: {stats.unique_categories}")
    print(f"  Last modified:     {stats.last_modified or 'Never'}")

    if stats.categories:
        print("\n  Categories learned:")
        for category in stats.categories:
            print(f"    • {category}")

    memory = store.load()
    if memory:
        print("\n  Recent payee mappings:")
        for payee, category in list(memory.items())[-RECENT_MAPPINGS_SHOWN:]:
            print(f'    "{payee}" → "{category}"')
        if len(memory) > RECENT_MAPPINGS_SHOWN:
            print(f"    ... and {len(memory) - RECENT_MAPPINGS_SHOWN} more")

    return 0


def cmd_clear_memory(config: Config) -> int:
    """Clear persisted memory."""
    MemoryStore(config.memory_path).clear()
    print("✓ Categorization memory cleared successfully")
    return 0


def cmd_export_memory(config: Config) -> int:
    """Print memory as a category_rules block."""
    memory = MemoryStore(config.memory_path).load()
    print(json.dumps({"category_rules": memory}, indent=2, ensure_ascii=False))
    return 0


def cmd_rebuild_memory(config: Config, since: str | None) -> int:
    """Rebuild memory from Lunch Money history."""
    start = since or config.sync.history_start_date
    print(f"🔄 Rebuilding memory from Lunch Money transactions since {start}...")

    memory = rebuild_memory_from_history(
        build_client(config),
        MemoryStore(config.memory_path),
        since=start,
    )
    print(f"✓ Memory rebuilt successfully with {len(memory)} payee-category mappings")
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    if parsed.command == "init-config":
        create_default_config(parsed.config)
        print(f"✓ Wrote default config to {parsed.config}")
        return 0

    # Load config
    try:
        config = load_config(parsed.config)
    except Exception as e:
        print(f"❌ Failed to load config: {e}")
        return 1

    logger.debug("Loaded config: %s", redact(asdict(config.lunchmoney)))

    # Route to command
    try:
        if parsed.command == "sync":
            _require_valid(config, require_source=True)
            return cmd_sync(config, parsed.dry_run)
        elif parsed.command == "show-memory":
            return cmd_show_memory(config)
        elif parsed.command == "clear-memory":
            return cmd_clear_memory(config)
        elif parsed.command == "export-memory":
            return cmd_export_memory(config)
        elif parsed.command == "rebuild-memory":
            _require_valid(config, require_source=False)
            return cmd_rebuild_memory(config, parsed.since)
        else:
            parser.print_help()
            return 1
    except ConfigValidationError as e:
        print("❌ Invalid configuration:")
        for error in e.errors:
            print(f"   - {error}")
        return 1
    except PersistenceError as e:
        print(f"❌ Memory error: {e}")
        return 1
    except SyncError as e:
        print(f"❌ {parsed.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
