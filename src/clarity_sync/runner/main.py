"""
CLI main entry point.
"""

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path

from ..config import Config, create_default_config, load_config
from ..filemaker_client import FileMakerClient
from ..repository import CustomerRepository, SalesRepository
from ..schemas.window import SyncWindow
from ..services import FinancialSyncService, SyncResult
from ..staging import MemorySessionStorage, SqliteSessionStorage, SyncStagingStore
from ..supabase_client import SupabaseClient

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _add_window_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--start",
        type=str,
        help="First day of the window, YYYY-MM-DD (default: first day of this month)",
    )
    parser.add_argument(
        "--end",
        type=str,
        help="Last day of the window, YYYY-MM-DD (default: last day of this month)",
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="clarity-sync",
        description="Mirror FileMaker billing records into Supabase customer_sales",
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
    parser.add_argument(
        "--org",
        type=str,
        help="Organization id (overrides sync.organization_id)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # sync command
    sync_parser = subparsers.add_parser("sync", help="Review and apply changes for a window")
    _add_window_arguments(sync_parser)
    sync_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would change without writing",
    )
    sync_parser.add_argument(
        "--delete-orphaned",
        action="store_true",
        help="Delete customer_sales rows that have no billing record",
    )
    sync_parser.add_argument(
        "--pending-only",
        action="store_true",
        help="Apply the staged changes from the last review instead of re-fetching",
    )

    # status command
    status_parser = subparsers.add_parser("status", help="Report whether a window is in sync")
    _add_window_arguments(status_parser)

    # pending command
    pending_parser = subparsers.add_parser("pending", help="Show staged changes for a window")
    _add_window_arguments(pending_parser)
    pending_parser.add_argument(
        "--clear",
        action="store_true",
        help="Discard the staged changes",
    )
    pending_parser.add_argument(
        "--end-session",
        action="store_true",
        help="Discard the staged changes of every window in this session",
    )

    # backfill command
    backfill_parser = subparsers.add_parser(
        "backfill", help="Synchronize a range of months, one month at a time"
    )
    backfill_parser.add_argument(
        "--from",
        dest="from_month",
        type=str,
        required=True,
        help="First month, YYYY-MM",
    )
    backfill_parser.add_argument(
        "--to",
        dest="to_month",
        type=str,
        required=True,
        help="Last month, YYYY-MM",
    )
    backfill_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would change without writing",
    )
    backfill_parser.add_argument(
        "--delete-orphaned",
        action="store_true",
        help="Delete customer_sales rows that have no billing record",
    )

    # check command
    subparsers.add_parser("check", help="Test the FileMaker connection")

    # init-config command
    subparsers.add_parser("init-config", help="Write a default config file")

    return parser


def parse_month(value: str) -> date:
    """Parse YYYY-MM into the first day of that month."""
    try:
        year, month = value.split("-")
        return date(int(year), int(month), 1)
    except ValueError as e:
        raise ValueError(f"Invalid month {value!r}, expected YYYY-MM") from e


def resolve_window(organization_id: str, start: str | None, end: str | None) -> SyncWindow:
    """Window from --start/--end, defaulting to the current month."""
    if not start and not end:
        return SyncWindow.current_month(organization_id)
    if not start or not end:
        raise ValueError("--start and --end must be given together")
    return SyncWindow.from_strings(organization_id, start, end)


def build_staging(config: Config) -> SyncStagingStore:
    """Staging store over the configured backend."""
    if config.sync.staging_backend == "memory":
        return SyncStagingStore(MemorySessionStorage())
    return SyncStagingStore(
        SqliteSessionStorage(config.state_db_path, session_id=config.sync.session_id)
    )


def build_filemaker(config: Config) -> FileMakerClient:
    """FileMaker Data API client from configuration."""
    return FileMakerClient(
        base_url=config.filemaker.base_url,
        token=config.filemaker.token,
        database=config.filemaker.database,
        layout=config.filemaker.layout,
        date_field=config.filemaker.date_field,
        page_size=config.filemaker.page_size,
        timeout=config.filemaker.timeout_seconds,
    )


def build_service(config: Config) -> FinancialSyncService:
    """Wire clients, repositories and staging from configuration."""
    supabase = SupabaseClient(
        url=config.supabase.url,
        api_key=config.supabase.api_key,
        schema=config.supabase.schema,
        timeout=config.supabase.timeout_seconds,
    )
    return FinancialSyncService(
        billing_source=build_filemaker(config),
        sales=SalesRepository(supabase),
        customers=CustomerRepository(supabase),
        staging=build_staging(config),
    )


def print_result(window: SyncWindow, result: SyncResult) -> None:
    """Print a SyncResult the way every command reports it."""
    mode = "DRY RUN" if result.dry_run else "APPLIED"
    print()
    print(f"📊 Sync Results for {window} ({mode})")
    print("=" * 50)
    if not result.success:
        print(f"  ❌ Aborted: {result.error}")
        return

    summary = result.summary
    print(f"  Billing records:     {summary.billing_records}")
    print(f"  customer_sales rows: {summary.sales_records}")
    print(f"  To create:           {summary.to_create}")
    print(f"  To update:           {summary.to_update}")
    print(f"  To delete:           {summary.to_delete}")
    print(f"  Unchanged:           {summary.unchanged}")
    print()
    print(f"  Created:             {len(result.changes.created)}")
    print(f"  Updated:             {len(result.changes.updated)}")
    print(f"  Deleted:             {len(result.changes.deleted)}")
    print(f"  Duration:            {result.duration_ms}ms")

    if result.changes.errors:
        print()
        print("⚠️  Errors encountered:")
        for error in result.changes.errors:
            record = error.billing_record_id or error.sales_record_id
            print(f"   - {error.operation} {record}: {error.message}")


def _require_valid(config: Config) -> bool:
    errors = config.validate()
    if errors:
        print("❌ Invalid configuration:")
        for error in errors:
            print(f"   - {error}")
        return False
    return True


def cmd_sync(
    config: Config,
    window: SyncWindow,
    dry_run: bool = False,
    delete_orphaned: bool = False,
    pending_only: bool = False,
) -> int:
    """Review one window and apply the changes unless dry_run.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    if not _require_valid(config):
        return 1

    if dry_run:
        print("  ℹ️  DRY RUN mode - no changes will be made")

    service = build_service(config)
    result = service.synchronize(
        window,
        dry_run=dry_run,
        delete_orphaned=delete_orphaned or config.sync.delete_orphaned,
        use_pending_only=pending_only,
    )
    print_result(window, result)

    if result.has_errors:
        print("❌ Sync finished with errors")
        return 1
    print("✓ Sync completed successfully")
    return 0


def cmd_status(config: Config, window: SyncWindow) -> int:
    """Show whether a window is in sync."""
    if not _require_valid(config):
        return 1

    status = build_service(config).get_sync_status(window)
    if not status.success:
        print(f"❌ Failed to get sync status: {status.error}")
        return 1

    summary = status.summary
    print(f"\n📊 Sync Status for {window}")
    print("=" * 50)
    print(f"  In sync:             {'yes' if status.in_sync else 'no'}")
    print(f"  Billing records:     {summary.billing_records}")
    print(f"  customer_sales rows: {summary.sales_records}")
    print(f"  Records to create:   {summary.to_create}")
    print(f"  Records to update:   {summary.to_update}")
    print(f"  Records to delete:   {summary.to_delete}")
    print(f"  Unchanged records:   {summary.unchanged}")
    print()
    return 0


def cmd_pending(
    config: Config, window: SyncWindow, clear: bool = False, end_session: bool = False
) -> int:
    """Show (or discard) the staged comparison of a window."""
    staging = build_staging(config)

    if end_session:
        removed = staging.end_session()
        print(f"✓ Ended staging session, discarded {removed} staged window(s)")
        return 0

    if clear:
        staging.clear(window)
        print(f"✓ Cleared staged changes for {window}")
        return 0

    summary = staging.pending_summary(window)
    print(json.dumps({"window": str(window), **summary}, indent=2))
    return 0


def cmd_backfill(
    config: Config,
    organization_id: str,
    from_month: str,
    to_month: str,
    dry_run: bool = False,
    delete_orphaned: bool = False,
) -> int:
    """Synchronize every month from from_month through to_month."""
    if not _require_valid(config):
        return 1

    try:
        first, last = parse_month(from_month), parse_month(to_month)
    except ValueError as e:
        print(f"❌ {e}")
        return 1
    if first > last:
        print("❌ --from must not be after --to")
        return 1

    windows = SyncWindow.months_between(organization_id, first, last)
    print(f"🔄 Synchronizing {len(windows)} months for organization {organization_id}")

    service = build_service(config)
    results = service.synchronize_periods(
        windows,
        dry_run=dry_run,
        delete_orphaned=delete_orphaned or config.sync.delete_orphaned,
    )

    failed = 0
    for window, result in results:
        print_result(window, result)
        if result.has_errors:
            failed += 1

    print()
    if failed:
        print(f"❌ {failed} of {len(results)} months had errors")
        return 1
    print(f"✓ All {len(results)} months synchronized")
    return 0


def cmd_check(config: Config) -> int:
    """Verify the FileMaker credentials before a sync."""
    if not _require_valid(config):
        return 1

    client = build_filemaker(config)
    if not client.test_connection():
        print("❌ Failed to connect to FileMaker")
        return 1

    print(f"✓ Connected to FileMaker layout {config.filemaker.layout}")
    return 0


def cmd_init_config(config_path: Path) -> int:
    """Write the default configuration file unless one exists."""
    if config_path.exists():
        print(f"❌ Config file already exists: {config_path}")
        return 1
    create_default_config(config_path)
    print(f"✓ Wrote default configuration to {config_path}")
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
        return cmd_init_config(parsed.config)

    # Load config
    try:
        config = load_config(parsed.config)
    except Exception as e:
        print(f"❌ Failed to load config: {e}")
        return 1

    organization_id = parsed.org or config.sync.organization_id
    if not organization_id:
        print("❌ No organization id: pass --org or set sync.organization_id")
        return 1

    if parsed.command == "check":
        return cmd_check(config)

    if parsed.command == "backfill":
        return cmd_backfill(
            config,
            organization_id,
            parsed.from_month,
            parsed.to_month,
            dry_run=parsed.dry_run,
            delete_orphaned=parsed.delete_orphaned,
        )

    try:
        window = resolve_window(organization_id, parsed.start, parsed.end)
    except ValueError as e:
        print(f"❌ {e}")
        return 1

    # Route to command
    if parsed.command == "sync":
        return cmd_sync(
            config,
            window,
            dry_run=parsed.dry_run,
            delete_orphaned=parsed.delete_orphaned,
            pending_only=parsed.pending_only,
        )
    elif parsed.command == "status":
        return cmd_status(config, window)
    elif parsed.command == "pending":
        return cmd_pending(
            config, window, clear=parsed.clear, end_session=parsed.end_session
        )
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
