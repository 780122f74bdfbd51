# knowledge_lifecycle/cli/lifecycle.py
"""
CLI commands for knowledge lifecycle management.

Usage:
    kb-lifecycle stats
    kb-lifecycle archive --archive-days 30 --delete-days 90
    kb-lifecycle delete-old --days 90 --confirm
    kb-lifecycle duplicates
    kb-lifecycle duplicates --remove --confirm
    kb-lifecycle export
    kb-lifecycle list-archives
    kb-lifecycle auto-archive
"""

import argparse
import asyncio
import signal
import sys

from dotenv import load_dotenv

from knowledge_lifecycle.exceptions import LifecycleError

load_dotenv()


def get_service():
    """Build the lifecycle service from settings."""
    from knowledge_lifecycle.services.lifecycle import create_lifecycle_service

    try:
        return create_lifecycle_service()
    except LifecycleError as e:
        _fail(e)


def format_size(size_bytes: int) -> str:
    """Human-readable byte count, e.g. 1.5 MB."""
    size = float(size_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size_bytes} B"


def _run(coro_factory):
    """Run a sweep, setting its stop signal on SIGINT/SIGTERM."""

    async def runner():
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop_event.set)
            except (NotImplementedError, RuntimeError):
                pass
        return await coro_factory(stop_event)

    return asyncio.run(runner())


def _fail(e: LifecycleError) -> None:
    print(f"Error ({e.stage}): {e}")
    sys.exit(1)


def print_stats(stats) -> None:
    print("\n=== Storage Statistics ===\n")
    if stats.message:
        print(stats.message)

    print(f"Total files: {stats.total_files}")
    print(f"Total size: {format_size(stats.total_size_bytes)}")

    if stats.count_by_folder:
        print("\nBy folder:")
        for folder, count in stats.count_by_folder.items():
            print(f"  {folder}: {count}")

    if stats.count_by_extension:
        print("\nBy extension:")
        for ext, count in sorted(stats.count_by_extension.items()):
            print(f"  {ext}: {count}")

    print(f"\nOlder than {stats.archive_threshold_days} days: {len(stats.aged_objects)}")
    print(f"Duplicates: {len(stats.duplicates)}")

    if stats.skipped_folders:
        print(f"Skipped folders: {', '.join(stats.skipped_folders)}")
    print()


def print_archive_result(result) -> None:
    print(result.message)
    print(f"Archived: {result.archived}")
    print(f"Deleted: {result.deleted}")
    print(f"Failed: {result.failed} ({result.failed_downloads} downloads, {result.failed_deletes} deletes)")
    if result.archive_path:
        print(f"Archive: {result.archive_path} ({format_size(result.archive_size_bytes)})")
    if result.cancelled:
        print("Stopped before all archived files were deleted")
    if result.skipped_folders:
        print(f"Skipped folders: {', '.join(result.skipped_folders)}")


def cmd_stats(args):
    """Show storage statistics."""
    service = get_service()
    try:
        stats = asyncio.run(service.get_storage_stats())
    except LifecycleError as e:
        _fail(e)
    print_stats(stats)


def cmd_archive(args):
    """Archive aged files, then remove them from the hot tier."""
    from knowledge_lifecycle.services.lifecycle import RetentionPolicy

    service = get_service()
    try:
        policy = RetentionPolicy(
            archive_threshold_days=service.policy.archive_threshold_days if args.archive_days is None else args.archive_days,
            deletion_threshold_days=service.policy.deletion_threshold_days if args.delete_days is None else args.delete_days,
        )
        print(f"\nArchiving files between {policy.archive_threshold_days} and {policy.deletion_threshold_days} days old...\n")
        result = _run(lambda stop: service.archive_old_data(policy, stop_event=stop))
    except LifecycleError as e:
        _fail(e)

    print_archive_result(result)
    if result.failed:
        sys.exit(1)


def cmd_delete_old(args):
    """Hard-delete files older than --days."""
    if not args.confirm:
        print("Error: delete-old requires --confirm flag")
        print("This permanently deletes files without archiving them")
        sys.exit(1)

    service = get_service()
    print(f"\nDeleting files at least {args.days} days old...\n")
    try:
        result = _run(lambda stop: service.delete_old_data(args.days, stop_event=stop))
    except LifecycleError as e:
        _fail(e)

    print(result.message)
    print(f"Deleted: {result.deleted}")
    print(f"Failed: {result.failed}")
    print(f"Size: {format_size(result.total_size_bytes)}")
    if result.skipped_folders:
        print(f"Skipped folders: {', '.join(result.skipped_folders)}")
    if result.failed:
        sys.exit(1)


def cmd_duplicates(args):
    """Report duplicate records, or remove them with --remove --confirm."""
    service = get_service()

    if args.remove:
        if not args.confirm:
            print("Error: duplicate removal requires --confirm flag")
            sys.exit(1)
        try:
            result = _run(lambda stop: service.remove_duplicates(stop_event=stop))
        except LifecycleError as e:
            _fail(e)
        print(result.message)
        print(f"Found: {result.found}")
        print(f"Removed: {result.removed}")
        print(f"Failed: {result.failed}")
        if result.failed:
            sys.exit(1)
        return

    try:
        duplicates = asyncio.run(service.find_duplicates())
    except LifecycleError as e:
        _fail(e)

    print(f"\n=== Duplicates ({len(duplicates)}) ===\n")
    for pair in duplicates:
        print(f"{pair.duplicate_path}")
        print(f"  duplicate of: {pair.original_path}")
        if pair.title:
            print(f"  title: {pair.title}")


def cmd_export(args):
    """Export the whole corpus into one bundle."""
    service = get_service()
    print("\nExporting all data...\n")
    try:
        result = _run(lambda stop: service.export_all_data(stop_event=stop))
    except LifecycleError as e:
        _fail(e)

    print(f"Export: {result.export_path} ({format_size(result.export_size_bytes)})")
    print(f"Included: {result.included_count}")
    print(f"Skipped: {result.skipped_count}")
    if result.skipped_folders:
        print(f"Skipped folders: {', '.join(result.skipped_folders)}")


def cmd_list_archives(args):
    """List archive bundles, newest first."""
    service = get_service()
    try:
        bundles = asyncio.run(service.list_archives())
    except LifecycleError as e:
        _fail(e)

    print(f"\n=== Archives ({len(bundles)}) ===\n")
    for bundle in bundles:
        created = bundle.created_at.isoformat() if bundle.created_at else "unknown"
        print(f"{bundle.name}  {format_size(bundle.size_bytes)}  {created}")


def cmd_auto_archive(args):
    """Scheduled job: stats, archive, duplicate check, summary."""
    service = get_service()
    if service.storage.name != "s3":
        print(f"Auto-archive runs against remote object storage only (provider: {service.storage.name})")
        return

    try:
        stats = asyncio.run(service.get_storage_stats(include_duplicates=False))
        print_stats(stats)

        result = _run(lambda stop: service.archive_old_data(stop_event=stop))
        print_archive_result(result)

        duplicates = asyncio.run(service.find_duplicates())
    except LifecycleError as e:
        _fail(e)

    print("\n=== Auto-archive Summary ===\n")
    print(f"Files before: {stats.total_files} ({format_size(stats.total_size_bytes)})")
    print(f"Archived: {result.archived}")
    print(f"Failed: {result.failed}")
    print(f"Duplicates pending review: {len(duplicates)}")
    if duplicates:
        print("Run 'kb-lifecycle duplicates --remove --confirm' to remove them")

    if result.failed:
        sys.exit(1)


def main():
    from knowledge_lifecycle.config import get_settings
    from knowledge_lifecycle.logging_config import configure_logging

    parser = argparse.ArgumentParser(
        description="Knowledge Lifecycle Management CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show storage statistics
  kb-lifecycle stats

  # Archive files older than 14 days
  kb-lifecycle archive --archive-days 14

  # Hard-delete files older than 180 days
  kb-lifecycle delete-old --days 180 --confirm

  # Remove duplicate processed records
  kb-lifecycle duplicates --remove --confirm
        """,
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # stats command
    stats_parser = subparsers.add_parser("stats", help="Show storage statistics")
    stats_parser.set_defaults(func=cmd_stats)

    # archive command
    archive_parser = subparsers.add_parser("archive", help="Archive aged files")
    archive_parser.add_argument("--archive-days", type=int, default=None, help="Archive threshold (default: ARCHIVE_THRESHOLD_DAYS)")
    archive_parser.add_argument("--delete-days", type=int, default=None, help="Deletion threshold (default: DELETION_THRESHOLD_DAYS)")
    archive_parser.set_defaults(func=cmd_archive)

    # delete-old command
    delete_parser = subparsers.add_parser("delete-old", help="Hard-delete old files")
    delete_parser.add_argument("--days", type=int, required=True, help="Delete files at least this many days old")
    delete_parser.add_argument("--confirm", action="store_true", help="Confirm deletion")
    delete_parser.set_defaults(func=cmd_delete_old)

    # duplicates command
    dup_parser = subparsers.add_parser("duplicates", help="Find or remove duplicate records")
    dup_parser.add_argument("--remove", action="store_true", help="Delete duplicates (keeps originals)")
    dup_parser.add_argument("--confirm", action="store_true", help="Confirm removal")
    dup_parser.set_defaults(func=cmd_duplicates)

    # export command
    export_parser = subparsers.add_parser("export", help="Export the whole corpus")
    export_parser.set_defaults(func=cmd_export)

    # list-archives command
    list_parser = subparsers.add_parser("list-archives", help="List archive bundles")
    list_parser.set_defaults(func=cmd_list_archives)

    # auto-archive command
    auto_parser = subparsers.add_parser("auto-archive", help="Scheduled archive job")
    auto_parser.set_defaults(func=cmd_auto_archive)

    args = parser.parse_args()

    settings = get_settings()
    configure_logging(json_format=settings.LOG_FORMAT == "json", level=args.log_level or settings.LOG_LEVEL)

    args.func(args)


if __name__ == "__main__":
    main()
