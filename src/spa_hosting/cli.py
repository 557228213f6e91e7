"""Operator command line for hosted projects."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from spa_hosting.config import load_settings
from spa_hosting.data.db import init_db
from spa_hosting.models.errors import SpaHostingError
from spa_hosting.models.package import (
    OPERATOR_STATUSES,
    ProjectRecord,
    ProjectStatus,
    ProjectUnavailable,
)
from spa_hosting.services.operations import (
    DeleteOperation,
    PruneOperation,
    ResolveOperation,
    RollbackOperation,
    SetStatusOperation,
    UploadOperation,
    dispatch,
)
from spa_hosting.services.project_resolver import ProjectResolver
from spa_hosting.services.upload_coordinator import UploadCoordinator


def _format_bytes(size: float) -> str:
    """Format bytes into human-readable string.

    Args:
        size: Size in bytes.

    Returns:
        Formatted string (e.g., "1.5 KB", "2.3 MB").
    """
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024.0:
            return f"{size:.1f} {unit}"
        size /= 1024.0
    return f"{size:.1f} TB"


def _print_record(record: ProjectRecord) -> None:
    print(f"{record.slug}  ({record.display_name})")
    print(f"  Status:    {record.status.value}")
    print(f"  Version:   {record.current_version or '-'}")
    print(f"  Entry:     {record.entry_point}")
    print(f"  Files:     {record.file_count} ({_format_bytes(record.size_bytes)})")
    if record.storage_path is not None:
        print(f"  Path:      {record.storage_path}")
    for version in record.retained:
        promoted = version.last_promoted_at.strftime("%Y-%m-%d %H:%M")
        print(f"  Retained:  {version.version_id} (last served {promoted})")
    for entry in record.history:
        replaced = entry.replaced_at.strftime("%Y-%m-%d %H:%M")
        print(f"  History:   {entry.version_id} -> {entry.replaced_by} ({replaced})")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="spa-hosting",
        description="Publish and manage single-page application bundles.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress to stderr.")
    commands = parser.add_subparsers(dest="command", required=True)

    upload = commands.add_parser("upload", help="Upload a ZIP bundle under a slug.")
    upload.add_argument("slug")
    upload.add_argument("archive", type=Path)
    upload.add_argument("--display-name")
    upload.add_argument(
        "--create-only", action="store_true", help="Fail if the slug already exists."
    )

    listing = commands.add_parser("list", help="List projects.")
    listing.add_argument("--status", choices=[status.value for status in ProjectStatus])
    listing.add_argument("--order-by", choices=["name", "date"], default="name")
    listing.add_argument("--limit", type=int)
    listing.add_argument("--offset", type=int, default=0)

    show = commands.add_parser("show", help="Show a project and its retained versions.")
    show.add_argument("slug")

    resolve = commands.add_parser("resolve", help="Print where a project is served from.")
    resolve.add_argument("slug")

    set_status = commands.add_parser("status", help="Activate or deactivate a project.")
    set_status.add_argument("slug")
    set_status.add_argument("value", choices=sorted(status.value for status in OPERATOR_STATUSES))

    rename = commands.add_parser("rename", help="Change a project's display name.")
    rename.add_argument("slug")
    rename.add_argument("display_name")

    delete = commands.add_parser("delete", help="Delete a project and all of its files.")
    delete.add_argument("slug")

    rollback = commands.add_parser("rollback", help="Serve a retained version again.")
    rollback.add_argument("slug")
    rollback.add_argument("version_id")

    prune = commands.add_parser("prune", help="Remove old retained versions.")
    prune.add_argument("slug")
    prune.add_argument("--retain", type=int)

    sweep = commands.add_parser("sweep-staging", help="Remove abandoned staging directories.")
    sweep.add_argument("--max-age", type=int, help="Age in seconds.")

    commands.add_parser("stats", help="Show aggregate statistics.")
    return parser


def run_cli(args: argparse.Namespace) -> int:
    """Execute a parsed command.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    settings = load_settings()
    init_db()
    coordinator = UploadCoordinator(settings)
    resolver = ProjectResolver(settings, coordinator.store)
    store = coordinator.store

    if args.command == "upload":
        with args.archive.open("rb") as archive:
            record = dispatch(
                UploadOperation(
                    args.slug,
                    archive,
                    args.display_name,
                    create_only=args.create_only,
                ),
                coordinator,
                resolver,
            )
        print(f"✅ Published {record.slug} version {record.current_version}")
        _print_record(record)
    elif args.command == "list":
        status = ProjectStatus(args.status) if args.status else None
        records = store.list_projects(
            status=status, order_by=args.order_by, limit=args.limit, offset=args.offset
        )
        if not records:
            print("No projects found.")
        for record in records:
            version = (record.current_version or "-")[:12]
            print(f"{record.slug:<30} {record.status.value:<9} {version:<12} {record.display_name}")
    elif args.command == "show":
        record = store.get(args.slug)
        if record is None:
            print(f"❌ No project registered under slug '{args.slug}'.")
            return 1
        _print_record(record)
    elif args.command == "resolve":
        outcome = dispatch(ResolveOperation(args.slug), coordinator, resolver)
        if isinstance(outcome, ProjectUnavailable):
            print(f"❌ {outcome.message}")
            return 1
        print(outcome.entry_point_path)
    elif args.command == "status":
        record = dispatch(
            SetStatusOperation(args.slug, ProjectStatus(args.value)), coordinator, resolver
        )
        print(f"✅ {record.slug} is now {record.status.value}")
    elif args.command == "rename":
        record = coordinator.rename(args.slug, args.display_name)
        print(f"✅ {record.slug} is now called '{record.display_name}'")
    elif args.command == "delete":
        dispatch(DeleteOperation(args.slug), coordinator, resolver)
        print(f"✅ Deleted {args.slug}")
    elif args.command == "rollback":
        record = dispatch(RollbackOperation(args.slug, args.version_id), coordinator, resolver)
        print(f"✅ {record.slug} now serves version {record.current_version}")
    elif args.command == "prune":
        removed = dispatch(PruneOperation(args.slug, args.retain), coordinator, resolver)
        print(f"✅ Removed {len(removed)} version(s) of {args.slug}")
        for version_id in removed:
            print(f"  - {version_id}")
    elif args.command == "sweep-staging":
        removed = coordinator.sweep_staging(args.max_age)
        print(f"✅ Removed {removed} staging director{'y' if removed == 1 else 'ies'}")
    elif args.command == "stats":
        stats = store.statistics()
        print(f"Projects:           {stats.total_projects}")
        for name, count in sorted(stats.by_status.items()):
            print(f"  {name:<17} {count}")
        print(f"Active size:        {_format_bytes(stats.active_size_bytes)}")
        print(f"Retained versions:  {stats.retained_versions}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the CLI application."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return run_cli(args)
    except KeyboardInterrupt:
        print("\n\n⚠️  Interrupted by user. Exiting.")
        return 130
    except (SpaHostingError, ValueError, OSError) as exc:
        print(f"❌ Error: {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
