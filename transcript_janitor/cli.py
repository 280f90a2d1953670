"""Command line front end: parse arguments, call the engines, print JSON."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter

from transcript_janitor.common import DEFAULT_DATA_ROOT, DEFAULT_LOG_FILE, now_utc_iso, setup_logger
from transcript_janitor.content_engine import (
    delete_old_backups,
    fix_directory,
    fix_file,
    get_conversation_stats,
    restore_from_backup,
    scan_directory,
    scan_file,
)
from transcript_janitor.options import (
    CleanOptions,
    Exclusion,
    GuardOptions,
    InventoryOptions,
    PreviewOptions,
    WipeOptions,
)
from transcript_janitor.trace_engine import (
    clean_traces,
    generate_trace_guard_hooks,
    inventory_traces,
    preview_traces,
    wipe_all_traces,
)

EXCLUSION_LIST = TypeAdapter(list[Exclusion])


def load_exclusions(path: str | None) -> list[Exclusion]:
    if not path:
        return []
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Exclusions file not found: {p}")
    return EXCLUSION_LIST.validate_json(p.read_text(encoding="utf-8"))


def command_scan(args: argparse.Namespace) -> dict[str, Any]:
    target = Path(args.path)
    if target.is_dir():
        return scan_directory(target).to_dict()
    return scan_file(target).to_dict()


def command_fix(args: argparse.Namespace) -> dict[str, Any]:
    target = Path(args.path)
    if target.is_dir():
        return fix_directory(target, create_backup=not args.no_backup).to_dict()
    return fix_file(target, create_backup=not args.no_backup).to_dict()


def command_stats(args: argparse.Namespace) -> dict[str, Any]:
    return get_conversation_stats(args.path).to_dict()


def command_restore(args: argparse.Namespace) -> dict[str, Any]:
    return restore_from_backup(args.backup).to_dict()


def command_prune_backups(args: argparse.Namespace) -> dict[str, Any]:
    target = args.path or str(Path(args.root) / "projects")
    return delete_old_backups(target, args.days).to_dict()


def command_inventory(args: argparse.Namespace) -> dict[str, Any]:
    inventory = inventory_traces(args.root, InventoryOptions(project=args.project))
    return inventory.to_dict(include_items=args.items)


def command_preview(args: argparse.Namespace) -> dict[str, Any]:
    options = PreviewOptions(
        operation=args.operation,
        categories=args.categories,
        days=args.days,
        exclusions=load_exclusions(args.exclusions),
    )
    return preview_traces(args.root, options).to_dict()


def command_clean(args: argparse.Namespace) -> dict[str, Any]:
    options = CleanOptions(
        project=args.project,
        categories=args.categories,
        days=args.days,
        dry_run=not args.execute,
        preserve_settings=not args.no_preserve_settings,
        exclusions=load_exclusions(args.exclusions),
    )
    return clean_traces(args.root, options).to_dict()


def command_wipe(args: argparse.Namespace) -> dict[str, Any]:
    options = WipeOptions(
        confirm=args.confirm,
        keep_settings=args.keep_settings,
        keep_plugins=args.keep_plugins,
        exclusions=load_exclusions(args.exclusions),
    )
    return wipe_all_traces(args.root, options).to_dict()


def command_guard_hooks(args: argparse.Namespace) -> dict[str, Any]:
    return generate_trace_guard_hooks(args.root, GuardOptions(mode=args.mode)).to_dict()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="transcript-janitor",
        description="Conversation log repair and trace cleanup for a local assistant data root",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument("--root", default=str(DEFAULT_DATA_ROOT), help="Assistant data root")
    parser.add_argument("--log-file", default=str(DEFAULT_LOG_FILE), help="Action log file")

    sub = parser.add_subparsers(dest="command", required=True)

    # scan
    p = sub.add_parser("scan", help="Find oversized content in a log file or every log under a directory")
    p.add_argument("path")

    # fix
    p = sub.add_parser("fix", help="Replace oversized content with placeholders")
    p.add_argument("path")
    p.add_argument("--no-backup", action="store_true", help="Do not write a backup before fixing")

    # stats
    p = sub.add_parser("stats", help="Per-conversation message and media counts")
    p.add_argument("path")

    # restore
    p = sub.add_parser("restore", help="Copy a backup over its original log")
    p.add_argument("backup")

    # prune-backups
    p = sub.add_parser("prune-backups", help="Delete fix backups older than N days")
    p.add_argument("--path", default=None, help="Directory to search (default: <root>/projects)")
    p.add_argument("--days", type=int, default=7)

    # inventory
    p = sub.add_parser("inventory", help="Categorize every trace under the data root")
    p.add_argument("--project", default=None)
    p.add_argument("--items", action="store_true", help="Include per-file items")

    def add_filter_opts(p: argparse.ArgumentParser) -> None:
        p.add_argument("--categories", nargs="+", default=None)
        p.add_argument("--days", type=int, default=None, help="Only files older than N days")
        p.add_argument("--exclusions", default=None, help="JSON file with a list of exclusions")

    # preview
    p = sub.add_parser("preview", help="Show what a clean or wipe would touch")
    p.add_argument("--operation", choices=["clean", "wipe"], default="clean")
    add_filter_opts(p)

    # clean
    p = sub.add_parser("clean", help="Selective trace cleanup with dry-run default")
    p.add_argument("--project", default=None)
    add_filter_opts(p)
    p.add_argument("--execute", action="store_true", help="Actually delete (otherwise dry-run)")
    p.add_argument("--no-preserve-settings", action="store_true")

    # wipe
    p = sub.add_parser("wipe", help="Overwrite and delete every trace")
    p.add_argument("--confirm", action="store_true", help="Required to perform the wipe")
    p.add_argument("--keep-settings", action="store_true")
    p.add_argument("--keep-plugins", action="store_true")
    p.add_argument("--exclusions", default=None, help="JSON file with a list of exclusions")

    # guard-hooks
    p = sub.add_parser("guard-hooks", help="Print session-hook settings that delete traces as they age")
    p.add_argument("--mode", choices=["paranoid", "moderate", "minimal"], default="moderate")

    return parser


COMMANDS = {
    "scan": command_scan,
    "fix": command_fix,
    "stats": command_stats,
    "restore": command_restore,
    "prune-backups": command_prune_backups,
    "inventory": command_inventory,
    "preview": command_preview,
    "clean": command_clean,
    "wipe": command_wipe,
    "guard-hooks": command_guard_hooks,
}


def dispatch(args: argparse.Namespace) -> dict[str, Any]:
    handler = COMMANDS.get(args.command)
    if handler is None:
        raise ValueError(f"Unknown command: {args.command}")
    return handler(args)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logger(Path(args.log_file))

    try:
        result = dispatch(args)
        print(json.dumps({
            "status": "ok",
            "command": args.command,
            "timestamp": now_utc_iso(),
            "data": result,
        }, indent=2, ensure_ascii=False))
        return 0
    except Exception as exc:  # pylint: disable=broad-except
        print(json.dumps({
            "status": "error",
            "command": getattr(args, "command", None),
            "error": str(exc),
            "timestamp": now_utc_iso(),
        }, indent=2), file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
