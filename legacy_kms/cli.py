"""
`legacy-kms` command-line interface.

Commands
--------
legacy-kms ingest <path>... [--kind KIND]     -- extract and store files
legacy-kms list <collection> [--newest-first] -- browse a collection
legacy-kms show <collection> <id>             -- print one record as JSON
legacy-kms update <collection> <id> --set k=v -- shallow-merge fields
legacy-kms delete <collection> <id>           -- remove one record
legacy-kms find <collection> --where k=v      -- filter by field equality
legacy-kms search "<keyword>"                 -- substring search
legacy-kms flow <logfile>                     -- print the flow diagram only
legacy-kms add-flow "<title>" <file>          -- store a hand-written diagram
legacy-kms export [--output DIR]              -- write kms-data-<date>.json
legacy-kms import <file>                      -- replace the store
legacy-kms merge <file>                       -- add records with new ids
legacy-kms clear [--collection NAME] --yes    -- empty the store
legacy-kms stats [--json]                     -- record counts and usage
legacy-kms validate                           -- structural check
legacy-kms watch <dir>                        -- ingest files dropped in dir
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import time
from typing import Any, Optional

from .config import Config
from .errors import KMSError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _config(args: argparse.Namespace) -> Config:
    cfg = Config.load(getattr(args, "config", None))
    if getattr(args, "store_dir", None):
        cfg.STORE_DIR = args.store_dir
    return cfg


def _open_store(args: argparse.Namespace):
    """Return an open KnowledgeStore for the configured directory."""
    from .store import JsonFileMedium, KnowledgeStore

    cfg = _config(args)
    medium = JsonFileMedium(cfg.STORE_DIR, quota_bytes=cfg.quota)
    return KnowledgeStore(medium, key=cfg.STORAGE_KEY).open()


def _parse_pairs(pairs: Optional[list[str]], flag: str) -> dict[str, Any]:
    """Parse ``key=value`` arguments; values are JSON when they parse as JSON."""
    parsed: dict[str, Any] = {}
    for pair in pairs or []:
        if "=" not in pair:
            print(f"Invalid {flag} '{pair}'. Use: {flag} key=value", file=sys.stderr)
            sys.exit(1)
        key, raw = pair.split("=", 1)
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            value = raw
        parsed[key.strip()] = value
    return parsed


def _record_label(record: dict) -> str:
    for name in ("title", "filename", "query_text"):
        value = record.get(name)
        if value and str(value).strip():
            return str(value).strip().splitlines()[0][:60]
    return ""


def _print_records(records: list[dict], title: str) -> None:
    """Pretty-print a list of records as one line each."""
    if not records:
        print(f"  (no records in: {title})")
        return
    print(f"\n{title}  [{len(records)} record(s)]")
    print("-" * 70)
    for r in records:
        print(f"  {r.get('id', ''):<24}  {r.get('created_at', ''):<25}  {_record_label(r)}")


def _expand_paths(paths: list[str]) -> list[str]:
    """Expand directories into the (non-hidden) files they contain."""
    files: list[str] = []
    for path in paths:
        if os.path.isdir(path):
            for root, dirs, names in os.walk(path):
                dirs[:] = sorted(d for d in dirs if not d.startswith("."))
                files.extend(
                    os.path.join(root, n) for n in sorted(names) if not n.startswith(".")
                )
        else:
            files.append(path)
    return files


# ---------------------------------------------------------------------------
# Sub-command handlers
# ---------------------------------------------------------------------------

def _cmd_ingest(args: argparse.Namespace) -> None:
    """Extract and store every given file."""
    from tqdm import tqdm

    from .ingest import ingest, load_upload

    cfg = _config(args)
    store = _open_store(args)
    files = _expand_paths(args.paths)
    if not files:
        print("No files to ingest.")
        return

    t0 = time.perf_counter()
    reports = []
    skipped = 0
    for path in tqdm(files, unit="file", desc="Ingesting", disable=len(files) < 2):
        try:
            upload = load_upload(path, kind=args.kind)
        except OSError as exc:
            print(f"  Skipping {path}: {exc}", file=sys.stderr)
            skipped += 1
            continue
        reports.append(ingest(store, upload, preview_chars=cfg.PREVIEW_CHARS))
    elapsed = time.perf_counter() - t0

    for report in reports:
        print(f"  [{report.kind:<11}] {report.filename}: {report.summary}")
        if args.verbose:
            for notice in report.notices:
                print(f"      degraded: {notice}")

    print(
        f"\nIngest complete:\n"
        f"  Files    : {len(reports)}\n"
        f"  Skipped  : {skipped}\n"
        f"  Records  : {sum(r.total_inserted for r in reports)}\n"
        f"  Time     : {elapsed:.1f}s"
    )


def _cmd_list(args: argparse.Namespace) -> None:
    store = _open_store(args)
    result = store.select(args.collection, newest_first=args.newest_first)
    records = result.records[: args.limit] if args.limit else result.records
    if args.json:
        print(json.dumps(records, indent=2, ensure_ascii=False))
        return
    _print_records(records, args.collection)


def _cmd_show(args: argparse.Namespace) -> None:
    store = _open_store(args)
    print(json.dumps(store.get(args.collection, args.id), indent=2, ensure_ascii=False))


def _cmd_update(args: argparse.Namespace) -> None:
    patch = _parse_pairs(args.set, "--set")
    if not patch:
        print("Nothing to update. Use --set key=value", file=sys.stderr)
        sys.exit(1)
    store = _open_store(args)
    updated = store.update(args.collection, args.id, patch)
    print(json.dumps(updated, indent=2, ensure_ascii=False))


def _cmd_delete(args: argparse.Namespace) -> None:
    store = _open_store(args)
    store.delete(args.collection, args.id)
    print(f"Deleted {args.id} from {args.collection}")


def _cmd_find(args: argparse.Namespace) -> None:
    where = _parse_pairs(args.where, "--where")
    store = _open_store(args)

    def _matches(record: dict) -> bool:
        return all(record.get(k) == v or str(record.get(k)) == str(v)
                   for k, v in where.items())

    result = store.query(args.collection, _matches)
    _print_records(result.records, f"{args.collection} where {where}")


def _cmd_search(args: argparse.Namespace) -> None:
    from .store.utils import global_search

    store = _open_store(args)
    hits = global_search(store, args.keyword)
    if not hits:
        print(f"No results found for: {args.keyword!r}")
        return
    print(f"\nSearch results for: {args.keyword!r}  [{len(hits)} result(s)]")
    print("-" * 70)
    for hit in hits:
        print(f"  {hit.collection:<14}  {hit.item.get('id', ''):<24}  "
              f"{_record_label(hit.item)}")


def _cmd_flow(args: argparse.Namespace) -> None:
    from .extract import generate_flow

    with open(args.logfile, "r", encoding="utf-8", errors="replace") as f:
        print(generate_flow(f.read()), end="")


def _cmd_add_flow(args: argparse.Namespace) -> None:
    from .ingest import add_manual_flow

    with open(args.file, "r", encoding="utf-8") as f:
        text = f.read()
    store = _open_store(args)
    record = add_manual_flow(store, args.title, text)
    print(f"Stored flow {record['id']}: {args.title}")


def _cmd_export(args: argparse.Namespace) -> None:
    store = _open_store(args)
    path = store.export_to_file(args.output)
    print(f"Exported to {path}")


def _cmd_import(args: argparse.Namespace) -> None:
    store = _open_store(args)
    store.import_file(args.file)
    print(f"Imported {args.file}")


def _cmd_merge(args: argparse.Namespace) -> None:
    with open(args.file, "r", encoding="utf-8") as f:
        text = f.read()
    store = _open_store(args)
    added = store.merge(text)
    print(f"Successfully merged {added} new items")


def _cmd_clear(args: argparse.Namespace) -> None:
    target = args.collection or "ALL collections"
    if not args.yes:
        print(f"Refusing to clear {target} without --yes", file=sys.stderr)
        sys.exit(1)
    store = _open_store(args)
    if args.collection:
        store.clear_collection(args.collection)
    else:
        store.clear()
    print(f"Cleared {target}")


def _cmd_stats(args: argparse.Namespace) -> None:
    from .store.utils import get_stats, get_storage_info

    cfg = _config(args)
    store = _open_store(args)
    stats = get_stats(store)
    info = get_storage_info(store, cfg.QUOTA_BYTES)

    if args.json:
        print(json.dumps({
            **stats.counts,
            "total_items": stats.total_items,
            "storage_size_kb": stats.storage_size_kb,
            "percent_of_limit": info.percent_of_limit,
            "limit_reached": info.limit_reached,
        }, indent=2))
        return

    print("\nKnowledge Store Status")
    print("=" * 40)
    for name, count in stats.counts.items():
        print(f"  {name:<20} {count}")
    print(f"  {'total_items':<20} {stats.total_items}")
    print(f"  {'storage_size_kb':<20} {stats.storage_size_kb}")
    print(f"  {'percent_of_limit':<20} {info.percent_of_limit}%")
    if info.limit_reached:
        print("\n  Warning: storage is above 80% of its quota.")
    print()


def _cmd_validate(args: argparse.Namespace) -> None:
    from .store.utils import validate_data

    store = _open_store(args)
    valid, errors = validate_data(store)
    if valid:
        print("Store is valid.")
        return
    print(f"Store has {len(errors)} problem(s):")
    for error in errors:
        print(f"  - {error}")
    sys.exit(1)


def _cmd_watch(args: argparse.Namespace) -> None:
    from .ingest.watcher import InboxWatcher

    cfg = _config(args)
    store = _open_store(args)
    watcher = InboxWatcher(
        store, args.directory,
        debounce_seconds=cfg.WATCH_DEBOUNCE,
        preview_chars=cfg.PREVIEW_CHARS,
    )
    print(f"Watching {os.path.abspath(args.directory)} ... (Ctrl+C to stop)")
    watcher.start()
    print("\nInbox watcher stopped.")


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    from .ingest import KINDS
    from .store import COLLECTIONS

    parser = argparse.ArgumentParser(
        prog="legacy-kms",
        description="Legacy knowledge management — extract and store knowledge records",
    )
    parser.add_argument("--config", default=None, help="Path to a .legacykms.yaml file")
    parser.add_argument("--store-dir", dest="store_dir", default=None,
                        help="Directory holding the snapshot (overrides config)")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log at INFO level and show degradation notices")

    subparsers = parser.add_subparsers(dest="cmd", metavar="COMMAND")
    subparsers.required = True

    def _collection_arg(p: argparse.ArgumentParser) -> None:
        p.add_argument("collection", choices=COLLECTIONS, metavar="COLLECTION",
                       help=f"One of: {', '.join(COLLECTIONS)}")

    # --- ingest ---
    ingest_p = subparsers.add_parser("ingest", help="Extract and store files")
    ingest_p.add_argument("paths", nargs="+", help="Files or directories")
    ingest_p.add_argument("--kind", choices=KINDS, default=None,
                          help="Declared kind (default: inferred from extension)")
    ingest_p.set_defaults(func=_cmd_ingest)

    # --- list ---
    list_p = subparsers.add_parser("list", help="List the records of a collection")
    _collection_arg(list_p)
    list_p.add_argument("--newest-first", dest="newest_first", action="store_true")
    list_p.add_argument("--limit", type=int, default=0)
    list_p.add_argument("--json", action="store_true", help="Print records as JSON")
    list_p.set_defaults(func=_cmd_list)

    # --- show ---
    show_p = subparsers.add_parser("show", help="Print one record")
    _collection_arg(show_p)
    show_p.add_argument("id")
    show_p.set_defaults(func=_cmd_show)

    # --- update ---
    update_p = subparsers.add_parser("update", help="Update fields of a record")
    _collection_arg(update_p)
    update_p.add_argument("id")
    update_p.add_argument("--set", action="append", metavar="KEY=VALUE",
                          help="Field to set; repeatable. JSON values are decoded")
    update_p.set_defaults(func=_cmd_update)

    # --- delete ---
    delete_p = subparsers.add_parser("delete", help="Delete a record")
    _collection_arg(delete_p)
    delete_p.add_argument("id")
    delete_p.set_defaults(func=_cmd_delete)

    # --- find ---
    find_p = subparsers.add_parser("find", help="Filter a collection by field values")
    _collection_arg(find_p)
    find_p.add_argument("--where", action="append", metavar="KEY=VALUE",
                        help="Equality condition; repeatable")
    find_p.set_defaults(func=_cmd_find)

    # --- search ---
    search_p = subparsers.add_parser("search", help="Substring search across collections")
    search_p.add_argument("keyword")
    search_p.set_defaults(func=_cmd_search)

    # --- flow ---
    flow_p = subparsers.add_parser("flow", help="Print the flow diagram for a log file")
    flow_p.add_argument("logfile")
    flow_p.set_defaults(func=_cmd_flow)

    # --- add-flow ---
    addflow_p = subparsers.add_parser("add-flow", help="Store a hand-written flow diagram")
    addflow_p.add_argument("title")
    addflow_p.add_argument("file", help="File holding the diagram text")
    addflow_p.set_defaults(func=_cmd_add_flow)

    # --- export ---
    export_p = subparsers.add_parser("export", help="Export the store as JSON")
    export_p.add_argument("--output", default=".", help="Target directory (default: .)")
    export_p.set_defaults(func=_cmd_export)

    # --- import ---
    import_p = subparsers.add_parser("import", help="Replace the store with a snapshot")
    import_p.add_argument("file")
    import_p.set_defaults(func=_cmd_import)

    # --- merge ---
    merge_p = subparsers.add_parser("merge", help="Merge new records from a snapshot")
    merge_p.add_argument("file")
    merge_p.set_defaults(func=_cmd_merge)

    # --- clear ---
    clear_p = subparsers.add_parser("clear", help="Empty the store or one collection")
    clear_p.add_argument("--collection", choices=COLLECTIONS, default=None)
    clear_p.add_argument("--yes", action="store_true", help="Confirm the deletion")
    clear_p.set_defaults(func=_cmd_clear)

    # --- stats ---
    stats_p = subparsers.add_parser("stats", help="Show record counts and storage usage")
    stats_p.add_argument("--json", action="store_true")
    stats_p.set_defaults(func=_cmd_stats)

    # --- validate ---
    validate_p = subparsers.add_parser("validate", help="Check the stored snapshot")
    validate_p.set_defaults(func=_cmd_validate)

    # --- watch ---
    watch_p = subparsers.add_parser("watch", help="Ingest files dropped into a directory")
    watch_p.add_argument("directory")
    watch_p.set_defaults(func=_cmd_watch)

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: Optional[list[str]] = None) -> None:
    """
    Main entry point for the `legacy-kms` command.

    Parameters
    ----------
    argv:
        Argument list without the program name.  Defaults to sys.argv if None.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not logging.root.handlers:
        level = "INFO" if args.verbose else _config(args).LOG_LEVEL
        logging.basicConfig(
            level=getattr(logging, level, logging.WARNING),
            format="%(levelname)s  %(name)s  %(message)s",
        )

    try:
        args.func(args)
    except KMSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
