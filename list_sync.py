#!/usr/bin/env python3
"""
Sync the Ukraine DAO watch list from Notion into a local JSON list.

Fetches the public Notion collection (a size-hint preflight, then the full
result set), flattens each page into a record, keeps the ones with a Twitter
handle and merges them into the entries of --file. The merged list is written
to stdout; --file itself is never modified.

Usage:
    python list_sync.py --file ./list.json > list.new.json
    python list_sync.py -file ./list.json --duplicates merge --quiet
    python list_sync.py --file ./list.json --audit-file ./audit/sync.ndjson \
        --raw-json ./raw/response.json --log-file ./logs/sync.log --no-console

Env (optionally from a .env file, python-dotenv):
    see notion_query.py for NOTION_* settings
"""

from __future__ import annotations

import argparse
import json
import logging
import pathlib
import sys
from typing import Any, Dict, Optional, TextIO

from dotenv import find_dotenv, load_dotenv

from list_merge import DUPLICATE_POLICIES, EntryList, ListFileError, dump_list, load_list
from notion_extract import records_from_response
from notion_query import QueryConfig, QueryError, query_collection, roll_timestamped_file, size_hint

log = logging.getLogger("dao-list-sync")


class OutputError(Exception):
    pass


# ---------------- Logging setup ----------------


def setup_logging(*, quiet: bool, silent: bool, verbose: bool,
                  log_file: Optional[str], no_console: bool) -> None:
    level = logging.INFO
    if silent:
        level = logging.CRITICAL
    elif quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG

    root = logging.getLogger()
    root.setLevel(level)

    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter("%(asctime)s %(levelname)s %(message)s")

    if log_file:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(level)
        fh.setFormatter(fmt)
        root.addHandler(fh)

    # stdout carries the merged list
    if not no_console:
        sh = logging.StreamHandler(sys.stderr)
        sh.setLevel(level)
        sh.setFormatter(fmt)
        root.addHandler(sh)

# ---------------- Env ----------------


def load_env(dotenv_path: Optional[str]) -> Optional[str]:
    """Load NOTION_* settings from a .env file; variables already set win."""
    env_file = str(pathlib.Path(dotenv_path).resolve()) if dotenv_path else find_dotenv(usecwd=True)
    if not env_file:
        return None
    if not load_dotenv(env_file, override=False):
        if dotenv_path:
            log.warning("Nothing loaded from %s", env_file)
        return None
    log.info("Loaded env from: %s", env_file)
    return env_file

# ---------------- Pipeline ----------------


def fetch_collection(cfg: QueryConfig, *, audit: Optional[pathlib.Path] = None) -> Dict[str, Any]:
    try:
        preflight = query_collection(0, cfg, audit=audit)
    except QueryError as e:
        raise QueryError(f"preflight request failed: {e}", e.status_code, e.body) from e

    hint = size_hint(preflight)
    log.info("Collection size hint: %d", hint)

    try:
        return query_collection(hint, cfg, audit=audit)
    except QueryError as e:
        raise QueryError(f"request failed: {e}", e.status_code, e.body) from e


def sync_list(
    list_path: Optional[pathlib.Path],
    cfg: QueryConfig,
    *,
    out: TextIO,
    duplicates: str = "keep",
    alive_only: bool = False,
    audit: Optional[pathlib.Path] = None,
    raw_json: Optional[pathlib.Path] = None,
) -> Dict[str, Any]:
    """
    Fetch, extract, merge into the list at list_path and write the result to out.
    Returns the merge summary. Raises QueryError, ListFileError or OutputError.
    """
    resp = fetch_collection(cfg, audit=audit)

    if raw_json:
        try:
            raw_json.parent.mkdir(parents=True, exist_ok=True)
            raw_json.write_text(json.dumps(resp, ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError as e:
            raise OutputError(f"Failed to write raw response to {raw_json}: {e}") from e
        log.info("Raw response written to %s", raw_json)

    entry_list = load_list(list_path) if list_path else EntryList()
    records = records_from_response(resp, alive_only=alive_only)
    summary = entry_list.update(records, duplicates=duplicates)

    try:
        dump_list(entry_list, out)
        out.flush()
    except (OSError, TypeError, ValueError) as e:
        raise OutputError(f"Failed to marshal data: {e}") from e

    log.info("[SYNC SUMMARY] fetched=%d updated=%d added=%d duplicates=%d dropped=%d total=%d",
             len(records), summary["updated"], summary["added"], len(summary["duplicates"]),
             summary["dropped"], len(entry_list.entries))
    return summary

# ---------------- CLI ----------------


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Merge the Notion watch list into a JSON list file and print the result")
    ap.add_argument("-file", "--file", dest="file", default="",
                    help="Path to the file with existing data (missing file = empty list)")
    ap.add_argument("--duplicates", choices=DUPLICATE_POLICIES, default="keep",
                    help="What to do with entries sharing a Twitter handle in the existing file (default: keep)")
    ap.add_argument("--alive-only", action="store_true",
                    help="Ignore pages Notion marks as not alive (deleted)")

    # Logging controls
    ap.add_argument("--quiet", action="store_true",
                    help="Hide INFO logs (only warnings & errors)")
    ap.add_argument("--silent", action="store_true",
                    help="Hide almost all logging (critical only)")
    ap.add_argument("--verbose", action="store_true",
                    help="Show DEBUG logs (dropped pages etc.)")
    ap.add_argument("--log-file", help="Write logs to this file")
    ap.add_argument("--no-console", action="store_true",
                    help="Disable terminal logging entirely")

    ap.add_argument("--dotenv", help="Path to .env file to load (otherwise auto-discovered)")
    ap.add_argument("--audit-file",
                    help="Write NDJSON audit lines to a new timestamped file based on this path")
    ap.add_argument("--raw-json", help="Write the full Notion response to this path")
    return ap


def main(argv: Optional[list] = None) -> None:
    args = build_parser().parse_args(argv)

    setup_logging(quiet=args.quiet, silent=args.silent, verbose=args.verbose,
                  log_file=args.log_file, no_console=args.no_console)
    load_env(args.dotenv)

    try:
        cfg = QueryConfig.from_env()
    except ValueError as e:
        sys.exit(f"Invalid NOTION_* timeout setting: {e}")

    audit_path = None
    if args.audit_file:
        try:
            audit_path = roll_timestamped_file(pathlib.Path(args.audit_file))
        except OSError as e:
            log.error("Failed to create audit file: %s", e)
            sys.exit(f"Failed to create audit file based on {args.audit_file}: {e}")
    raw_path = pathlib.Path(args.raw_json).resolve() if args.raw_json else None

    try:
        sync_list(
            pathlib.Path(args.file) if args.file else None,
            cfg,
            out=sys.stdout,
            duplicates=args.duplicates,
            alive_only=args.alive_only,
            audit=audit_path,
            raw_json=raw_path,
        )
    except QueryError as e:
        log.error("%s", e)
        sys.exit(str(e))
    except ListFileError as e:
        log.error("%s", e)
        sys.exit(f"Failed to read list file {e}")
    except OutputError as e:
        log.error("%s", e)
        sys.exit(str(e))


if __name__ == "__main__":
    main()
