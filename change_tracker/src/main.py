from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import requests

from change_tracker.src.audit_log import AuditLog
from change_tracker.src.config import AppConfig
from change_tracker.src.diff import diff
from change_tracker.src.errors import DecodeError, StorageError
from change_tracker.src.postman_client import PostmanClient
from change_tracker.src.state_store import LocalStateStore
from change_tracker.src.tracker import SnapshotResult, SnapshotTracker


LOGGER = logging.getLogger("api-change-tracker")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="API collection change tracker")
    parser.add_argument("--config", help="Path to YAML or JSON config")
    parser.add_argument("--collections", help="Comma separated collection ids")
    parser.add_argument("--interval-seconds", type=int)
    parser.add_argument("--state-dir")
    parser.add_argument("--log-file")
    parser.add_argument("--postman-api-key")
    parser.add_argument("--max-depth", type=int)
    parser.add_argument("--max-changes", type=int)
    parser.add_argument("--hash-threshold", type=int)
    parser.add_argument("--ignore-path", action="append", dest="ignore_paths")
    parser.add_argument("--diff", nargs=2, metavar=("OLD", "NEW"), help="Diff two JSON files and exit")
    parser.add_argument("--verbose", action="store_true")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    return parser.parse_args(argv)


def parse_list(value: Optional[str]) -> Optional[List[str]]:
    if value is None:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def build_config(args: argparse.Namespace) -> AppConfig:
    config = AppConfig.from_file(Path(args.config)) if args.config else AppConfig.load()
    collections = parse_list(args.collections)
    if collections is not None:
        config.collections = collections
    if args.interval_seconds is not None:
        config.poll_interval_seconds = args.interval_seconds
    if args.state_dir:
        config.state_dir = Path(args.state_dir)
    if args.log_file:
        config.audit_log_file = args.log_file
    if args.postman_api_key:
        config.postman.api_key = args.postman_api_key
    if args.max_depth is not None:
        config.diff.max_depth = args.max_depth
    if args.max_changes is not None:
        config.diff.max_changes = args.max_changes
    if args.hash_threshold is not None:
        config.diff.hash_threshold = args.hash_threshold
    if args.ignore_paths:
        config.diff.ignore_paths = list(config.diff.ignore_paths) + args.ignore_paths
    return config


def run_once(config: AppConfig, client: PostmanClient, tracker: SnapshotTracker) -> List[SnapshotResult]:
    results: List[SnapshotResult] = []
    for collection_id in config.collections:
        try:
            content = client.get_collection(collection_id)
            results.append(tracker.process(collection_id, content))
            tracker.store.save_checkpoint(collection_id, datetime.now(timezone.utc))
        except requests.RequestException as exc:
            LOGGER.error("Fetching collection %s failed: %s", collection_id, exc)
        except (DecodeError, StorageError) as exc:
            LOGGER.error("Processing collection %s failed: %s", collection_id, exc)
    return results


def diff_files(old_path: str, new_path: str, config: AppConfig) -> int:
    try:
        changes = diff(Path(old_path).read_bytes(), Path(new_path).read_bytes(), config.diff)
    except DecodeError as exc:
        print(f"Failed to decode snapshot: {exc}", file=sys.stderr)
        return 1
    print(json.dumps([change.to_dict() for change in changes], indent=2))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    try:
        config = build_config(args)
    except (OSError, ValueError) as exc:
        print(f"Failed to load config: {exc}", file=sys.stderr)
        return 1

    if args.diff:
        return diff_files(args.diff[0], args.diff[1], config)

    if not config.collections:
        print("No collections configured. Set COLLECTIONS or --collections.", file=sys.stderr)
        return 1
    if not config.postman.api_key:
        print("No Postman API key configured. Set POSTMAN_API_KEY or --postman-api-key.", file=sys.stderr)
        return 1

    client = PostmanClient(
        api_key=config.postman.api_key,
        session=requests.Session(),
        base_url=config.postman.base_url,
        timeout_seconds=config.postman.timeout_seconds,
        max_retries=config.postman.max_retries,
    )
    tracker = SnapshotTracker(
        store=LocalStateStore(config.state_dir),
        options=config.diff,
        audit=AuditLog(config.audit_log_file),
    )
    while True:
        run_once(config, client, tracker)
        if args.once:
            break
        time.sleep(config.poll_interval_seconds)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
