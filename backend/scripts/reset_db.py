#!/usr/bin/env python3
"""Reset the HomeDesk record store from the bundled seed collections."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
import sys

# Ensure `app` package is importable when script is run directly.
CURRENT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = CURRENT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.core.config import get_settings
from app.services.record_store import RECORD_KINDS, WORK_ORDERS, JsonRecordStore


DEFAULT_SEED_DIR = PROJECT_ROOT.parent / "sample_data" / "db"


def reset(seed_dir: Path, data_dir: Path, keep_work_orders: bool = False) -> dict[str, int]:
    store = JsonRecordStore(data_dir)
    counts: dict[str, int] = {}
    for kind in RECORD_KINDS:
        if kind == WORK_ORDERS and keep_work_orders and store.read_all(kind) is not None:
            continue
        seed_path = seed_dir / f"{kind}.json"
        records = json.loads(seed_path.read_text(encoding="utf-8")) if seed_path.exists() else []
        if not store.replace_all(kind, records):
            raise SystemExit(f"Failed to write {kind} into {data_dir}")
        counts[kind] = len(records)
    return counts


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--seed-dir",
        type=Path,
        default=DEFAULT_SEED_DIR,
        help="Folder holding tenants.json, contractors.json, knowledge.json, work_orders.json",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Target data directory (defaults to DATA_DIR from settings)",
    )
    parser.add_argument(
        "--keep-work-orders",
        action="store_true",
        help="Leave an existing work_orders.json untouched",
    )
    args = parser.parse_args()

    seed_dir = args.seed_dir.expanduser().resolve()
    if not seed_dir.is_dir():
        raise SystemExit(f"Seed folder not found: {seed_dir}")
    data_dir = (args.data_dir or Path(get_settings().data_dir)).expanduser().resolve()

    counts = reset(seed_dir, data_dir, keep_work_orders=args.keep_work_orders)
    for kind, count in counts.items():
        print(f"{kind}: {count} record(s) -> {data_dir / (kind + '.json')}")


if __name__ == "__main__":
    main()
