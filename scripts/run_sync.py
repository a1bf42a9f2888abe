"""
Run a Zoho Inventory sync from the command line.

Usage:
    # Incremental product sync
    python scripts/run_sync.py products

    # Full product resync
    python scripts/run_sync.py products --full

    # Orders since a date
    python scripts/run_sync.py orders --start-date 2024-05-01

    # Everything, in dependency order
    python scripts/run_sync.py all
"""

import argparse
import os
import sys
from datetime import date

# Allow imports from the project root when running as a script
_root_dir = os.path.join(os.path.dirname(__file__), "..")
sys.path.insert(0, _root_dir)

from dotenv import load_dotenv
load_dotenv(os.path.join(_root_dir, ".env"))

from config import get_settings, get_supabase_client  # noqa: E402
from exceptions import SyncInProgressError  # noqa: E402
from services.container import build_services  # noqa: E402

RESOURCES = ["products", "categories", "orders", "inventory", "all"]


def _print_result(result) -> None:
    status = "ABORTED" if result.aborted else "OK"
    print(f"[{status}] {result.summary}")
    for error in result.errors[:20]:
        print(f"    - {error}")
    if len(result.errors) > 20:
        print(f"    ... {len(result.errors) - 20} more")


def main():
    parser = argparse.ArgumentParser(
        description="Sync Zoho Inventory data into Supabase."
    )
    parser.add_argument(
        "resource",
        choices=RESOURCES,
        help="Resource to sync ('all' runs categories, products, orders, inventory)",
    )
    parser.add_argument(
        "--full",
        action="store_true",
        help="Ignore the last-sync cursor and walk every product page",
    )
    parser.add_argument(
        "--start-date",
        default=None,
        help="Only sync orders on or after this date (YYYY-MM-DD)",
    )

    args = parser.parse_args()

    start_date = None
    if args.start_date:
        try:
            start_date = date.fromisoformat(args.start_date)
        except ValueError:
            print(f"ERROR: Invalid date format '{args.start_date}'. Use YYYY-MM-DD.")
            sys.exit(1)

    services = build_services(get_supabase_client(), get_settings())
    sync = services.sync

    print("=" * 60)
    print(f"ZOHO SYNC: {args.resource}")
    print("=" * 60)

    try:
        if args.resource == "all":
            full = sync.perform_full_sync()
            for result in full.results:
                _print_result(result)
            sys.exit(0 if full.ok else 1)

        if args.resource == "products":
            result = sync.sync_products(full_sync=args.full)
        elif args.resource == "categories":
            result = sync.sync_categories()
        elif args.resource == "orders":
            result = sync.sync_orders(start_date=start_date)
        else:
            result = sync.sync_inventory()

    except SyncInProgressError as e:
        print(f"ERROR: {e.message}")
        sys.exit(2)

    _print_result(result)
    sys.exit(0 if result.ok else 1)


if __name__ == "__main__":
    main()
