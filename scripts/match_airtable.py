"""
Match Airtable records to local products and optionally copy their images.

Usage:
    # Report only
    python scripts/match_airtable.py

    # Write images onto matched products
    python scripts/match_airtable.py --apply

    # Looser matcher for a single-brand base
    python scripts/match_airtable.py --brand-matcher
"""

import argparse
import os
import sys

# Allow imports from the project root when running as a script
_root_dir = os.path.join(os.path.dirname(__file__), "..")
sys.path.insert(0, _root_dir)

from dotenv import load_dotenv
load_dotenv(os.path.join(_root_dir, ".env"))

from config import get_settings, get_supabase_client  # noqa: E402
from services.container import build_services  # noqa: E402
from services.matcher import BRAND_MATCHER, DEFAULT_MATCHER  # noqa: E402


def main():
    parser = argparse.ArgumentParser(
        description="Match Airtable records to products by SKU and name."
    )
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Write matched images to products (default is a dry run)",
    )
    parser.add_argument(
        "--brand-matcher",
        action="store_true",
        help="Use the lower-threshold matcher tuned for single-brand bases",
    )
    parser.add_argument(
        "--show",
        type=int,
        default=25,
        help="Number of matches to print (default: 25)",
    )

    args = parser.parse_args()

    services = build_services(get_supabase_client(), get_settings())
    if services.airtable_sync is None:
        print("ERROR: AIRTABLE_TOKEN and AIRTABLE_BASE_ID must be set.")
        sys.exit(1)

    matcher = BRAND_MATCHER if args.brand_matcher else DEFAULT_MATCHER
    report = services.airtable_sync.reconcile_images(dry_run=not args.apply, matcher=matcher)

    print("=" * 60)
    print("AIRTABLE MATCH REPORT" + (" (dry run)" if report.dry_run else ""))
    print("=" * 60)
    print(f"Records with images: {report.total}")
    print(f"Matched:             {len(report.matches)} ({report.match_rate:.1%})")
    print(f"Unmatched:           {len(report.unmatched_ids)}")
    if not report.dry_run:
        print(f"Products updated:    {report.updated}")

    print("")
    for match in report.matches[:args.show]:
        print(
            f"  {match.score:.2f} {match.match_type.value:<12} "
            f"{match.record.name or match.record.id} -> {match.product.sku or match.product.id}"
        )


if __name__ == "__main__":
    main()
