"""Reconcile asking prices on sold homes.

Usage:
    uv run python scripts/reconcile_prices.py --apply-corrections   # Write the corrections file onto matching rows
    uv run python scripts/reconcile_prices.py --estimate            # Verified fixes + estimate missing asking prices
    uv run python scripts/reconcile_prices.py --stats               # Sold vs. asking statistics
    uv run python scripts/reconcile_prices.py --corrections path/to/file.json --estimate --stats
"""

import argparse
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from listings.config import Settings
from listings.corrections import apply_corrections, load_corrections, reconcile_prices
from listings.database import init_db, make_engine, make_session_factory
from listings.observability import configure_logging
from listings.stats import market_statistics


def main():
    parser = argparse.ArgumentParser(description="Reconcile listing prices")
    parser.add_argument("--apply-corrections", action="store_true", help="Apply the corrections file to all matching rows")
    parser.add_argument("--estimate", action="store_true", help="Fix sold rows and estimate missing asking prices")
    parser.add_argument("--stats", action="store_true", help="Show statistics")
    parser.add_argument("--corrections", help="Corrections JSON (default: LISTING_CORRECTIONS_PATH)")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    if not (args.apply_corrections or args.estimate or args.stats):
        parser.print_help()
        return

    configure_logging(args.verbose)
    settings = Settings.from_env()
    engine = make_engine(settings.database_url)
    init_db(engine)
    corrections = load_corrections(args.corrections or settings.corrections_path)
    print(f"Loaded {len(corrections)} price corrections")

    SessionLocal = make_session_factory(engine)
    with SessionLocal() as session:
        if args.apply_corrections:
            print("\n=== Applying corrections ===")
            updated = apply_corrections(session, corrections)
            print(f"Updated {updated} properties")

        if args.estimate:
            print("\n=== Reconciling sold prices ===")
            summary = reconcile_prices(session, corrections)
            print(f"Examined: {summary.examined}")
            print(f"Corrected: {summary.corrected}")
            print(f"Estimated: {summary.estimated}")
            print(f"Unchanged: {summary.unchanged}")

        if args.stats:
            stats = market_statistics(session)
            print("\n=== Market statistics ===")
            print(f"Total sold: {stats.total_sold}")
            if stats.total_sold:
                print(f"Sold over asking: {stats.sold_over}")
                print(f"Sold under asking: {stats.sold_under}")
                print(f"Sold at asking: {stats.sold_at}")
                print(f"Average difference: {stats.avg_percent_diff:+.2f}%")
                print(f"Average $ difference: ${stats.avg_dollar_diff:,}")


if __name__ == "__main__":
    main()
