"""Import Redfin listings through the RapidAPI bulk search.

This script runs the fetch → normalize → upsert pipeline for each region:
1. Search Redfin for homes for sale (or recently sold) in each region
2. Normalize each home into a canonical PropertyRecord
3. Upsert into the properties table, merging with what is already stored

Usage:
    uv run python scripts/import_redfin.py --fetch                   # All default regions, for sale
    uv run python scripts/import_redfin.py --fetch --sold            # Recently sold homes
    uv run python scripts/import_redfin.py --fetch --regions Bedford Chappaqua --limit 30
    uv run python scripts/import_redfin.py --stats                   # Show statistics
"""

import argparse
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.orm import Session

from listings.config import Settings
from listings.corrections import load_corrections
from listings.database import init_db, make_engine, make_session_factory
from listings.observability import configure_logging
from listings.pipeline import run_batch
from listings.schemas import RegionQuery
from listings.sink import PropertySink
from listings.sources import RedfinSearchAdapter
from listings.stats import market_statistics, status_counts
from listings.transformations import Normalizer


def build_queries(settings: Settings, names: list[str] | None, status: str, limit: int) -> list[RegionQuery]:
    """Region queries for the requested town names (all configured regions by default)."""
    regions = settings.regions
    if names:
        wanted = {n.lower() for n in names}
        regions = [r for r in regions if r.name.lower() in wanted]
        missing = wanted - {r.name.lower() for r in regions}
        for name in sorted(missing):
            print(f"  Unknown region: {name}")
    return [RegionQuery(region=r, status=status, limit=limit) for r in regions]


# =============================================================================
# Statistics
# =============================================================================


def print_stats(session: Session):
    """Print status counts and sold-vs-asking statistics."""
    print("\n=== properties ===")
    for status, count in sorted(status_counts(session).items()):
        print(f"  {status}: {count:,}")

    stats = market_statistics(session)
    print("\n=== Sold vs. asking ===")
    print(f"Sold with both prices: {stats.total_sold:,}")
    if not stats.total_sold:
        return
    print(f"  Over asking:  {stats.sold_over}")
    print(f"  Under asking: {stats.sold_under}")
    print(f"  At asking:    {stats.sold_at}")
    print(f"  Avg difference: {stats.avg_percent_diff:+.2f}% (${stats.avg_dollar_diff:,})")

    print("\nBy district:")
    for d in stats.districts:
        print(f"  {d.district}: {d.count} sold, median ${d.median_sold_price:,}, avg {d.avg_dom:.0f} DOM")


# =============================================================================
# Main
# =============================================================================


def main():
    parser = argparse.ArgumentParser(description="Import Redfin listings via RapidAPI")
    parser.add_argument("--fetch", action="store_true", help="Fetch and upsert listings")
    parser.add_argument("--stats", action="store_true", help="Show statistics")
    parser.add_argument("--sold", action="store_true", help="Search recently sold homes instead of for sale")
    parser.add_argument("--regions", nargs="+", help="Region names (default: all configured)")
    parser.add_argument("--limit", type=int, default=15, help="Results per region (default: 15)")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    if not (args.fetch or args.stats):
        parser.print_help()
        return

    configure_logging(args.verbose)
    settings = Settings.from_env()
    engine = make_engine(settings.database_url)

    # Create tables if they don't exist
    print("Creating tables if needed...")
    init_db(engine)

    SessionLocal = make_session_factory(engine)
    with SessionLocal() as session:
        if args.fetch:
            status = "sold" if args.sold else "sale"
            queries = build_queries(settings, args.regions, status, args.limit)
            print(f"\n=== Fetching Redfin {status} listings for {len(queries)} regions ===")

            adapter = RedfinSearchAdapter.from_settings(settings)
            normalizer = Normalizer(settings, load_corrections(settings.corrections_path))
            try:
                summary = run_batch(
                    adapter,
                    queries,
                    normalizer,
                    PropertySink(session),
                    delay=settings.redfin_delay,
                    on_record=lambda r: print(f"  ✓ {r.address} ({r.status.value}, {r.district})"),
                )
            finally:
                adapter.close()
            print(f"\n{summary}")

        if args.stats:
            print_stats(session)


if __name__ == "__main__":
    main()
