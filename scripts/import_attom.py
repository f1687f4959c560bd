"""Enrich properties with ATTOM public-record data.

ATTOM bills per call, so by default this only looks up sold homes that are
still missing a sold price, size or year built:
1. Select sold rows needing enrichment (or take one address from the CLI)
2. Look each address up in ATTOM (allevents/detail)
3. Normalize and merge into the existing row (same property_id)

Usage:
    uv run python scripts/import_attom.py --enrich                 # Sold rows missing data
    uv run python scripts/import_attom.py --enrich --limit 10      # At most 10 lookups
    uv run python scripts/import_attom.py --address "185 Harriman Rd" --city Bedford
"""

import argparse
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from listings.config import Settings
from listings.corrections import load_corrections
from listings.database import init_db, make_engine, make_session_factory
from listings.models import Property
from listings.observability import configure_logging
from listings.pipeline import run_batch
from listings.schemas import AddressQuery
from listings.sink import PropertySink
from listings.sources import AttomAdapter
from listings.transformations import Normalizer


def query_for(prop: Property, default_state: str) -> AddressQuery | None:
    """Lookup for an existing row; city comes from its 'City, ST' location."""
    if not prop.address or not prop.location:
        return None
    city, _, state = prop.location.partition(",")
    return AddressQuery(
        address=prop.address,
        city=city.strip(),
        state=state.strip() or default_state,
        property_id=prop.property_id,
    )


def main():
    parser = argparse.ArgumentParser(description="Enrich properties from ATTOM")
    parser.add_argument("--enrich", action="store_true", help="Look up sold rows missing data")
    parser.add_argument("--address", help="Single street address to look up")
    parser.add_argument("--city", help="City for --address")
    parser.add_argument("--limit", type=int, help="Maximum lookups this run")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    if not (args.enrich or args.address):
        parser.print_help()
        return
    if args.address and not args.city:
        parser.error("--address requires --city")

    configure_logging(args.verbose)
    settings = Settings.from_env()
    if args.limit:
        settings.attom_quota = min(settings.attom_quota, args.limit)
    engine = make_engine(settings.database_url)
    init_db(engine)

    SessionLocal = make_session_factory(engine)
    with SessionLocal() as session:
        sink = PropertySink(session)
        if args.address:
            queries = [AddressQuery(address=args.address, city=args.city, state=settings.default_state)]
        else:
            rows = sink.sold_without_price(limit=args.limit)
            queries = [q for q in (query_for(p, settings.default_state) for p in rows) if q]
            print(f"\n=== {len(queries)} sold properties need enrichment ===")

        adapter = AttomAdapter.from_settings(settings)
        normalizer = Normalizer(settings, load_corrections(settings.corrections_path))
        try:
            summary = run_batch(
                adapter,
                queries,
                normalizer,
                sink,
                delay=settings.attom_delay,
                on_record=lambda r: print(
                    f"  ✓ {r.address}: sold ${r.sold_price or 0:,}, {r.sqft:,} sqft, built {r.year_built or '?'}"
                ),
            )
        finally:
            adapter.close()

        print(f"\n{summary}")
        if summary.quota_exhausted:
            print("ATTOM quota used up; rerun later for the remaining rows.")


if __name__ == "__main__":
    main()
