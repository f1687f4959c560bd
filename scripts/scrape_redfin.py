"""Scrape Redfin search or home pages and upsert what they show.

Search pages yield every home card on the page; home pages yield one record
with listed/sold prices from the property history. Scraped prices are
best effort and stored with asking_price_source = 'scraped'.

Usage:
    uv run python scripts/scrape_redfin.py URL [URL ...]
    uv run python scripts/scrape_redfin.py --renderer playwright URL
    uv run python scripts/scrape_redfin.py --urls-file urls.txt
"""

import argparse
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from listings.config import Settings
from listings.corrections import load_corrections
from listings.database import init_db, make_engine, make_session_factory
from listings.observability import configure_logging
from listings.pipeline import run_batch
from listings.sink import PropertySink
from listings.sources import RedfinPageAdapter
from listings.transformations import Normalizer


def read_urls(args) -> list[str]:
    urls = list(args.urls)
    if args.urls_file:
        lines = Path(args.urls_file).read_text(encoding="utf-8").splitlines()
        urls.extend(line.strip() for line in lines if line.strip() and not line.startswith("#"))
    return urls


def main():
    parser = argparse.ArgumentParser(description="Scrape Redfin pages into properties")
    parser.add_argument("urls", nargs="*", help="Redfin search or home URLs")
    parser.add_argument("--urls-file", help="File with one URL per line")
    parser.add_argument(
        "--renderer",
        choices=["scraperapi", "playwright"],
        default="scraperapi",
        help="How to render pages (default: scraperapi)",
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    urls = read_urls(args)
    if not urls:
        parser.print_help()
        return

    configure_logging(args.verbose)
    settings = Settings.from_env()
    engine = make_engine(settings.database_url)
    init_db(engine)

    print(f"\n=== Scraping {len(urls)} Redfin pages via {args.renderer} ===")
    adapter = RedfinPageAdapter.from_settings(settings, renderer=args.renderer)
    normalizer = Normalizer(settings, load_corrections(settings.corrections_path))

    SessionLocal = make_session_factory(engine)
    with SessionLocal() as session:
        try:
            summary = run_batch(
                adapter,
                urls,
                normalizer,
                PropertySink(session),
                delay=settings.scrape_delay,
                on_record=lambda r: print(f"  ✓ {r.address}: ${r.asking_price or r.sold_price or 0:,} ({r.status.value})"),
            )
        finally:
            adapter.close()

    print(f"\n{summary}")


if __name__ == "__main__":
    main()
