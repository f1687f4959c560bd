"""Delete every row from the properties table.

Usage:
    uv run python scripts/reset_properties.py --yes
"""

import argparse
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from listings.config import Settings
from listings.database import clear_properties, init_db, make_engine, make_session_factory


def main():
    parser = argparse.ArgumentParser(description="Clear the properties table")
    parser.add_argument("--yes", action="store_true", help="Really delete all rows")
    args = parser.parse_args()

    if not args.yes:
        parser.print_help()
        print("\nRefusing to delete without --yes")
        return

    settings = Settings.from_env()
    engine = make_engine(settings.database_url)
    init_db(engine)
    SessionLocal = make_session_factory(engine)
    with SessionLocal() as session:
        deleted = clear_properties(session)
    print(f"Deleted {deleted:,} properties")


if __name__ == "__main__":
    main()
