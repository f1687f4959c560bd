from .attom import AttomAdapter
from .base import SourceAdapter, SourceError
from .http import new_client
from .redfin_api import RedfinSearchAdapter
from .redfin_scrape import (
    PlaywrightRenderer,
    RedfinPageAdapter,
    ScraperApiRenderer,
    parse_listing_history,
    parse_search_page,
)

__all__ = [
    "AttomAdapter",
    "PlaywrightRenderer",
    "RedfinPageAdapter",
    "RedfinSearchAdapter",
    "ScraperApiRenderer",
    "SourceAdapter",
    "SourceError",
    "new_client",
    "parse_listing_history",
    "parse_search_page",
]
