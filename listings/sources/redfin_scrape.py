"""Redfin page scraping.

A renderer turns a URL into HTML (ScraperAPI's rendering proxy or a local
headless browser). Parsing then tries, in order:

1. the embedded ``window.__reactServerState`` JSON blob (full home objects)
2. DOM home cards
3. bare ``/ST/City/Street-ZIP/home/<id>`` links, address read from the slug

Property pages additionally get prices from the property-history table.
Everything here is best effort; nothing is verified.
"""

import json
import logging
import re
from typing import Protocol

import httpx
from bs4 import BeautifulSoup
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from ..config import Settings
from ..ratelimit import RateLimiter
from ..transformations import REDFIN_BASE_URL, dig, first, to_date
from .base import SourceAdapter, SourceError
from .http import BROWSER_HEADERS, new_client

logger = logging.getLogger(__name__)

SCRAPERAPI_URL = "https://api.scraperapi.com/"

STATE_BLOB_PATTERN = re.compile(r"window\.__reactServerState(?:\.InitialContext)?\s*=\s*")
HOME_HREF_PATTERN = re.compile(r'href="(/[A-Z]{2}/[^"]+/home/\d+)"')
HOME_URL_PATTERN = re.compile(r"/([A-Z]{2})/([^/]+)/([^/]+)/home/(\d+)")
STREET_ZIP_PATTERN = re.compile(r"(.+)-(\d{5})$")

CARD_SELECTORS = [
    "[data-rf-test-id='mapHomeCard']",
    ".bp-Homecard",
    ".HomeCardContainer",
    ".MapHomeCard",
]
CARD_FIELDS = {
    "address": [".bp-Homecard__Address", ".homeAddressV2", "[data-rf-test-id='abp-streetLine']"],
    "price": [".bp-Homecard__Price--value", ".homecardV2Price", "[data-rf-test-id='abp-price']"],
    "beds": [".bp-Homecard__Stats--beds", ".HomeStatsV2 .stats:nth-of-type(1)"],
    "baths": [".bp-Homecard__Stats--baths", ".HomeStatsV2 .stats:nth-of-type(2)"],
    "sqft": [".bp-Homecard__Stats--sqft", ".HomeStatsV2 .stats:nth-of-type(3)"],
}
PAGE_FIELDS = {
    "price": ["[data-rf-test-id='abp-price'] .statsValue", ".home-main-stats-variant .statsValue"],
    "beds": ["[data-rf-test-id='abp-beds'] .statsValue"],
    "baths": ["[data-rf-test-id='abp-baths'] .statsValue"],
    "sqft": ["[data-rf-test-id='abp-sqFt'] .statsValue"],
    "address": ["[data-rf-test-id='abp-streetLine']", ".street-address"],
}
HISTORY_ROW_SELECTOR = ".PropertyHistoryEventRow, [data-rf-test-id='property-history-event-row']"


# =============================================================================
# Renderers
# =============================================================================


class Renderer(Protocol):
    def render(self, url: str) -> str: ...


class ScraperApiRenderer:
    """Fetch JS-rendered HTML through the ScraperAPI proxy."""

    def __init__(self, api_key: str, client: httpx.Client):
        if not api_key:
            raise ValueError("SCRAPERAPI_KEY is required")
        self.api_key = api_key
        self.client = client

    def render(self, url: str) -> str:
        response = self.client.get(
            SCRAPERAPI_URL,
            params={"api_key": self.api_key, "url": url, "render": "true"},
        )
        response.raise_for_status()
        return response.text


class PlaywrightRenderer:
    """Render pages in a local headless Chromium."""

    def __init__(self, timeout_ms: int = 30_000, wait_selector: str | None = None):
        self.timeout_ms = timeout_ms
        self.wait_selector = wait_selector

    def render(self, url: str) -> str:
        try:
            with sync_playwright() as p:
                browser = p.chromium.launch(headless=True)
                try:
                    page = browser.new_page(user_agent=BROWSER_HEADERS["User-Agent"])
                    page.goto(url, wait_until="domcontentloaded", timeout=self.timeout_ms)
                    if self.wait_selector:
                        try:
                            page.wait_for_selector(self.wait_selector, timeout=5_000)
                        except PlaywrightError:
                            logger.debug("Selector %s never appeared on %s", self.wait_selector, url)
                    return page.content()
                finally:
                    browser.close()
        except PlaywrightError as e:
            raise SourceError(f"browser render failed: {e}") from e


# =============================================================================
# Parsing
# =============================================================================


def _title(slug: str) -> str:
    return " ".join(w if w.isdigit() else w.capitalize() for w in slug.split("-") if w)


def parse_address_from_url(url: str) -> dict | None:
    """Read street, city, state, zip and property id from a Redfin home URL.

    >>> parse_address_from_url("https://www.redfin.com/NY/Bedford/185-Harriman-Rd-10506/home/123")["address"]
    '185 Harriman Rd'
    """
    match = HOME_URL_PATTERN.search(url)
    if not match:
        return None
    state, city, street_zip, property_id = match.groups()
    street_match = STREET_ZIP_PATTERN.match(street_zip)
    if not street_match:
        return None
    street, zip_code = street_match.groups()
    return {
        "propertyId": property_id,
        "address": _title(street),
        "city": _title(city),
        "state": state,
        "zip": zip_code,
        "url": url if url.startswith("http") else f"{REDFIN_BASE_URL}{url}",
    }


def parse_money(text: str | None) -> float | None:
    """'$1,250,000' → 1250000, '$1.2M' → 1200000, '—' → None."""
    if not text:
        return None
    match = re.search(r"([\d][\d,]*(?:\.\d+)?)\s*([KkMm])?", text)
    if not match:
        return None
    value = float(match.group(1).replace(",", ""))
    suffix = (match.group(2) or "").upper()
    if suffix == "K":
        value *= 1_000
    elif suffix == "M":
        value *= 1_000_000
    return value


def parse_state_blob(html: str) -> list[dict]:
    """Home objects from the embedded React server state, or []."""
    decoder = json.JSONDecoder()
    for match in STATE_BLOB_PATTERN.finditer(html):
        try:
            data, _ = decoder.raw_decode(html, match.end())
        except ValueError:
            logger.debug("Unparseable state blob at offset %d", match.end())
            continue
        homes = first(
            dig(data, "searchPageState", "homes", "homes"),
            dig(data, "InitialContext", "searchPageState", "homes", "homes"),
            dig(data, "searchResults", "homes", "homes"),
        )
        if isinstance(homes, list):
            return [h for h in homes if isinstance(h, dict)]
    return []


def _select_text(node, selectors: list[str]) -> str | None:
    for selector in selectors:
        found = node.select_one(selector)
        if found:
            text = found.get_text(" ", strip=True)
            if text:
                return text
    return None


def _split_card_address(text: str) -> dict:
    """'185 Harriman Rd, Bedford, NY 10506' → street/city/state/zip parts."""
    parts = [p.strip() for p in text.split(",")]
    result = {"address": parts[0]}
    if len(parts) >= 2:
        result["city"] = parts[1]
    if len(parts) >= 3:
        state_zip = parts[2].split()
        if state_zip:
            result["state"] = state_zip[0]
        if len(state_zip) > 1:
            result["zip"] = state_zip[1]
    return result


def parse_home_cards(soup: BeautifulSoup) -> list[dict]:
    """Flat records from search-result cards, trying each card selector in turn."""
    for selector in CARD_SELECTORS:
        cards = soup.select(selector)
        if not cards:
            continue
        records = []
        for card in cards:
            link = card.select_one("a[href*='/home/']")
            href = link.get("href") if link else None
            record = parse_address_from_url(href) if href else None
            record = record or {}
            if href and "url" not in record:
                record["url"] = href
            address_text = _select_text(card, CARD_FIELDS["address"])
            if address_text:
                record.update(_split_card_address(address_text))
            record["price"] = parse_money(_select_text(card, CARD_FIELDS["price"]))
            for field in ("beds", "baths", "sqft"):
                record[field] = parse_money(_select_text(card, CARD_FIELDS[field]))
            if record.get("address") or record.get("propertyId"):
                records.append(record)
        if records:
            return records
    return []


def parse_home_links(html: str) -> list[dict]:
    """Address-only records from bare home links, deduplicated in page order."""
    records, seen = [], set()
    for href in HOME_HREF_PATTERN.findall(html):
        if href in seen:
            continue
        seen.add(href)
        record = parse_address_from_url(href)
        if record:
            records.append(record)
    return records


def parse_search_page(html: str) -> list[dict]:
    """All homes on a search results page via the state blob → cards → links chain."""
    homes = parse_state_blob(html)
    if homes:
        return homes
    records = parse_home_cards(BeautifulSoup(html, "lxml"))
    if records:
        return records
    return parse_home_links(html)


def parse_listing_history(html: str) -> dict:
    """First (most recent) 'Listed' and 'Sold' prices from the property history.

    A sale date is only reported when the sale is newer than the latest
    listing; an old sale followed by a relisting is not a current sale.
    """
    soup = BeautifulSoup(html, "lxml")
    events = []
    for row in soup.select(HISTORY_ROW_SELECTOR):
        events.append((
            _select_text(row, [".date-col"]),
            (_select_text(row, [".event-col"]) or "").lower(),
            parse_money(_select_text(row, [".price-col"])),
        ))
    if not events:
        for row in soup.select("#property-history-transition-node table tr"):
            cells = [c.get_text(" ", strip=True) for c in row.find_all("td")]
            if len(cells) >= 3:
                events.append((cells[0], cells[1].lower(), parse_money(cells[2])))

    history = {}
    for position, (when, event, price) in enumerate(events):
        if not price:
            continue
        if "listed" in event and "listPrice" not in history:
            history["listPrice"] = price
            history["listingDate"] = to_date(when)
            history["_listed_at"] = position
        elif "sold" in event and "soldPrice" not in history:
            history["soldPrice"] = price
            history["_sold_at"] = position
            history["_sold_date"] = to_date(when)

    sold_at = history.pop("_sold_at", None)
    listed_at = history.pop("_listed_at", None)
    sold_date = history.pop("_sold_date", None)
    if sold_at is not None and (listed_at is None or sold_at < listed_at):
        history["saleDate"] = sold_date
    return {k: v for k, v in history.items() if v is not None}


def parse_property_page(html: str, url: str) -> dict | None:
    """One flat record for a single home page, or None if it has no address."""
    record = parse_address_from_url(url) or {"url": url}
    soup = BeautifulSoup(html, "lxml")
    address = _select_text(soup, PAGE_FIELDS["address"])
    if address:
        record.update(_split_card_address(address))
    for field in ("price", "beds", "baths", "sqft"):
        value = parse_money(_select_text(soup, PAGE_FIELDS[field]))
        if value is not None:
            record[field] = value
    record.update(parse_listing_history(html))
    if not record.get("address") and not record.get("propertyId"):
        return None
    return record


# =============================================================================
# Adapter
# =============================================================================


class RedfinPageAdapter(SourceAdapter):
    """Scrape a Redfin search page or a single home page by URL."""

    source = "redfin_page"

    def __init__(self, renderer: Renderer, limiter: RateLimiter | None = None):
        super().__init__(None, limiter)
        self.renderer = renderer

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        renderer: str = "scraperapi",
        client: httpx.Client | None = None,
    ) -> "RedfinPageAdapter":
        limiter = RateLimiter("redfin_page", min_interval=settings.scrape_delay)
        if renderer == "playwright":
            return cls(PlaywrightRenderer(), limiter)
        # Rendering through the proxy is slow
        client = client or new_client(timeout=max(settings.http_timeout, 60.0))
        adapter = cls(ScraperApiRenderer(settings.scraperapi_key, client), limiter)
        adapter.client = client
        return adapter

    def _fetch(self, url: str) -> list[dict]:
        html = self.renderer.render(url)
        if not html or not html.strip():
            raise SourceError("empty page")

        if HOME_URL_PATTERN.search(url):
            record = parse_property_page(html, url)
            records = [record] if record else []
        else:
            records = parse_search_page(html)

        for record in records:
            record["_scraped"] = True
        return records
