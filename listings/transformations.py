"""Pydantic models for raw → canonical property transformation.

Every source hands back loosely-typed JSON in its own shape. A per-source
extractor maps that onto ``RawListing`` (all fields optional, the bronze
layer), and ``PropertyRecord.from_raw`` applies the canonical rules to produce
the silver record that the sink upserts:

- Manually curated price overrides beat any source price
- A dedicated sold-price field beats the generic price for sold homes
- District is inferred from the town name, never left empty
- Lot size is converted from square feet to acres (43,560 sqft per acre)
- Status is derived from sale date / pending flag; a bare default never demotes a stored status
- Days on market is the listing → sale day difference, at least 1
- AVM values are kept separately and never become an asking price
"""

import logging
import math
import random
import string
import time
from datetime import date, datetime, timezone
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .config import Settings
from .schemas import CorrectionsFile, PriceCorrection, PriceSource, PropertyStatus

logger = logging.getLogger(__name__)

SQFT_PER_ACRE = 43_560
REDFIN_BASE_URL = "https://www.redfin.com"

_MISSING = object()


# =============================================================================
# Loose value coercion
# =============================================================================


def to_number(value: Any) -> float | None:
    """Coerce '1,234', '$899,000', 2.5, {'value': 3} and friends to a float."""
    if isinstance(value, dict):
        value = value.get("value", value.get("amount"))
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", "").replace("$", "")
        if not text or text in {"—", "-", "N/A", "null"}:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    # NaN and Infinity slip through json.loads and float()
    return number if math.isfinite(number) else None


def to_date(value: Any) -> date | None:
    """Parse ISO strings, US-style dates and epoch timestamps (s or ms)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000 if value > 100_000_000_000 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc).date()
        except (OverflowError, OSError, ValueError):
            return None
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    for fmt in ("%m/%d/%Y", "%b %d, %Y", "%B %d, %Y", "%Y/%m/%d"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def dig(obj: Any, *path: str | int, default: Any = None) -> Any:
    """Walk nested dicts/lists. Dict keys match case-insensitively.

    Vendor payloads mix ``bathsTotal`` and ``bathstotal`` for the same field,
    so an exact-key miss falls back to a lowercase comparison.
    """
    current = obj
    for key in path:
        if isinstance(current, list):
            if isinstance(key, int) and -len(current) <= key < len(current):
                current = current[key]
                continue
            return default
        if not isinstance(current, dict):
            return default
        if key in current:
            current = current[key]
            continue
        lowered = str(key).lower()
        current = next(
            (v for k, v in current.items() if isinstance(k, str) and k.lower() == lowered),
            _MISSING,
        )
        if current is _MISSING:
            return default
    return default if current is None else current


def first(*values: Any) -> Any:
    """Return the first value that is not None/empty."""
    for value in values:
        if value is None or value == "" or value == [] or value == {}:
            continue
        return value
    return None


def unwrap(value: Any) -> Any:
    """Redfin wraps many scalars as ``{"value": x}``."""
    if isinstance(value, dict) and "value" in value:
        return value["value"]
    return value


# =============================================================================
# Canonical rules
# =============================================================================


def infer_district(
    candidates: list[str | None],
    rules: list[tuple[str, str]],
    fallback: str,
) -> tuple[str, bool]:
    """Match town names against ordered (needle, label) rules.

    Each candidate string is tried in turn; the first rule whose needle is a
    case-insensitive substring wins. Returns (label, matched).
    """
    for candidate in candidates:
        if not candidate:
            continue
        lowered = candidate.lower()
        for needle, label in rules:
            if needle.lower() in lowered:
                return label, True
    return fallback, False


def lot_to_acres(
    lot_sqft: float | None,
    acres: float | None,
    default: float,
) -> tuple[float, bool]:
    """Return (acres, estimated). Source acres win, then sqft / 43,560."""
    if acres is not None and acres > 0:
        return round(acres, 2), False
    if lot_sqft is not None and lot_sqft > 0:
        return round(lot_sqft / SQFT_PER_ACRE, 2), False
    return default, True


def derive_status(
    sale_date: date | None,
    pending: bool,
    status_hint: str | None = None,
    sold_price: float | None = None,
) -> PropertyStatus:
    """Pending flag → pending; sale date → sold; else active."""
    hint = (status_hint or "").strip().lower()
    if pending or hint in {"pending", "contingent", "under contract"}:
        return PropertyStatus.PENDING
    if sale_date is not None:
        return PropertyStatus.SOLD
    if hint in {"sold", "closed"} and sold_price:
        return PropertyStatus.SOLD
    return PropertyStatus.ACTIVE


def days_on_market(
    listing_date: date | None,
    sale_date: date | None,
    reported: float | None = None,
) -> int:
    """Listing → sale day difference (at least 1), else the reported figure."""
    if listing_date and sale_date:
        return max((sale_date - listing_date).days, 1)
    if reported is None:
        return 0
    return max(int(reported), 0)


def placeholder_property_id(
    clock: Callable[[], float] = time.time,
    rng: random.Random | None = None,
) -> str:
    """Generated key for records whose source has no id: gen-<ts>-<6 chars>."""
    rng = rng or random.Random()
    suffix = "".join(rng.choices(string.ascii_lowercase + string.digits, k=6))
    return f"gen-{int(clock())}-{suffix}"


# =============================================================================
# Bronze: loose per-source extraction
# =============================================================================


class RawListing(BaseModel):
    """One source record mapped onto common field names, nothing enforced."""

    model_config = ConfigDict(extra="ignore")

    property_id: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    location: str | None = None
    region_name: str | None = Field(
        default=None,
        description="Town name of the query that produced this record",
    )

    beds: float | None = None
    baths: float | None = None
    sqft: float | None = None
    lot_sqft: float | None = None
    acres: float | None = None
    year_built: int | None = None
    property_type: str | None = None
    lat: float | None = None
    lng: float | None = None

    price: float | None = Field(default=None, description="Generic price; meaning depends on status")
    list_price: float | None = None
    sold_price: float | None = None
    avm_value: float | None = None
    listing_date: date | None = None
    sale_date: date | None = None
    pending: bool = False
    status_hint: str | None = None
    days_on_market: float | None = None

    mls_id: str | None = None
    url: str | None = None
    photos: list = Field(default_factory=list)
    description: str | None = None
    scraped: bool = False

    @field_validator(
        "beds", "baths", "sqft", "lot_sqft", "acres", "lat", "lng",
        "price", "list_price", "sold_price", "avm_value", "days_on_market",
        mode="before",
    )
    @classmethod
    def coerce_number(cls, v):
        return to_number(v)

    @field_validator("year_built", mode="before")
    @classmethod
    def coerce_year(cls, v):
        number = to_number(v)
        return int(number) if number else None

    @field_validator("listing_date", "sale_date", mode="before")
    @classmethod
    def coerce_date(cls, v):
        return to_date(v)

    @field_validator(
        "property_id", "address", "city", "state", "zip_code", "mls_id",
        "property_type", "status_hint", "location",
        mode="before",
    )
    @classmethod
    def coerce_text(cls, v):
        if v is None or isinstance(v, (dict, list)):
            return None
        text = str(v).strip()
        return text or None

    @field_validator("photos", mode="before")
    @classmethod
    def coerce_photos(cls, v):
        if not v:
            return []
        if isinstance(v, dict):
            return [v]
        return list(v) if isinstance(v, (list, tuple)) else [v]

    @field_validator("pending", "scraped", mode="before")
    @classmethod
    def coerce_flag(cls, v):
        return bool(v)


def absolute_redfin_url(url: str | None) -> str | None:
    if not url:
        return None
    return url if url.startswith("http") else f"{REDFIN_BASE_URL}{url}"


REDFIN_PROPERTY_TYPES = {3: "Condo", 6: "Single Family", 13: "Townhouse"}


def extract_redfin_home(item: dict) -> RawListing:
    """Map a Redfin home (bulk API ``{homeData, listingData}`` or page state) to RawListing."""
    home = item.get("homeData") if isinstance(item.get("homeData"), dict) else item
    listing = item.get("listingData") if isinstance(item.get("listingData"), dict) else {}
    address_info = home.get("addressInfo") or {}

    price = first(
        dig(home, "priceInfo", "amount"),
        dig(home, "priceInfo", "homePrice", "int64Value"),
        unwrap(home.get("price")),
        listing.get("price"),
    )
    last_sold_price = dig(home, "lastSaleData", "lastSoldPrice")
    last_sold_date = dig(home, "lastSaleData", "lastSoldDate")
    sold_price = first(listing.get("soldPrice"), home.get("soldPrice"))
    sale_date = first(listing.get("soldDate"), home.get("soldDate"), home.get("saleDate"))
    status_hint = first(item.get("_query_status"), home.get("listingStatus"), home.get("status"))
    if isinstance(status_hint, (int, dict)):
        status_hint = None

    # Search-sold rows carry the sale in lastSaleData; active rows may too, but
    # there it is an older sale and the live price is the asking price.
    is_sold = str(status_hint or "").lower() == "sold" or (
        last_sold_price and last_sold_date and not price
    )
    if is_sold:
        status_hint = "sold"
        sold_price = first(sold_price, last_sold_price)
        sale_date = first(sale_date, last_sold_date)

    property_type = home.get("propertyType")
    if isinstance(property_type, int):
        property_type = REDFIN_PROPERTY_TYPES.get(property_type)

    city = first(address_info.get("city"), home.get("city"))
    state = first(address_info.get("state"), home.get("state"))

    return RawListing(
        property_id=first(home.get("propertyId"), item.get("propertyId"), home.get("listingId")),
        address=first(
            address_info.get("formattedStreetLine"),
            unwrap(home.get("streetLine")),
            home.get("addressLine1"),
            home.get("address") if isinstance(home.get("address"), str) else None,
        ),
        city=city,
        state=state,
        zip_code=first(address_info.get("zip"), unwrap(home.get("postalCode")), home.get("zip")),
        location=f"{city}, {state}" if city and state else None,
        region_name=item.get("_region"),
        beds=first(home.get("beds"), listing.get("beds")),
        baths=first(home.get("baths"), dig(home, "bathInfo", "computedTotalBaths"), listing.get("baths")),
        sqft=first(dig(home, "sqftInfo", "amount"), unwrap(home.get("sqft")), listing.get("sqft")),
        lot_sqft=first(dig(home, "lotSize", "amount"), unwrap(home.get("lotSize")), listing.get("lotSize")),
        year_built=first(dig(home, "yearBuilt", "yearBuilt"), unwrap(home.get("yearBuilt")), listing.get("yearBuilt")),
        property_type=property_type,
        lat=first(
            dig(address_info, "centroid", "centroid", "latitude"),
            dig(address_info, "centroid", "lat"),
            dig(home, "latLong", "value", "latitude"),
            dig(home, "latLng", "latitude"),
        ),
        lng=first(
            dig(address_info, "centroid", "centroid", "longitude"),
            dig(address_info, "centroid", "lon"),
            dig(home, "latLong", "value", "longitude"),
            dig(home, "latLng", "longitude"),
        ),
        price=price,
        list_price=listing.get("listPrice"),
        sold_price=sold_price,
        listing_date=first(listing.get("listingDate"), home.get("listingAddedDate"), home.get("listingDate")),
        sale_date=sale_date,
        pending=bool(listing.get("pending") or home.get("pending")),
        status_hint=status_hint,
        days_on_market=first(
            dig(home, "daysOnMarket", "daysOnMarket"),
            unwrap(home.get("dom")),
            listing.get("daysOnMarket"),
            home.get("daysOnMarket"),
        ),
        mls_id=first(unwrap(home.get("mlsId")), listing.get("mlsId"), home.get("mlsNumber")),
        url=absolute_redfin_url(home.get("url")),
        photos=first(dig(home, "photos", "smallPhotos"), home.get("photosInfo"), home.get("photos")),
        description=first(listing.get("description"), home.get("description")),
    )


def _latest_sale(history: list) -> dict:
    sales = [s for s in history if isinstance(s, dict)]
    if not sales:
        return {}
    return max(sales, key=lambda s: str(first(dig(s, "saleTransDate"), dig(s, "amount", "salerecdate")) or ""))


def extract_attom_property(item: dict) -> RawListing:
    """Map an ATTOM ``allevents/detail`` property object to RawListing."""
    latest = _latest_sale(dig(item, "saleHistory", default=[]))
    sale_amount = first(
        dig(item, "sale", "amount", "saleamt"),
        dig(latest, "amount", "saleamt"),
        dig(latest, "saleTransAmount", "saleAmt"),
    )
    sale_date = first(
        dig(item, "sale", "saleTransDate"),
        dig(item, "sale", "amount", "salerecdate"),
        dig(latest, "saleTransDate"),
    )
    attom_id = dig(item, "identifier", "attomId")
    city = dig(item, "address", "locality")
    state = dig(item, "address", "countrySubd")

    return RawListing(
        property_id=first(item.get("_property_id"), f"attom-{attom_id}" if attom_id else None),
        address=first(dig(item, "address", "line1"), dig(item, "address", "oneLine")),
        city=city,
        state=state,
        zip_code=dig(item, "address", "postal1"),
        location=f"{city}, {state}" if city and state else None,
        region_name=item.get("_region"),
        beds=dig(item, "building", "rooms", "beds"),
        baths=first(dig(item, "building", "rooms", "bathsTotal"), dig(item, "building", "rooms", "bathsFull")),
        sqft=first(
            dig(item, "building", "size", "universalSize"),
            dig(item, "building", "size", "livingSize"),
            dig(item, "building", "size", "bldgSize"),
        ),
        acres=dig(item, "lot", "lotSize1"),
        lot_sqft=dig(item, "lot", "lotSize2"),
        year_built=dig(item, "summary", "yearBuilt"),
        property_type=first(dig(item, "summary", "propClass"), dig(item, "summary", "propType")),
        lat=dig(item, "location", "latitude"),
        lng=dig(item, "location", "longitude"),
        list_price=latest.get("listingPrice"),
        sold_price=sale_amount,
        sale_date=sale_date,
        status_hint="sold" if sale_amount else None,
        avm_value=dig(item, "avm", "amount", "value"),
    )


_GENERIC_ALIASES = {
    "property_id": ("property_id", "propertyId", "id", "attomId"),
    "address": ("address", "streetAddress", "street", "formattedStreetLine"),
    "city": ("city", "town", "locality"),
    "state": ("state", "stateCode"),
    "zip_code": ("zip", "zipCode", "zip_code", "postalCode"),
    "location": ("location",),
    "region_name": ("_region", "region"),
    "beds": ("beds", "bedrooms"),
    "baths": ("baths", "bathrooms", "bathsTotal"),
    "sqft": ("sqft", "squareFeet", "livingArea"),
    "lot_sqft": ("lotSize", "lotSizeSqft", "lot_sqft"),
    "acres": ("acres", "lotAcres"),
    "year_built": ("yearBuilt", "year_built"),
    "property_type": ("propertyType", "property_type"),
    "lat": ("lat", "latitude"),
    "lng": ("lng", "lon", "longitude"),
    "price": ("price",),
    "list_price": ("listPrice", "listingPrice", "askingPrice", "asking_price"),
    "sold_price": ("soldPrice", "lastSoldPrice", "salePrice", "sold_price"),
    "avm_value": ("avm", "avmValue", "avm_value"),
    "listing_date": ("listingDate", "listDate", "listing_date"),
    "sale_date": ("saleDate", "soldDate", "lastSoldDate", "sale_date"),
    "pending": ("pending", "isPending"),
    "status_hint": ("_query_status", "status", "listingStatus"),
    "days_on_market": ("daysOnMarket", "dom", "days_on_market"),
    "mls_id": ("mlsId", "mls_id", "mlsNumber"),
    "url": ("url", "redfinUrl", "source_url", "href"),
    "photos": ("photos",),
    "description": ("description",),
    "scraped": ("_scraped", "scraped"),
}


def extract_generic(item: dict) -> RawListing:
    """Map a flat dict (CSV rows, hand-built fixtures, DOM scrapes) to RawListing."""
    values = {}
    for field, aliases in _GENERIC_ALIASES.items():
        value = first(*(item.get(alias) for alias in aliases))
        if value is not None:
            values[field] = value
    if "url" in values:
        values["url"] = absolute_redfin_url(str(values["url"]))
    return RawListing(**values)


def extract_scraped_home(item: dict) -> RawListing:
    """Scraped records are either Redfin state-blob homes or flat DOM dicts."""
    if any(key in item for key in ("homeData", "streetLine", "priceInfo", "addressInfo")):
        raw = extract_redfin_home(item)
        history = {
            "list_price": to_number(item.get("listPrice")),
            "sold_price": to_number(item.get("soldPrice")),
        }
        raw = raw.model_copy(update={k: v for k, v in history.items() if v and not getattr(raw, k)})
    else:
        raw = extract_generic(item)
    return raw.model_copy(update={"scraped": True})


EXTRACTORS: dict[str, Callable[[dict], RawListing]] = {
    "redfin_api": extract_redfin_home,
    "attom": extract_attom_property,
    "redfin_page": extract_scraped_home,
    "generic": extract_generic,
}


# =============================================================================
# Silver: canonical property record
# =============================================================================


class PropertyRecord(BaseModel):
    """Canonical Property ready for upsert.

    Field descriptions encode the normalization rules. ``estimated_fields``
    names the fields that were filled by defaults rather than by the source;
    the sink never lets those overwrite stored values.
    """

    property_id: str = Field(min_length=1, description="Upsert conflict key")
    address: str | None = None

    beds: int = Field(default=0, ge=0)
    baths: float = Field(default=0, ge=0)
    sqft: int = Field(default=0, ge=0)
    acres: float = Field(default=0, ge=0, description="Lot size in acres, 2 decimals")
    year_built: int | None = None
    property_type: str | None = None

    district: str = Field(min_length=1, description="School district label, never empty")
    lat: float | None = None
    lng: float | None = None
    location: str | None = Field(default=None, description="'City, ST'")

    asking_price: int | None = Field(default=None, ge=0)
    sold_price: int | None = Field(default=None, ge=0)
    asking_price_source: PriceSource | None = None
    avm_value: int | None = Field(
        default=None,
        ge=0,
        description="Automated valuation. Low-confidence estimate, kept apart from asking_price",
    )
    listing_date: date | None = None
    sale_date: date | None = None
    dom: int = Field(default=0, ge=0, description="Days on market")
    status: PropertyStatus = PropertyStatus.ACTIVE
    verified: bool = False

    mls_id: str | None = None
    source_url: str | None = None
    photos: list = Field(default_factory=list)
    description: str | None = None
    source: str = "generic"

    estimated_fields: list[str] = Field(default_factory=list)

    @field_validator("beds", "sqft", "dom", mode="before")
    @classmethod
    def non_negative_int(cls, v):
        """Missing counts become 0; negatives are clamped to 0."""
        number = to_number(v)
        if number is None or number < 0:
            return 0
        return int(round(number))

    @field_validator("baths", "acres", mode="before")
    @classmethod
    def non_negative_float(cls, v):
        number = to_number(v)
        if number is None or number < 0:
            return 0.0
        return number

    @field_validator("asking_price", "sold_price", "avm_value", mode="before")
    @classmethod
    def positive_price_or_none(cls, v):
        """Prices are whole dollars; 0 or negative means unknown."""
        number = to_number(v)
        if number is None or number <= 0:
            return None
        return int(round(number))

    @field_validator("year_built", mode="before")
    @classmethod
    def plausible_year(cls, v):
        number = to_number(v)
        if number is None or not 1600 <= number <= date.today().year + 2:
            return None
        return int(number)

    @model_validator(mode="after")
    def sold_dates_are_ordered(self):
        """A sale before its listing date is a source error; drop the listing date."""
        if self.listing_date and self.sale_date and self.sale_date < self.listing_date:
            self.listing_date = None
        return self

    @classmethod
    def from_raw(
        cls,
        raw: RawListing,
        settings: Settings,
        source: str,
        property_id: str,
        correction: PriceCorrection | None = None,
    ) -> "PropertyRecord":
        """Apply the canonical rules to one RawListing."""
        estimated = []

        status = derive_status(
            raw.sale_date,
            raw.pending,
            raw.status_hint,
            first(raw.sold_price, raw.price),
        )
        has_status_evidence = any(
            (raw.pending, raw.sale_date, raw.status_hint, raw.price, raw.list_price, raw.sold_price)
        )
        if status is PropertyStatus.ACTIVE and not has_status_evidence:
            estimated.append("status")

        # Prices: dedicated fields first, the generic price fills the gap
        sold_price = raw.sold_price
        if status is PropertyStatus.SOLD and not sold_price:
            sold_price = raw.price
        asking_price = raw.list_price
        if not asking_price and status is not PropertyStatus.SOLD:
            asking_price = raw.price
        asking_source = None
        if asking_price:
            asking_source = PriceSource.SCRAPED if raw.scraped else PriceSource.LISTING

        verified = False
        if correction:
            if correction.listing_price:
                asking_price = correction.listing_price
                asking_source = PriceSource.VERIFIED if correction.verified else PriceSource.ESTIMATED
            if correction.sold_price:
                sold_price = correction.sold_price
            verified = correction.verified

        district, matched = infer_district(
            [raw.city, raw.location, raw.region_name],
            settings.district_rules,
            settings.fallback_district,
        )
        if not matched:
            estimated.append("district")

        acres, acres_estimated = lot_to_acres(raw.lot_sqft, raw.acres, settings.default_acres)
        if acres_estimated:
            estimated.append("acres")

        lat, lng = raw.lat, raw.lng
        if lat is None or lng is None:
            lat, lng = settings.default_lat, settings.default_lng
            estimated.extend(["lat", "lng"])

        property_type = raw.property_type
        if not property_type:
            property_type = settings.default_property_type
            estimated.append("property_type")

        location = raw.location
        if not location and raw.city:
            location = f"{raw.city}, {raw.state or settings.default_state}"

        return cls(
            property_id=property_id,
            address=raw.address,
            beds=raw.beds,
            baths=raw.baths,
            sqft=raw.sqft,
            acres=acres,
            year_built=raw.year_built,
            property_type=property_type,
            district=district,
            lat=lat,
            lng=lng,
            location=location,
            asking_price=asking_price,
            sold_price=sold_price,
            asking_price_source=asking_source,
            avm_value=raw.avm_value,
            listing_date=raw.listing_date,
            sale_date=raw.sale_date,
            dom=days_on_market(raw.listing_date, raw.sale_date, raw.days_on_market),
            status=status,
            verified=verified,
            mls_id=raw.mls_id,
            source_url=raw.url,
            photos=raw.photos,
            description=raw.description,
            source=source,
            estimated_fields=estimated,
        )


class Normalizer:
    """Maps source records to PropertyRecords using injected settings and overrides."""

    def __init__(
        self,
        settings: Settings,
        corrections: CorrectionsFile | None = None,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
    ):
        self.settings = settings
        self.corrections = corrections or CorrectionsFile()
        self.clock = clock
        self.rng = rng or random.Random()

    def extract(self, item: dict, source: str) -> RawListing:
        extractor = EXTRACTORS.get(source, extract_generic)
        return extractor(item)

    def normalize(
        self,
        item: dict | RawListing,
        source: str = "generic",
        region_name: str | None = None,
    ) -> PropertyRecord | None:
        """Normalize one record. Returns None (and logs) for unidentifiable records."""
        raw = item if isinstance(item, RawListing) else self.extract(item, source)
        if region_name and not raw.region_name:
            raw = raw.model_copy(update={"region_name": region_name})

        if not raw.property_id and not raw.address:
            logger.warning("Dropping %s record with no address or id", source)
            return None

        property_id = raw.property_id or placeholder_property_id(self.clock, self.rng)
        return PropertyRecord.from_raw(
            raw,
            settings=self.settings,
            source=source,
            property_id=property_id,
            correction=self.corrections.lookup(raw.address),
        )
