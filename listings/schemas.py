"""Pydantic validation schemas for listings data.

These are the small value types shared across the pipeline: the canonical
status and price-provenance enums, source queries, and the hand-curated
price corrections file.
"""

import re
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator


# =============================================================================
# ENUMS: Canonical value sets
# =============================================================================


class PropertyStatus(str, Enum):
    """Market status of a property."""

    ACTIVE = "active"
    """Listed for sale, no contract."""

    PENDING = "pending"
    """Under contract but not closed."""

    SOLD = "sold"
    """Closed sale. Expect a sale date and sold price where the source has them."""


class PriceSource(str, Enum):
    """Where the stored asking price came from, in decreasing confidence."""

    VERIFIED = "verified"
    """Taken from the manually curated corrections file."""

    LISTING = "listing"
    """A listing price field supplied by an API source."""

    SCRAPED = "scraped"
    """Recovered from page markup or an embedded state blob. Best effort."""

    ESTIMATED = "estimated"
    """Backfilled from the sold price by the reconciliation pass."""


# =============================================================================
# Source queries
# =============================================================================


class Region(BaseModel):
    """A search region known to the bulk property-search API."""

    name: str = Field(description="Town name, also used for district inference")
    region_id: str = Field(description="Numeric Redfin region id (without the '6_' type prefix)")
    zip_code: str | None = None

    @property
    def api_region_id(self) -> str:
        return self.region_id if "_" in self.region_id else f"6_{self.region_id}"


class RegionQuery(BaseModel):
    """One bulk-search call: a region, a listing status and a result limit."""

    region: Region
    status: Literal["sale", "sold"] = "sale"
    limit: int = Field(default=15, ge=1, le=350)

    def __str__(self) -> str:
        return f"{self.region.name} ({self.status})"


class AddressQuery(BaseModel):
    """One property lookup by street address."""

    address: str = Field(min_length=1)
    city: str
    state: str = "NY"
    property_id: str | None = Field(
        default=None,
        description="Existing row key; attached to results so enrichment merges into that row",
    )

    @property
    def locality(self) -> str:
        return f"{self.city}, {self.state}"

    def __str__(self) -> str:
        return f"{self.address}, {self.locality}"


# =============================================================================
# Price corrections file
# =============================================================================


def normalize_address_key(address: str | None) -> str:
    """Case-insensitive, whitespace-collapsed key for address lookups."""
    if not address:
        return ""
    return re.sub(r"\s+", " ", address).strip().lower()


class PriceCorrection(BaseModel):
    """A manually verified price entry, keyed by address in the corrections file."""

    model_config = ConfigDict(populate_by_name=True)

    listing_price: int | None = Field(default=None, alias="listingPrice", ge=0)
    sold_price: int | None = Field(default=None, alias="soldPrice", ge=0)
    verified: bool = False
    notes: str | None = None

    @field_validator("listing_price", "sold_price", mode="before")
    @classmethod
    def zero_is_missing(cls, v):
        """Treat 0 and blank strings as absent prices."""
        if v in (0, "", None):
            return None
        return v


class CorrectionsFile(BaseModel):
    """Address → PriceCorrection mapping with normalized lookup."""

    entries: dict[str, PriceCorrection] = Field(default_factory=dict)

    _index: dict[str, PriceCorrection] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context) -> None:
        self._index = {normalize_address_key(a): e for a, e in self.entries.items()}

    @classmethod
    def from_json(cls, data: dict) -> "CorrectionsFile":
        """Accept either the bare mapping or ``{"properties": {...}}``."""
        if isinstance(data.get("properties"), dict):
            data = data["properties"]
        return cls(entries={
            address: PriceCorrection.model_validate(entry)
            for address, entry in data.items()
            if isinstance(entry, dict)
        })

    def lookup(self, address: str | None) -> PriceCorrection | None:
        key = normalize_address_key(address)
        if not key:
            return None
        return self._index.get(key)

    def __len__(self) -> int:
        return len(self.entries)
