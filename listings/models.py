"""SQLAlchemy models for listings data.

One table, ``properties``, mirrors the canonical Property record. Rows are
created on the first upsert from any source and merged on later ones; see
``listings.sink`` for the merge rules.
"""

from datetime import date, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


class Property(Base):
    """A residential property with its latest listing/sale facts."""

    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    property_id: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True,
        doc="Stable external identifier (Redfin propertyId, ATTOM id, or generated placeholder)",
    )

    # Physical
    address: Mapped[str | None] = mapped_column(Text)
    beds: Mapped[int] = mapped_column(Integer, default=0)
    baths: Mapped[float] = mapped_column(Float, default=0)
    sqft: Mapped[int] = mapped_column(Integer, default=0)
    acres: Mapped[float | None] = mapped_column(Float)
    year_built: Mapped[int | None] = mapped_column(Integer)
    property_type: Mapped[str | None] = mapped_column(String(50))

    # Location
    district: Mapped[str] = mapped_column(String(50), nullable=False)
    lat: Mapped[float | None] = mapped_column(Float)
    lng: Mapped[float | None] = mapped_column(Float)
    location: Mapped[str | None] = mapped_column(String(100))

    # Commercial
    asking_price: Mapped[int | None] = mapped_column(Integer)
    sold_price: Mapped[int | None] = mapped_column(Integer)
    asking_price_source: Mapped[str | None] = mapped_column(
        String(20),
        doc="verified, listing, scraped or estimated",
    )
    avm_value: Mapped[int | None] = mapped_column(
        Integer,
        doc="Automated valuation estimate. Low confidence, never an asking price.",
    )
    listing_date: Mapped[date | None] = mapped_column(Date)
    sale_date: Mapped[date | None] = mapped_column(Date)
    dom: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="active")
    verified: Mapped[bool] = mapped_column(Boolean, default=False)

    # Provenance
    mls_id: Mapped[str | None] = mapped_column(String(50))
    source_url: Mapped[str | None] = mapped_column(Text)
    photos: Mapped[list | None] = mapped_column(JSON(none_as_null=True))
    description: Mapped[str | None] = mapped_column(Text)
    source: Mapped[str | None] = mapped_column(String(30))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        Index("idx_properties_status", "status"),
        Index("idx_properties_address", "address"),
    )

    def __repr__(self) -> str:
        return f"<Property {self.property_id}: {self.address} ({self.status})>"
