"""Sold-vs-asking market statistics over the properties table."""

from statistics import median

from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from .models import Property
from .schemas import PropertyStatus


class DistrictStats(BaseModel):
    district: str
    count: int
    median_sold_price: int
    avg_dom: float


class MarketStats(BaseModel):
    """Sold homes with both an asking and a sold price."""

    total_sold: int = 0
    sold_over: int = 0
    sold_under: int = 0
    sold_at: int = 0
    avg_percent_diff: float | None = Field(
        default=None, description="Mean of (sold - asking) / asking * 100, 2 decimals"
    )
    avg_dollar_diff: int | None = Field(default=None, description="Mean |sold - asking|")
    districts: list[DistrictStats] = Field(default_factory=list)


def market_statistics(session: Session) -> MarketStats:
    rows = (
        session.query(Property.district, Property.asking_price, Property.sold_price, Property.dom)
        .filter(Property.status == PropertyStatus.SOLD.value)
        .filter(Property.sold_price > 0, Property.asking_price > 0)
        .all()
    )
    if not rows:
        return MarketStats()

    diffs = [sold - asking for _, asking, sold, _ in rows]
    percents = [(sold - asking) / asking * 100 for _, asking, sold, _ in rows]

    by_district: dict[str, list] = {}
    for district, _, sold, dom in rows:
        by_district.setdefault(district, []).append((sold, dom or 0))

    return MarketStats(
        total_sold=len(rows),
        sold_over=sum(1 for d in diffs if d > 0),
        sold_under=sum(1 for d in diffs if d < 0),
        sold_at=sum(1 for d in diffs if d == 0),
        avg_percent_diff=round(sum(percents) / len(percents), 2),
        avg_dollar_diff=round(sum(abs(d) for d in diffs) / len(diffs)),
        districts=[
            DistrictStats(
                district=district,
                count=len(values),
                median_sold_price=round(median(sold for sold, _ in values)),
                avg_dom=round(sum(dom for _, dom in values) / len(values), 1),
            )
            for district, values in sorted(by_district.items())
        ],
    )


def status_counts(session: Session) -> dict[str, int]:
    """Row count per status."""
    return dict(
        session.query(Property.status, func.count(Property.id))
        .group_by(Property.status)
        .all()
    )
