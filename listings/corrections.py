"""Price reconciliation against the hand-curated corrections file.

Sold homes frequently arrive without the price they were listed at. This
module fills that gap: verified corrections are applied as-is, and whatever
is still missing is estimated from the sold price with a banded
sold-to-list ratio (expensive homes in this market tend to sell over ask,
cheaper ones slightly under).
"""

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from .models import Property
from .schemas import CorrectionsFile, PriceCorrection, PriceSource, PropertyStatus

logger = logging.getLogger(__name__)

# (sold price above, list = sold * multiplier); first match wins
PRICE_BANDS = [
    (3_000_000, 1.05),
    (2_000_000, 1.03),
    (1_500_000, 1.02),
    (1_000_000, 1.01),
    (700_000, 0.99),
    (500_000, 0.98),
]
DEFAULT_MULTIPLIER = 0.97


def load_corrections(path: str | Path) -> CorrectionsFile:
    """Read the corrections JSON; a missing or broken file yields no corrections."""
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.warning("Corrections file %s not found; continuing without corrections", path)
        return CorrectionsFile()
    except (OSError, ValueError) as e:
        logger.warning("Could not read corrections file %s: %s", path, e)
        return CorrectionsFile()

    if not isinstance(data, dict):
        logger.warning("Corrections file %s is not a JSON object", path)
        return CorrectionsFile()
    try:
        return CorrectionsFile.from_json(data)
    except ValidationError as e:
        logger.warning("Invalid corrections file %s: %s", path, e)
        return CorrectionsFile()


def estimate_asking_price(sold_price: int) -> int:
    """Estimated list price for a sold home, from its sold price band."""
    multiplier = next(
        (m for threshold, m in PRICE_BANDS if sold_price > threshold),
        DEFAULT_MULTIPLIER,
    )
    return round(sold_price * multiplier)


class ReconciliationSummary(BaseModel):
    examined: int = 0
    corrected: int = 0
    estimated: int = 0
    unchanged: int = 0


def _apply_entry(prop: Property, entry: PriceCorrection) -> None:
    if entry.listing_price:
        prop.asking_price = entry.listing_price
        prop.asking_price_source = (
            PriceSource.VERIFIED.value if entry.verified else PriceSource.ESTIMATED.value
        )
    if entry.sold_price:
        prop.sold_price = entry.sold_price
    if entry.verified:
        prop.verified = True


def reconcile_prices(session: Session, corrections: CorrectionsFile) -> ReconciliationSummary:
    """Fix asking prices on sold rows.

    Verified corrections always win. Rows still without an asking price get
    the curated (unverified) price if there is one, else a banded estimate.
    """
    summary = ReconciliationSummary()
    sold = (
        session.query(Property)
        .filter(Property.status == PropertyStatus.SOLD.value)
        .order_by(Property.id)
        .all()
    )
    for prop in sold:
        summary.examined += 1
        entry = corrections.lookup(prop.address)

        if entry and entry.verified and entry.listing_price:
            _apply_entry(prop, entry)
            summary.corrected += 1
        elif prop.asking_price:
            summary.unchanged += 1
        elif entry and entry.listing_price:
            _apply_entry(prop, entry)
            summary.corrected += 1
        elif prop.sold_price:
            prop.asking_price = estimate_asking_price(prop.sold_price)
            prop.asking_price_source = PriceSource.ESTIMATED.value
            summary.estimated += 1
        else:
            summary.unchanged += 1

    session.commit()
    return summary


def apply_corrections(session: Session, corrections: CorrectionsFile) -> int:
    """Write every correction onto matching rows, whatever their status.

    Returns the number of rows updated.
    """
    if not len(corrections):
        return 0
    updated = 0
    for prop in session.query(Property).filter(Property.address.isnot(None)).all():
        entry = corrections.lookup(prop.address)
        if entry is None:
            continue
        _apply_entry(prop, entry)
        updated += 1
        logger.info(
            "Corrected %s: asking %s, sold %s%s",
            prop.address,
            prop.asking_price,
            prop.sold_price,
            " (verified)" if entry.verified else "",
        )
    session.commit()
    return updated
