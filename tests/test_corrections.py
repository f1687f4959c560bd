import json
import logging

import pytest

from listings.corrections import (
    apply_corrections,
    estimate_asking_price,
    load_corrections,
    reconcile_prices,
)
from listings.models import Property
from listings.schemas import CorrectionsFile


@pytest.mark.parametrize(
    "sold, expected",
    [
        (3_500_000, 3_675_000),
        (3_000_000, 3_090_000),
        (2_500_000, 2_575_000),
        (1_600_000, 1_632_000),
        (1_200_000, 1_212_000),
        (1_000_000, 990_000),
        (800_000, 792_000),
        (600_000, 588_000),
        (400_000, 388_000),
    ],
)
def test_estimate_asking_price_bands(sold, expected):
    assert estimate_asking_price(sold) == expected


def test_load_wrapped_corrections_file(tmp_path):
    path = tmp_path / "corrections.json"
    path.write_text(json.dumps({
        "properties": {
            "185 Harriman Rd": {"listingPrice": 899000, "soldPrice": 999000, "verified": True, "notes": "MLS"},
        }
    }))

    corrections = load_corrections(path)

    assert len(corrections) == 1
    entry = corrections.lookup("185  HARRIMAN RD")
    assert entry.listing_price == 899000
    assert entry.sold_price == 999000
    assert entry.verified


def test_missing_corrections_file_is_empty(tmp_path, caplog):
    with caplog.at_level(logging.WARNING):
        corrections = load_corrections(tmp_path / "nope.json")
    assert len(corrections) == 0
    assert "not found" in caplog.text


def test_broken_corrections_file_is_empty(tmp_path):
    path = tmp_path / "corrections.json"
    path.write_text("{not json")
    assert len(load_corrections(path)) == 0


def add_property(session, **values) -> Property:
    defaults = {"district": "Bedford Central", "status": "sold"}
    prop = Property(**{**defaults, **values})
    session.add(prop)
    session.commit()
    return prop


def test_reconcile_prices(session):
    verified = add_property(session, property_id="v", address="185 Harriman Rd", asking_price=950000, sold_price=990000)
    missing = add_property(session, property_id="m", address="4 Oak Ln", sold_price=1_200_000)
    curated = add_property(session, property_id="c", address="9 Elm St", sold_price=700_000)
    priced = add_property(session, property_id="p", address="12 Maple Ave", asking_price=1_000_000, sold_price=1_050_000)
    active = add_property(session, property_id="a", address="1 Hill Rd", status="active")

    corrections = CorrectionsFile.from_json({
        "185 Harriman Rd": {"listingPrice": 899000, "soldPrice": 999000, "verified": True},
        "9 Elm St": {"listingPrice": 715000},
        "12 Maple Ave": {"listingPrice": 990000},
    })
    summary = reconcile_prices(session, corrections)

    assert summary.examined == 4
    assert summary.corrected == 2
    assert summary.estimated == 1
    assert summary.unchanged == 1

    assert (verified.asking_price, verified.sold_price) == (899000, 999000)
    assert verified.asking_price_source == "verified"
    assert verified.verified is True
    assert missing.asking_price == 1_212_000
    assert missing.asking_price_source == "estimated"
    assert curated.asking_price == 715000
    assert curated.asking_price_source == "estimated"
    # Unverified corrections never replace a price that is already there
    assert priced.asking_price == 1_000_000
    assert active.asking_price is None


def test_apply_corrections_any_status(session):
    active = add_property(session, property_id="a", address="185 harriman rd", status="active", sold_price=None)
    sold = add_property(session, property_id="s", address="4 Oak Ln", sold_price=1_100_000)
    other = add_property(session, property_id="o", address="1 Hill Rd", asking_price=500000)

    corrections = CorrectionsFile.from_json({
        "185 Harriman Rd": {"listingPrice": 899000, "verified": True},
        "4 Oak Ln": {"listingPrice": 1_049_000, "soldPrice": 0},
    })

    assert apply_corrections(session, corrections) == 2
    assert active.asking_price == 899000
    assert active.sold_price is None
    assert active.verified is True
    assert sold.asking_price == 1_049_000
    assert sold.sold_price == 1_100_000
    assert sold.asking_price_source == "estimated"
    assert other.asking_price == 500000


def test_apply_empty_corrections(session):
    assert apply_corrections(session, CorrectionsFile()) == 0
